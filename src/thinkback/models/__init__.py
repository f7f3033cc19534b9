"""Data models for ThinkBack."""

from thinkback.models.note import Note, NoteType
from thinkback.models.settings import Settings
from thinkback.models.transcript import Transcript

__all__ = ["Note", "NoteType", "Settings", "Transcript"]
