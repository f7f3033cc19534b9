"""Services for ThinkBack."""

from thinkback.services.gemini_service import GeminiError, GeminiService, ReminderDetection
from thinkback.services.note_store import DateRange, NoteQuery, NoteStore
from thinkback.services.speech import SpeechClip

__all__ = [
    "DateRange",
    "GeminiError",
    "GeminiService",
    "NoteQuery",
    "NoteStore",
    "ReminderDetection",
    "SpeechClip",
]
