"""Note model for ThinkBack."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken as local time."""
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO timestamp string, got {value!r}")
    # Accept a trailing "Z" for UTC
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.astimezone()


class NoteType(str, Enum):
    """How a note was captured. Fixed at creation."""

    TEXT = "text"  # Typed in the editor
    VOICE = "voice"  # Dictated and transcribed
    SCAN = "scan"  # Extracted from a camera capture


@dataclass
class Note:
    """A user-captured memory item."""

    id: str
    type: NoteType
    created_at: datetime
    modified_at: datetime

    title: str = ""
    content: str = ""

    # Filled in by the assistant on save
    summary: Optional[str] = None

    # Reminder annotation; reminder_time is free text, e.g. "Monday, Oct 24 at 10:00 AM"
    has_reminder: bool = False
    reminder_time: Optional[str] = None

    is_completed: bool = False
    is_favorite: bool = False
    tags: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate and convert fields after initialization."""
        if isinstance(self.type, str):
            self.type = NoteType(self.type)

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Note"

    def matches_text(self, text: str) -> bool:
        """Case-insensitive substring match against title or content."""
        needle = text.lower()
        return needle in self.title.lower() or needle in self.content.lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict for snapshots and exports."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "type": self.type.value,
            "createdAt": self.created_at.isoformat(),
            "modifiedAt": self.modified_at.isoformat(),
            "isFavorite": self.is_favorite,
            "hasReminder": self.has_reminder,
            "reminderTime": self.reminder_time,
            "isCompleted": self.is_completed,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Note":
        """Build a note from a snapshot dict. Missing optional keys take defaults.

        Raises:
            KeyError: If id, type or a timestamp is missing
            ValueError: If a field has the wrong shape
        """
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValueError(f"tags must be a list of strings, got {tags!r}")
        return cls(
            id=str(data["id"]),
            type=NoteType(data["type"]),
            created_at=_parse_timestamp(data["createdAt"]),
            modified_at=_parse_timestamp(data["modifiedAt"]),
            title=data.get("title") or "",
            content=data.get("content") or "",
            summary=data.get("summary"),
            has_reminder=bool(data.get("hasReminder", False)),
            reminder_time=data.get("reminderTime"),
            is_completed=bool(data.get("isCompleted", False)),
            is_favorite=bool(data.get("isFavorite", False)),
            tags=list(tags),
        )
