"""In-memory note collection with whole-snapshot persistence."""

import copy
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Union

from thinkback.database.snapshot_store import NOTES_KEY, SnapshotStore
from thinkback.errors import NotFoundError, PersistenceError, ValidationError
from thinkback.models.note import Note, NoteType

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Mutator = Callable[[Note], Any]


def local_now() -> datetime:
    """Current time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


class DateRange(str, Enum):
    """Creation-date filter relative to the time of the query."""

    ALL = "all"
    TODAY = "today"  # Since local midnight
    WEEK = "week"  # Since midnight seven days ago
    MONTH = "month"  # Since midnight thirty days ago


_RANGE_DAYS = {DateRange.TODAY: 0, DateRange.WEEK: 7, DateRange.MONTH: 30}


@dataclass
class NoteQuery:
    """Filters combined with AND. Empty text matches everything."""

    text: str = ""
    note_type: Optional[NoteType] = None
    date_range: DateRange = DateRange.ALL

    def __post_init__(self) -> None:
        if isinstance(self.note_type, str):
            self.note_type = None if self.note_type == "all" else NoteType(self.note_type)
        if isinstance(self.date_range, str):
            self.date_range = DateRange(self.date_range)

    def lower_bound(self, now: datetime) -> Optional[datetime]:
        """Earliest creation time admitted by the date filter."""
        if self.date_range == DateRange.ALL:
            return None
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - timedelta(days=_RANGE_DAYS[self.date_range])

    def matches(self, note: Note, now: datetime) -> bool:
        if self.text and not note.matches_text(self.text):
            return False
        if self.note_type is not None and note.type != self.note_type:
            return False
        since = self.lower_bound(now)
        if since is not None and note.created_at < since:
            return False
        return True


def toggle_completed(note: Note) -> None:
    """Flip a note between active and completed."""
    note.is_completed = not note.is_completed


def set_reminder(reminder_time: str) -> Mutator:
    """Mutator that attaches a free-text reminder time."""

    def apply(note: Note) -> None:
        note.has_reminder = True
        note.reminder_time = reminder_time

    return apply


def clear_reminder(note: Note) -> None:
    note.has_reminder = False
    note.reminder_time = None


def is_today_reminder(reminder_time: Optional[str]) -> bool:
    """Guess whether a free-text reminder time falls today."""
    if not reminder_time:
        return False
    lower = reminder_time.lower()
    return "today" in lower or "9:00 am" in lower or "5pm" in lower


class NoteStore:
    """Ordered collection of notes, most recent first.

    Every mutation is followed by a full snapshot write when a SnapshotStore
    is attached. A failed write raises PersistenceError after the in-memory
    change has been applied; the in-memory state stays authoritative.

    Notes returned by `get`, `find`, `all` and `query` are owned by the
    store. Change them through `update` or pass a modified copy
    (`dataclasses.replace`) to `upsert`.
    """

    def __init__(
        self,
        snapshots: Optional[SnapshotStore] = None,
        clock: Clock = local_now,
        key: str = NOTES_KEY,
    ):
        """Initialize an empty store.

        Args:
            snapshots: Where to persist the collection (None keeps it in memory only)
            clock: Source of "now" for timestamps and date filters
            key: Snapshot key for the collection
        """
        self.snapshots = snapshots
        self.clock = clock
        self.key = key
        self._notes: list[Note] = []
        self._last_id = 0

    # ==================== Collection Protocol ====================

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(list(self._notes))

    def __contains__(self, note_id: object) -> bool:
        return self._index_of(note_id) is not None

    def _index_of(self, note_id: object) -> Optional[int]:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    # ==================== Note Operations ====================

    def _now(self) -> datetime:
        """Clock reading; a naive reading is taken as local time."""
        now = self.clock()
        return now if now.tzinfo else now.astimezone()

    def _next_id(self) -> str:
        """Millisecond timestamp id, bumped so ids never repeat."""
        candidate = int(self.clock().timestamp() * 1000)
        candidate = max(candidate, self._last_id + 1)
        while str(candidate) in self:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def create(
        self,
        note_type: Union[NoteType, str] = NoteType.TEXT,
        title: str = "",
        content: str = "",
        **fields: Any,
    ) -> Note:
        """Build a fresh draft note. The draft is not stored until upserted.

        Args:
            note_type: How the note was captured
            title: Initial title
            content: Initial content
            **fields: Other optional Note fields (summary, tags, ...)

        Returns:
            A new Note with a unique id and created_at == modified_at == now
        """
        now = self._now()
        return Note(
            id=self._next_id(),
            type=NoteType(note_type),
            created_at=now,
            modified_at=now,
            title=title,
            content=content,
            **fields,
        )

    def add(self, note_type: Union[NoteType, str] = NoteType.TEXT, **fields: Any) -> Note:
        """Create a note and store it at the top of the list."""
        note = self.create(note_type, **fields)
        self.upsert(note)
        return note

    def get(self, note_id: str) -> Note:
        """Get a note by id.

        Raises:
            NotFoundError: If no note has this id
        """
        index = self._index_of(note_id)
        if index is None:
            raise NotFoundError(note_id)
        return self._notes[index]

    def find(self, note_id: str) -> Optional[Note]:
        index = self._index_of(note_id)
        return self._notes[index] if index is not None else None

    def upsert(self, note: Note) -> None:
        """Replace the note with the same id, or prepend it if new."""
        index = self._index_of(note.id)
        if index is None:
            self._notes.insert(0, note)
        else:
            self._notes[index] = note
        self.persist()

    def update(self, note_id: str, mutator: Mutator) -> Note:
        """Apply a field-level change to a note and refresh modified_at.

        The mutator receives a copy; the stored note is replaced only if the
        mutator returns without raising.

        Args:
            note_id: Id of the note to change
            mutator: Callable that edits the note in place

        Returns:
            The updated note

        Raises:
            NotFoundError: If no note has this id
            ValidationError: If the mutator touched an immutable field
        """
        index = self._index_of(note_id)
        if index is None:
            raise NotFoundError(note_id)

        original = self._notes[index]
        note = copy.deepcopy(original)
        mutator(note)
        if (note.id, note.type, note.created_at) != (
            original.id,
            original.type,
            original.created_at,
        ):
            raise ValidationError("id, type and created_at cannot be changed")

        note.modified_at = self._now()
        self._notes[index] = note
        self.persist()
        return note

    def delete(self, note_id: str) -> bool:
        """Remove a note. Deleting an unknown id is a no-op.

        Returns:
            True if a note was removed
        """
        index = self._index_of(note_id)
        if index is None:
            return False
        del self._notes[index]
        self.persist()
        return True

    def clear(self) -> None:
        """Drop every note from memory without touching storage."""
        self._notes = []

    # ==================== Queries ====================

    def all(self) -> list[Note]:
        return list(self._notes)

    def query(self, query: Optional[NoteQuery] = None, **filters: Any) -> list[Note]:
        """Return notes matching every filter, in display order.

        Args:
            query: A prepared NoteQuery
            **filters: NoteQuery fields (text, note_type, date_range) used
                when no query is given

        Returns:
            Matching notes, most recent first
        """
        if query is None:
            query = NoteQuery(**filters)
        now = self._now()
        return [n for n in self._notes if query.matches(n, now)]

    def active_reminders(self) -> list[Note]:
        """Notes with a reminder that are not yet done."""
        return [n for n in self._notes if n.has_reminder and not n.is_completed]

    def split_reminders(self) -> tuple[list[Note], list[Note]]:
        """Active reminders split into (today, upcoming)."""
        today: list[Note] = []
        upcoming: list[Note] = []
        for note in self.active_reminders():
            (today if is_today_reminder(note.reminder_time) else upcoming).append(note)
        return today, upcoming

    def completed_reminder_count(self) -> int:
        return sum(1 for n in self._notes if n.has_reminder and n.is_completed)

    def get_stats(self) -> dict:
        """Get collection statistics."""
        by_type = Counter(n.type for n in self._notes)
        return {
            "total_notes": len(self._notes),
            "text_notes": by_type[NoteType.TEXT],
            "voice_notes": by_type[NoteType.VOICE],
            "scan_notes": by_type[NoteType.SCAN],
            "completed_notes": sum(1 for n in self._notes if n.is_completed),
            "active_reminders": len(self.active_reminders()),
            "favorite_notes": sum(1 for n in self._notes if n.is_favorite),
        }

    # ==================== Persistence ====================

    def to_snapshot(self) -> list[dict[str, Any]]:
        return [n.to_dict() for n in self._notes]

    def restore(self, snapshot: list[dict[str, Any]]) -> None:
        """Replace the collection with the contents of a snapshot.

        Raises:
            PersistenceError: If the snapshot is not a list of note records
        """
        if not isinstance(snapshot, list):
            raise PersistenceError("Notes snapshot must be a list")
        try:
            notes = [Note.from_dict(item) for item in snapshot]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Notes snapshot is corrupt: {e}") from e

        seen: set[str] = set()
        unique: list[Note] = []
        for note in notes:
            if note.id in seen:
                logger.warning("Dropping duplicate note %s from snapshot", note.id)
                continue
            seen.add(note.id)
            unique.append(note)
        self._notes = unique

    def load(self) -> int:
        """Restore from the attached SnapshotStore.

        Returns:
            Number of notes loaded
        """
        if self.snapshots is None:
            return 0
        snapshot = self.snapshots.load(self.key)
        if snapshot is None:
            self._notes = []
        else:
            self.restore(snapshot)
        return len(self._notes)

    def persist(self) -> None:
        """Write the full collection to the attached SnapshotStore."""
        if self.snapshots is None:
            return
        self.snapshots.save(self.key, self.to_snapshot())
