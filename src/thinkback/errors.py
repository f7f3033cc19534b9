"""Error types for ThinkBack."""


class ThinkBackError(Exception):
    """Base class for errors surfaced to the user."""

    pass


class ValidationError(ThinkBackError):
    """Malformed input such as a bad time string or an out-of-range setting."""

    pass


class NotFoundError(ThinkBackError):
    """A note was looked up by an id that is not in the store."""

    def __init__(self, note_id: str):
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


class PersistenceError(ThinkBackError):
    """A snapshot could not be written to or read from storage."""

    pass
