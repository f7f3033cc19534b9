"""Live transcription buffer."""

from dataclasses import dataclass, field

from thinkback.errors import ValidationError


@dataclass
class Transcript:
    """Text that grows while a dictation session is live.

    Fragments are only ever appended. Once finalized the text is frozen.
    """

    fragments: list[str] = field(default_factory=list)
    finalized: bool = False

    @property
    def text(self) -> str:
        return "".join(self.fragments)

    def append(self, fragment: str) -> str:
        """Append a fragment and return the text so far."""
        if self.finalized:
            raise ValidationError("Transcript is already finalized")
        if fragment:
            self.fragments.append(fragment)
        return self.text

    def finalize(self) -> str:
        """Freeze the transcript and return its trimmed text."""
        self.finalized = True
        return self.text.strip()
