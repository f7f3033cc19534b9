"""Application session: owns the notes and settings and handles user commands."""

import dataclasses
import itertools
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import singledispatchmethod
from pathlib import Path
from typing import Any, Callable, Optional, Union

from thinkback.config import AppConfig
from thinkback.database.snapshot_store import (
    NOTES_KEY,
    ONBOARDED_KEY,
    SETTINGS_KEY,
    SnapshotStore,
)
from thinkback.errors import ValidationError
from thinkback.models.note import Note, NoteType
from thinkback.models.settings import PLACEHOLDER_EMAIL, Settings
from thinkback.models.transcript import Transcript
from thinkback.quiet_hours import QuietWindow
from thinkback.services.gemini_service import SCAN_FAILED, SUMMARY_FAILED, GeminiService
from thinkback.services.note_store import (
    Clock,
    NoteStore,
    local_now,
    set_reminder,
    toggle_completed,
)
from thinkback.services.speech import DEFAULT_SAMPLE_RATE, SpeechClip

logger = logging.getLogger(__name__)

AudioSink = Callable[[SpeechClip], None]

TITLE_PREVIEW_LENGTH = 30
DEFAULT_REMINDER_TIME = "later today"
TASK_DONE_PHRASE = "Task completed. Excellent work."


def default_title(content: str) -> str:
    """Title derived from the first line of content."""
    first_line = content.split("\n")[0][:TITLE_PREVIEW_LENGTH]
    return first_line or "Untitled Note"


# ==================== Commands ====================


@dataclass(frozen=True)
class NewDraft:
    note_type: NoteType = NoteType.TEXT


@dataclass(frozen=True)
class SaveDraft:
    draft: Note
    title: str
    content: str


@dataclass(frozen=True)
class DiscardDraft:
    pass


@dataclass(frozen=True)
class ToggleCompleted:
    note_id: str


@dataclass(frozen=True)
class SetReminder:
    note_id: str
    reminder_time: Optional[str] = None


@dataclass(frozen=True)
class RescheduleReminder:
    note_id: str
    phrase: str


@dataclass(frozen=True)
class DeleteNote:
    note_id: str


@dataclass(frozen=True)
class CompleteVoiceCapture:
    transcript: str


@dataclass(frozen=True)
class CompleteScan:
    image: bytes
    mode: str = "scan"
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class UpdateSettings:
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CompleteOnboarding:
    assistant_name: str
    voice_gender: str
    language: str


@dataclass(frozen=True)
class ResetApp:
    pass


# ==================== Session ====================


class ThinkBackSession:
    """Top-level owner of the note collection and the settings record.

    All mutations run synchronously on the caller's thread. Assistant
    requests are tracked per note so that a response arriving after the
    note was deleted or re-requested is dropped instead of applied.
    """

    def __init__(
        self,
        snapshots: Optional[SnapshotStore] = None,
        assistant: Optional[GeminiService] = None,
        clock: Clock = local_now,
        audio_sink: Optional[AudioSink] = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ):
        """Initialize a session with default state. Call `load` to restore.

        Args:
            snapshots: Persistent storage (None keeps everything in memory)
            assistant: Gemini collaborator (None disables AI features)
            clock: Source of "now"
            audio_sink: Receives synthesized speech for playback
            sample_rate: Sample rate of synthesized PCM
        """
        self.snapshots = snapshots
        self.assistant = assistant
        self.clock = clock
        self.audio_sink = audio_sink
        self.sample_rate = sample_rate

        self.notes = NoteStore(snapshots, clock=clock)
        self.settings = Settings()
        self.onboarded = False
        self.locked = False

        self.active_note: Optional[Note] = None
        self.voice_append_mode = False

        self._ticket_counter = itertools.count(1)
        self._tickets: dict[str, int] = {}

    @classmethod
    def open(
        cls, config: AppConfig, audio_sink: Optional[AudioSink] = None
    ) -> "ThinkBackSession":
        """Build a session from configuration and restore persisted state."""
        config.database_path.parent.mkdir(parents=True, exist_ok=True)
        assistant = GeminiService(
            api_key=config.gemini_api_key,
            model_name=config.text_model,
            tts_model_name=config.tts_model,
        )
        session = cls(
            snapshots=SnapshotStore(config.database_url),
            assistant=assistant,
            audio_sink=audio_sink,
            sample_rate=config.speech_sample_rate,
        )
        session.load()
        return session

    def load(self) -> None:
        """Restore notes, settings and onboarding state from snapshots."""
        if self.snapshots is None:
            return
        count = self.notes.load()
        stored = self.snapshots.load(SETTINGS_KEY)
        self.settings = Settings.from_snapshot(stored) if stored else Settings()
        self.onboarded = self.snapshots.load(ONBOARDED_KEY) is True
        self.locked = self.onboarded and self.settings.biometric_enabled
        logger.info("Loaded %d notes (onboarded=%s)", count, self.onboarded)

    # ==================== Dispatch ====================

    @singledispatchmethod
    def dispatch(self, command: Any) -> Any:
        """Handle a user command and return its result."""
        raise ValidationError(f"Unknown command: {type(command).__name__}")

    @dispatch.register
    def _(self, command: NewDraft) -> Note:
        return self.new_draft(command.note_type)

    @dispatch.register
    def _(self, command: SaveDraft) -> Optional[Note]:
        return self.save_draft(command.draft, command.title, command.content)

    @dispatch.register
    def _(self, command: DiscardDraft) -> None:
        self.discard_draft()

    @dispatch.register
    def _(self, command: ToggleCompleted) -> Note:
        return self.toggle_completed(command.note_id)

    @dispatch.register
    def _(self, command: SetReminder) -> Note:
        return self.set_reminder(command.note_id, command.reminder_time)

    @dispatch.register
    def _(self, command: RescheduleReminder) -> Optional[Note]:
        return self.reschedule_reminder(command.note_id, command.phrase)

    @dispatch.register
    def _(self, command: DeleteNote) -> bool:
        return self.delete_note(command.note_id)

    @dispatch.register
    def _(self, command: CompleteVoiceCapture) -> Note:
        return self.complete_voice_capture(command.transcript)

    @dispatch.register
    def _(self, command: CompleteScan) -> Note:
        return self.capture_scan(command.image, command.mode, command.mime_type)

    @dispatch.register
    def _(self, command: UpdateSettings) -> Settings:
        return self.update_settings(**command.changes)

    @dispatch.register
    def _(self, command: CompleteOnboarding) -> Settings:
        return self.complete_onboarding(
            command.assistant_name, command.voice_gender, command.language
        )

    @dispatch.register
    def _(self, command: ResetApp) -> None:
        self.reset()

    # ==================== Assistant Request Tracking ====================

    def _begin_request(self, note_id: str) -> int:
        ticket = next(self._ticket_counter)
        self._tickets[note_id] = ticket
        return ticket

    def _finish_request(self, note_id: str, ticket: int) -> bool:
        """Close a request; False if its response is stale and must be dropped."""
        if self._tickets.get(note_id) != ticket:
            logger.info("Discarding stale assistant response for note %s", note_id)
            return False
        del self._tickets[note_id]
        return True

    def _cancel_requests(self, note_id: str) -> None:
        self._tickets.pop(note_id, None)

    # ==================== Settings ====================

    def _persist_settings(self) -> None:
        if self.snapshots is not None:
            self.snapshots.save(SETTINGS_KEY, self.settings.to_snapshot())

    def update_settings(self, **changes: Any) -> Settings:
        """Replace the settings record with a validated updated copy."""
        self.settings = self.settings.replace(**changes)
        self._persist_settings()
        return self.settings

    def replace_settings(self, settings: Settings) -> Settings:
        self.settings = settings
        self._persist_settings()
        return self.settings

    @property
    def quiet_window(self) -> QuietWindow:
        return QuietWindow.from_settings(self.settings)

    def is_quiet(self, now: Optional[datetime] = None) -> bool:
        """True if quiet hours are active now."""
        return self.quiet_window.is_active(now or self.clock())

    def complete_onboarding(
        self, assistant_name: str, voice_gender: str, language: str
    ) -> Settings:
        settings = self.update_settings(
            assistant_name=assistant_name, voice_gender=voice_gender, language=language
        )
        self.onboarded = True
        if self.snapshots is not None:
            self.snapshots.save(ONBOARDED_KEY, True)
        return settings

    def lock(self) -> None:
        """Lock the session until `unlock` is called."""
        self.locked = True

    def unlock(self) -> None:
        self.locked = False

    def reset(self) -> None:
        """Erase all notes, settings and onboarding state."""
        self.notes.clear()
        self.settings = Settings()
        self.onboarded = False
        self.locked = False
        self.active_note = None
        self.voice_append_mode = False
        self._tickets.clear()
        if self.snapshots is not None:
            self.snapshots.remove(NOTES_KEY, SETTINGS_KEY, ONBOARDED_KEY)

    def localized_phrase(self, kind: str, base_text: str) -> str:
        """Assistant phrase in the app language, cached in voice_style_presets.

        Args:
            kind: Phrase slot, e.g. "greeting", "nudge", "reminder"
            base_text: English text to translate on a cache miss
        """
        key = f"{kind}_{self.settings.language}"
        cached = self.settings.voice_style_presets.get(key)
        if cached:
            return cached
        if self.assistant is None:
            return base_text
        text = self.assistant.localize_phrase(base_text, self.settings.language)
        presets = {**self.settings.voice_style_presets, key: text}
        self.update_settings(voice_style_presets=presets)
        return text

    # ==================== Speech ====================

    def speak(self, text: str, ignore_quiet: bool = False) -> Optional[SpeechClip]:
        """Synthesize and play a phrase in the configured voice.

        Suppressed during quiet hours unless `ignore_quiet`. Any failure
        results in silence rather than an error.

        Returns:
            The clip that was played, or None
        """
        if not ignore_quiet and self.is_quiet():
            logger.info("Quiet hours active, not speaking")
            return None
        if self.assistant is None:
            return None

        pcm = self.assistant.synthesize_speech(text, self.settings.voice_name)
        if pcm is None:
            return None
        clip = SpeechClip(
            pcm=pcm,
            sample_rate=self.sample_rate,
            volume=self.settings.voice_volume,
            speed=self.settings.voice_speed,
        )
        if self.audio_sink is not None:
            try:
                self.audio_sink(clip)
            except Exception as e:
                logger.warning("Audio playback failed: %s", e)
        return clip

    # ==================== Notes ====================

    def new_draft(self, note_type: Union[NoteType, str] = NoteType.TEXT) -> Note:
        """Start a new unsaved note and make it the active draft."""
        self.active_note = self.notes.create(note_type)
        self.voice_append_mode = False
        return self.active_note

    def discard_draft(self) -> None:
        """Abandon the active draft; pending assistant results for it are dropped."""
        if self.active_note is not None:
            self._cancel_requests(self.active_note.id)
        self.active_note = None
        self.voice_append_mode = False

    def save_draft(self, draft: Note, title: str, content: str) -> Optional[Note]:
        """Save edited text, with an assistant summary and reminder detection.

        A draft with neither title nor content is discarded.

        Returns:
            The saved note, or None if nothing was saved
        """
        if not content.strip() and not title.strip():
            self.discard_draft()
            return None

        summary = SUMMARY_FAILED
        has_reminder, reminder_time = draft.has_reminder, draft.reminder_time
        if self.assistant is not None:
            ticket = self._begin_request(draft.id)
            summary = self.assistant.summarize_note(content, self.settings.assistant_name)
            if self.settings.auto_detect_reminders:
                detection = self.assistant.detect_reminder(
                    content, self.settings.reminder_sensitivity
                )
                has_reminder, reminder_time = detection.has_reminder, detection.suggested_time
            if not self._finish_request(draft.id, ticket):
                return None

        note = dataclasses.replace(
            draft,
            title=title or default_title(content),
            content=content,
            summary=summary,
            has_reminder=has_reminder,
            reminder_time=reminder_time,
            modified_at=self.clock(),
        )
        self.active_note = note
        self.voice_append_mode = False
        self.notes.upsert(note)
        return note

    def add_text_note(self, content: str, title: str = "") -> Optional[Note]:
        """Create and save a text note in one step."""
        return self.save_draft(self.new_draft(NoteType.TEXT), title, content)

    def edit_note(self, note_id: str) -> Note:
        """Open a stored note as the active draft."""
        self.active_note = self.notes.get(note_id)
        self.voice_append_mode = False
        return self.active_note

    def toggle_completed(self, note_id: str) -> Note:
        """Mark a note done, or active again. Speaks a confirmation when done."""
        note = self.notes.update(note_id, toggle_completed)
        if note.is_completed:
            self.speak(TASK_DONE_PHRASE)
        return note

    def set_reminder(self, note_id: str, reminder_time: Optional[str] = None) -> Note:
        """Attach a reminder, defaulting to the note's current time or "later today"."""
        current = self.notes.get(note_id)
        final_time = reminder_time or current.reminder_time or DEFAULT_REMINDER_TIME
        note = self.notes.update(note_id, set_reminder(final_time))
        if self.settings.voice_reminders:
            self.speak(
                f"Remembrance confirmed. I will alert you at {final_time} "
                f"for your note: {note.display_title}."
            )
        return note

    def reschedule_reminder(self, note_id: str, phrase: str) -> Optional[Note]:
        """Set a reminder from natural language, e.g. "next friday morning".

        Returns:
            The updated note, or None if the phrase was blank or the note
            went away while the time was being parsed
        """
        if not phrase.strip():
            return None
        self.notes.get(note_id)
        parsed = phrase
        if self.assistant is not None:
            ticket = self._begin_request(note_id)
            parsed = self.assistant.parse_reminder_time(phrase)
            if not self._finish_request(note_id, ticket) or note_id not in self.notes:
                return None
        return self.set_reminder(note_id, parsed)

    def delete_note(self, note_id: str) -> bool:
        """Delete a note; in-flight assistant results for it are dropped."""
        self._cancel_requests(note_id)
        if self.active_note is not None and self.active_note.id == note_id:
            self.active_note = None
        return self.notes.delete(note_id)

    # ==================== Capture ====================

    def speech_language(self) -> Optional[str]:
        """Language hint for transcription, or None to auto-detect."""
        mode = self.settings.speech_language_mode
        if mode == "app":
            return self.settings.language
        if mode == "manual":
            return self.settings.speech_language
        return None

    def start_voice_append(self) -> None:
        """Dictate into the active draft instead of creating a new note."""
        if self.active_note is None:
            raise ValidationError("No draft to append to")
        self.voice_append_mode = True

    def transcribe(
        self,
        audio: bytes,
        mime_type: str = "audio/wav",
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Transcribe recorded speech, reporting the growing text as it arrives."""
        transcript = Transcript()
        if self.assistant is not None:
            for fragment in self.assistant.transcribe(
                audio, mime_type=mime_type, language=self.speech_language()
            ):
                text = transcript.append(fragment)
                if on_progress is not None:
                    on_progress(text)
        return transcript.finalize()

    def complete_voice_capture(self, transcript: str) -> Note:
        """Use a finished transcript.

        In append mode the text is added to the active draft (not saved).
        Otherwise a new voice note is saved.
        """
        if self.voice_append_mode and self.active_note is not None:
            draft = self.active_note
            separator = "\n\n" if draft.content else ""
            self.active_note = dataclasses.replace(
                draft, content=draft.content + separator + transcript
            )
            self.voice_append_mode = False
            return self.active_note

        now = self.clock()
        note = self.notes.create(
            NoteType.VOICE,
            title=f"Voice Note {now.strftime('%H:%M:%S')}",
            content=transcript,
        )
        self.notes.upsert(note)
        self.active_note = note
        return note

    def capture_voice(self, audio: bytes, mime_type: str = "audio/wav") -> Note:
        return self.complete_voice_capture(self.transcribe(audio, mime_type))

    def capture_scan(
        self, image: bytes, mode: str = "scan", mime_type: str = "image/jpeg"
    ) -> Note:
        """Extract text from an image and save it as a scan note."""
        if mode not in ("scan", "photo", "card"):
            raise ValidationError(f"Unknown scan mode: {mode}")
        content = SCAN_FAILED
        if self.assistant is not None:
            content = self.assistant.extract_text_from_image(image, mode, mime_type)
        note = self.notes.create(NoteType.SCAN, title=default_title(content), content=content)
        self.notes.upsert(note)
        self.active_note = note
        return note

    # ==================== Backup & Export ====================

    def connect_backup(self, email: str) -> Settings:
        """Sign in to (simulated) cloud backup."""
        email = email.strip()
        if "@" not in email or email == PLACEHOLDER_EMAIL:
            raise ValidationError(f"Invalid backup account: {email!r}")
        return self.update_settings(user_email=email, cloud_backup_enabled=True)

    def disconnect_backup(self) -> Settings:
        return self.update_settings(user_email=PLACEHOLDER_EMAIL, cloud_backup_enabled=False)

    def backup_now(self) -> int:
        """Run a (simulated) backup.

        Returns:
            Number of notes backed up

        Raises:
            ValidationError: If no backup account is connected
        """
        if not self.settings.is_backup_connected:
            raise ValidationError("Connect a backup account first")
        if not self.settings.cloud_backup_enabled:
            self.update_settings(cloud_backup_enabled=True)
        logger.info("Backed up %d notes for %s", len(self.notes), self.settings.user_email)
        return len(self.notes)

    def restore_backup(self) -> int:
        """Run a (simulated) restore. Local notes are already the latest copy."""
        if not self.settings.is_backup_connected:
            raise ValidationError("Connect a backup account first")
        return len(self.notes)

    def export_notes(self, directory: Union[str, Path] = ".") -> Path:
        """Write every note to thinkback_memories_YYYY-MM-DD.json."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"thinkback_memories_{self.clock().date().isoformat()}.json"
        path.write_text(
            json.dumps(self.notes.to_snapshot(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return path
