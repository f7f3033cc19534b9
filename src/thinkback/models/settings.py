"""User settings record for ThinkBack."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from thinkback.errors import ValidationError
from thinkback.quiet_hours import parse_clock

VoiceStyle = Literal["Calm", "Energetic", "Friendly", "Boss"]
VoiceGender = Literal["Male", "Female"]

# Email shown before the user connects a backup account
PLACEHOLDER_EMAIL = "user@example.com"

# Prebuilt TTS voices by (gender, style); unknown styles use the calm voice
_FEMALE_VOICES = {"Calm": "Zephyr", "Energetic": "Kore", "Friendly": "Kore", "Boss": "Kore"}
_MALE_VOICES = {"Calm": "Charon", "Energetic": "Fenrir", "Friendly": "Puck", "Boss": "Fenrir"}


class Settings(BaseModel):
    """Process-wide user preferences.

    The record is immutable; use `replace` to produce an updated copy.
    Snapshots use camelCase keys.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    # Identity
    user_name: str = "Mindful User"
    user_avatar_seed: str = "Mindful"
    assistant_name: str = Field(default="Maya", min_length=1, max_length=40)

    # Voice
    voice_style: VoiceStyle = "Calm"
    voice_gender: VoiceGender = "Female"
    language: str = "English — United States"
    theme: Literal["light", "dark", "system"] = "system"
    voice_style_presets: dict[str, str] = Field(default_factory=dict)
    speech_language: str = "English"
    speech_language_mode: Literal["auto", "app", "manual"] = "auto"

    # Reminders
    auto_detect_reminders: bool = True
    reminder_sensitivity: Literal["Basic", "Smart", "Deep"] = "Smart"
    ask_before_reminder: bool = True
    voice_reminders: bool = True
    voice_volume_style: Literal["system", "soft", "loud", "boost"] = "system"
    voice_volume: int = Field(default=80, ge=0, le=100)
    voice_speed: float = Field(default=1.0, ge=0.5, le=2.0)
    voice_frequency: Literal["Minimal", "Normal", "Frequent"] = "Normal"

    # Check-ins and nudges
    daily_check_in: bool = True
    daily_check_in_time: str = "21:30"
    speak_check_in_aloud: bool = False
    idea_revival: bool = True
    idea_revival_frequency: Literal["Weekly", "Twice a week", "Monthly"] = "Weekly"
    max_nudges_per_week: int = Field(default=2, ge=0, le=14)

    # Privacy
    biometric_enabled: bool = False

    # Quiet hours
    quiet_hours_enabled: bool = True
    quiet_hours_start: str = "23:00"
    quiet_hours_end: str = "08:00"

    # Backup
    cloud_backup_enabled: bool = False
    auto_sync_notes: bool = True
    wifi_only_sync: bool = True
    user_email: str = PLACEHOLDER_EMAIL

    @field_validator("daily_check_in_time", "quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        try:
            parse_clock(value)
        except ValidationError as e:
            raise ValueError(str(e)) from e
        return value

    @property
    def voice_name(self) -> str:
        """Prebuilt TTS voice for the configured gender and style."""
        voices = _FEMALE_VOICES if self.voice_gender == "Female" else _MALE_VOICES
        return voices.get(self.voice_style, voices["Calm"])

    @property
    def is_backup_connected(self) -> bool:
        return bool(self.user_email) and self.user_email != PLACEHOLDER_EMAIL

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "Settings":
        """Validate a stored record, raising ValidationError on bad fields."""
        try:
            return cls.model_validate(data)
        except (PydanticValidationError, ValueError) as e:
            raise ValidationError(f"Invalid settings: {e}") from e

    def to_snapshot(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def replace(self, **changes: Any) -> "Settings":
        """Return a new validated record with the given fields changed.

        Raises:
            ValidationError: If a field name is unknown or a value is invalid
        """
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return self.from_snapshot({**self.model_dump(), **changes})
