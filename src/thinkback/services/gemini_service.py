"""Gemini service for summaries, reminders, scans, transcription and speech."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, TypeVar

from google import genai
from google.genai import types
from tenacity import Retrying, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_EMPTY = "No summary available."
SUMMARY_FAILED = "Could not generate summary."
SCAN_EMPTY = "No content extracted."
SCAN_FAILED = "Error occurred while processing the capture."

_SCAN_PROMPTS = {
    "scan": "Extract all text from this document accurately. Preserve layout and hierarchy.",
    "card": (
        "Extract contact information from this business card. Return a clean list: "
        "Name, Title, Company, Phone, Email, and Website if present."
    ),
    "photo": (
        "Describe this photo in detail. Identify the main subjects, setting, and mood. "
        "Give a vivid but clear description of what is happening in the scene."
    ),
}

_SENSITIVITY_HINTS = {
    "Basic": "Only report explicit reminders with a stated time.",
    "Smart": "Report explicit reminders and clear intentions to do something later.",
    "Deep": "Also report implied follow-ups, deadlines and commitments.",
}


class GeminiError(Exception):
    """Error from the Gemini API."""

    pass


@dataclass
class ReminderDetection:
    """Outcome of reminder detection. suggested_time is free text."""

    has_reminder: bool = False
    suggested_time: Optional[str] = None


class GeminiService:
    """Service for interacting with Google Gemini API.

    Every public method degrades to a fallback value instead of raising:
    the assistant is optional to every note operation.
    """

    DEFAULT_MODEL = "gemini-3-flash-preview"
    DEFAULT_TTS_MODEL = "gemini-2.5-flash-preview-tts"

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        tts_model_name: Optional[str] = None,
        max_attempts: int = 3,
    ):
        """Initialize the Gemini service.

        Args:
            api_key: Google AI API key (empty disables every call)
            model_name: Text/vision model (default: gemini-3-flash-preview)
            tts_model_name: Speech model (default: gemini-2.5-flash-preview-tts)
            max_attempts: Attempts per request before falling back
        """
        self.api_key = api_key
        self.model_name = model_name or self.DEFAULT_MODEL
        self.tts_model_name = tts_model_name or self.DEFAULT_TTS_MODEL
        self.max_attempts = max_attempts
        self._client: Any = None

    @property
    def client(self) -> Any:
        """Lazy-load the Gemini client."""
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            reraise=True,
        )

    def _generate(self, contents: Any, config: Optional[Any] = None, model: Optional[str] = None) -> Any:
        """Call generate_content with retries and return the raw response."""
        kwargs: dict[str, Any] = {"model": model or self.model_name, "contents": contents}
        if config is not None:
            kwargs["config"] = config
        for attempt in self._retrying():
            with attempt:
                return self.client.models.generate_content(**kwargs)
        raise GeminiError("No attempts were made")

    def _generate_text(self, contents: Any, config: Optional[Any] = None) -> str:
        """Generate content and return its stripped text ("" if none)."""
        response = self._generate(contents, config)
        text = response.text
        return str(text).strip() if text else ""

    def _with_fallback(self, action: str, fallback: T, call: Callable[[], T]) -> T:
        """Run a request, returning `fallback` if it cannot complete."""
        if not self.is_configured:
            logger.debug("Gemini not configured, skipping %s", action)
            return fallback
        try:
            return call()
        except Exception as e:
            logger.warning("Gemini %s failed: %s", action, e)
            return fallback

    # ==================== Notes ====================

    def summarize_note(self, content: str, assistant_name: str) -> str:
        """Summarize note content into one sentence in the assistant's voice.

        Args:
            content: Note content
            assistant_name: Persona the model should adopt

        Returns:
            The summary, or a placeholder sentence when unavailable
        """
        prompt = (
            "Summarize the following note content into a single, elegant sentence.\n"
            f"Act as '{assistant_name}'.\n"
            f'Content: "{content}"'
        )

        def call() -> str:
            return self._generate_text(prompt) or SUMMARY_EMPTY

        return self._with_fallback("summary", SUMMARY_FAILED, call)

    def detect_reminder(self, content: str, sensitivity: str = "Smart") -> ReminderDetection:
        """Look for a reminder intent in note content.

        Args:
            content: Note content
            sensitivity: Basic, Smart or Deep

        Returns:
            ReminderDetection; has_reminder is False when detection fails
        """
        hint = _SENSITIVITY_HINTS.get(sensitivity, _SENSITIVITY_HINTS["Smart"])
        prompt = (
            "Identify reminders. Return JSON with 'hasReminder' (bool) and "
            "'suggestedTime' (a human-readable time string).\n"
            f"{hint}\n"
            f'Content: "{content}"'
        )
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema={
                "type": "OBJECT",
                "properties": {
                    "hasReminder": {"type": "BOOLEAN"},
                    "suggestedTime": {"type": "STRING"},
                },
                "required": ["hasReminder"],
            },
        )

        def call() -> ReminderDetection:
            data = json.loads(self._generate_text(prompt, config) or "{}")
            if not isinstance(data, dict):
                raise GeminiError(f"Unexpected reminder payload: {data!r}")
            suggested = data.get("suggestedTime") or None
            return ReminderDetection(
                has_reminder=bool(data.get("hasReminder", False)),
                suggested_time=str(suggested).strip() if suggested else None,
            )

        return self._with_fallback("reminder detection", ReminderDetection(), call)

    def parse_reminder_time(self, phrase: str) -> str:
        """Turn a natural-language time reference into a readable date and time.

        Returns:
            e.g. "Monday, Oct 24 at 10:00 AM", or the phrase itself on failure
        """
        prompt = (
            "Convert the following natural language time reference into a clean, "
            'human-readable date and time string (e.g., "Monday, Oct 24 at 10:00 AM"). '
            "If the input is vague, provide the best guess. Return ONLY the string.\n"
            f'Input: "{phrase}"'
        )

        def call() -> str:
            return self._generate_text(prompt).strip('"') or phrase

        return self._with_fallback("time parsing", phrase, call)

    def localize_phrase(self, text: str, target_language: str) -> str:
        """Translate a short assistant phrase, falling back to the original."""
        prompt = (
            f"Translate the following phrase into {target_language}.\n"
            "Keep the tone professional yet helpful.\n"
            "Respond ONLY with the translated text.\n"
            f'Phrase: "{text}"'
        )

        def call() -> str:
            return self._generate_text(prompt).strip('"') or text

        return self._with_fallback("translation", text, call)

    # ==================== Capture ====================

    def extract_text_from_image(
        self, image: bytes, mode: str = "scan", mime_type: str = "image/jpeg"
    ) -> str:
        """Read text from a document, business card or photo.

        Args:
            image: Encoded image bytes
            mode: "scan" (document OCR), "card" (contact details) or "photo" (description)
            mime_type: Image MIME type

        Returns:
            Extracted text, or a placeholder message
        """
        prompt = _SCAN_PROMPTS.get(mode, _SCAN_PROMPTS["scan"])
        contents = [types.Part.from_bytes(data=image, mime_type=mime_type), prompt]

        def call() -> str:
            return self._generate_text(contents) or SCAN_EMPTY

        return self._with_fallback("scan", SCAN_FAILED, call)

    def transcribe(
        self, audio: bytes, mime_type: str = "audio/wav", language: Optional[str] = None
    ) -> Iterator[str]:
        """Stream a transcription of recorded speech.

        Yields text fragments as they arrive. A failure ends the stream early;
        whatever was yielded so far stands.
        """
        if not self.is_configured:
            logger.debug("Gemini not configured, skipping transcription")
            return

        prompt = "Transcribe this audio verbatim. Return only the spoken words."
        if language:
            prompt += f" The speaker is using {language}."
        contents = [types.Part.from_bytes(data=audio, mime_type=mime_type), prompt]

        try:
            stream = self.client.models.generate_content_stream(
                model=self.model_name, contents=contents
            )
            for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            logger.warning("Gemini transcription failed: %s", e)

    # ==================== Speech ====================

    def synthesize_speech(self, text: str, voice_name: str) -> Optional[bytes]:
        """Synthesize speech with a prebuilt voice.

        Returns:
            Raw 16-bit mono PCM audio, or None if synthesis failed
        """
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_name)
                )
            ),
        )

        def call() -> Optional[bytes]:
            response = self._generate(text, config, model=self.tts_model_name)
            data = response.candidates[0].content.parts[0].inline_data.data
            if not data:
                raise GeminiError("No audio data in response")
            return bytes(data)

        return self._with_fallback("speech synthesis", None, call)
