"""Unit tests for GeminiService."""

from unittest.mock import MagicMock, patch

import pytest

from thinkback.services.gemini_service import (
    SCAN_EMPTY,
    SCAN_FAILED,
    SUMMARY_EMPTY,
    SUMMARY_FAILED,
    GeminiService,
    ReminderDetection,
)


@pytest.fixture
def mock_genai():
    """Mock the google.genai module."""
    with patch("thinkback.services.gemini_service.genai") as mock:
        mock_client = MagicMock()
        mock.Client.return_value = mock_client
        yield mock, mock_client


@pytest.fixture
def gemini_service(mock_genai):
    """Create a GeminiService with mocked Gemini API and no retries."""
    return GeminiService(api_key="test-api-key", max_attempts=1)


def respond_with(mock_client, text):
    """Make generate_content return a response with the given text."""
    mock_response = MagicMock()
    mock_response.text = text
    mock_client.models.generate_content.return_value = mock_response
    return mock_response


def sent_prompt(mock_client):
    """The contents argument of the last generate_content call."""
    return mock_client.models.generate_content.call_args.kwargs["contents"]


class TestGeminiServiceInit:
    """Tests for GeminiService initialization."""

    def test_init_stores_api_key(self, mock_genai):
        service = GeminiService(api_key="test-key")
        assert service.api_key == "test-key"
        assert service.is_configured is True

    def test_init_default_models(self, mock_genai):
        service = GeminiService(api_key="test-key")
        assert service.model_name == "gemini-3-flash-preview"
        assert service.tts_model_name == "gemini-2.5-flash-preview-tts"

    def test_init_custom_model(self, mock_genai):
        service = GeminiService(api_key="test-key", model_name="gemini-pro")
        assert service.model_name == "gemini-pro"

    def test_lazy_client_loading(self, mock_genai):
        """Test that client is not loaded until first use."""
        mock, _ = mock_genai
        service = GeminiService(api_key="test-key")

        mock.Client.assert_not_called()

        _ = service.client
        mock.Client.assert_called_once_with(api_key="test-key")

    def test_unconfigured_service_never_calls_api(self, mock_genai):
        """Test that an empty key returns fallbacks without a client."""
        mock, _ = mock_genai
        service = GeminiService(api_key="")

        assert service.summarize_note("text", "Maya") == SUMMARY_FAILED
        assert service.detect_reminder("call at 5") == ReminderDetection()
        assert service.parse_reminder_time("soon") == "soon"
        assert service.synthesize_speech("hi", "Kore") is None
        assert list(service.transcribe(b"audio")) == []
        mock.Client.assert_not_called()


class TestSummarizeNote:
    """Tests for note summaries."""

    def test_returns_stripped_text(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "  A calm plan for the week.  ")

        assert gemini_service.summarize_note("plan", "Maya") == "A calm plan for the week."

    def test_prompt_contains_persona_and_content(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "Summary")

        gemini_service.summarize_note("Pick up the dry cleaning", "Nova")

        prompt = sent_prompt(mock_client)
        assert "Nova" in prompt
        assert "Pick up the dry cleaning" in prompt

    def test_uses_text_model(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "Summary")

        gemini_service.summarize_note("x", "Maya")

        call_kwargs = mock_client.models.generate_content.call_args
        assert call_kwargs.kwargs["model"] == "gemini-3-flash-preview"

    def test_empty_response(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, None)

        assert gemini_service.summarize_note("x", "Maya") == SUMMARY_EMPTY

    def test_failure_falls_back(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("quota exceeded")

        assert gemini_service.summarize_note("x", "Maya") == SUMMARY_FAILED


class TestRetry:
    """Tests for retrying failed requests."""

    def test_retries_then_succeeds(self, mock_genai):
        _, mock_client = mock_genai
        ok = MagicMock()
        ok.text = "Recovered"
        mock_client.models.generate_content.side_effect = [RuntimeError("503"), ok]
        service = GeminiService(api_key="test-key", max_attempts=3)

        with patch("time.sleep"):
            result = service.summarize_note("x", "Maya")

        assert result == "Recovered"
        assert mock_client.models.generate_content.call_count == 2

    def test_gives_up_after_max_attempts(self, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("503")
        service = GeminiService(api_key="test-key", max_attempts=2)

        with patch("time.sleep"):
            result = service.summarize_note("x", "Maya")

        assert result == SUMMARY_FAILED
        assert mock_client.models.generate_content.call_count == 2


class TestDetectReminder:
    """Tests for reminder detection."""

    def test_parses_json(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, '{"hasReminder": true, "suggestedTime": "Tomorrow at 9:00 AM"}')

        result = gemini_service.detect_reminder("Call the dentist tomorrow morning")

        assert result == ReminderDetection(has_reminder=True, suggested_time="Tomorrow at 9:00 AM")

    def test_requests_json_output(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, '{"hasReminder": false}')

        gemini_service.detect_reminder("nothing here")

        config = mock_client.models.generate_content.call_args.kwargs["config"]
        assert config.response_mime_type == "application/json"

    def test_no_reminder(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, '{"hasReminder": false}')

        assert gemini_service.detect_reminder("a poem") == ReminderDetection()

    def test_sensitivity_changes_prompt(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, '{"hasReminder": false}')

        gemini_service.detect_reminder("text", sensitivity="Deep")

        assert "implied follow-ups" in sent_prompt(mock_client)

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", '"yes"'])
    def test_malformed_payload_falls_back(self, gemini_service, mock_genai, payload):
        _, mock_client = mock_genai
        respond_with(mock_client, payload)

        assert gemini_service.detect_reminder("text") == ReminderDetection()


class TestParseReminderTime:
    def test_returns_readable_time(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, '"Friday, Oct 23 at 6:00 PM"')

        assert gemini_service.parse_reminder_time("friday evening") == "Friday, Oct 23 at 6:00 PM"

    def test_failure_returns_input(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("offline")

        assert gemini_service.parse_reminder_time("friday evening") == "friday evening"


class TestLocalizePhrase:
    def test_translates(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "Bonjour")

        assert gemini_service.localize_phrase("Hello", "French") == "Bonjour"
        assert "French" in sent_prompt(mock_client)

    def test_failure_returns_original(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("offline")

        assert gemini_service.localize_phrase("Hello", "French") == "Hello"


class TestExtractTextFromImage:
    """Tests for scanning."""

    def test_sends_image_and_mode_prompt(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "Jane Doe\nCTO")

        result = gemini_service.extract_text_from_image(b"\xff\xd8jpeg", mode="card")

        assert result == "Jane Doe\nCTO"
        contents = sent_prompt(mock_client)
        assert contents[0].inline_data.data == b"\xff\xd8jpeg"
        assert contents[0].inline_data.mime_type == "image/jpeg"
        assert "business card" in contents[1]

    def test_empty_result(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        respond_with(mock_client, "")

        assert gemini_service.extract_text_from_image(b"img") == SCAN_EMPTY

    def test_failure(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("bad image")

        assert gemini_service.extract_text_from_image(b"img") == SCAN_FAILED


class TestTranscribe:
    """Tests for streamed transcription."""

    def make_chunks(self, *texts):
        chunks = []
        for text in texts:
            chunk = MagicMock()
            chunk.text = text
            chunks.append(chunk)
        return chunks

    def test_yields_fragments(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content_stream.return_value = iter(
            self.make_chunks("Remember ", None, "the keys")
        )

        assert list(gemini_service.transcribe(b"wav")) == ["Remember ", "the keys"]

    def test_language_hint(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content_stream.return_value = iter([])

        list(gemini_service.transcribe(b"wav", language="Spanish"))

        contents = mock_client.models.generate_content_stream.call_args.kwargs["contents"]
        assert "Spanish" in contents[1]

    def test_failure_ends_stream(self, gemini_service, mock_genai):
        _, mock_client = mock_genai

        def broken_stream():
            yield from self.make_chunks("partial ")
            raise RuntimeError("connection reset")

        mock_client.models.generate_content_stream.return_value = broken_stream()

        assert list(gemini_service.transcribe(b"wav")) == ["partial "]


class TestSynthesizeSpeech:
    """Tests for speech synthesis."""

    def test_returns_audio_bytes(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        response = MagicMock()
        response.candidates[0].content.parts[0].inline_data.data = b"\x01\x00\x02\x00"
        mock_client.models.generate_content.return_value = response

        assert gemini_service.synthesize_speech("Hello", "Kore") == b"\x01\x00\x02\x00"

        call_kwargs = mock_client.models.generate_content.call_args.kwargs
        assert call_kwargs["model"] == "gemini-2.5-flash-preview-tts"
        voice = call_kwargs["config"].speech_config.voice_config.prebuilt_voice_config
        assert voice.voice_name == "Kore"

    def test_missing_audio_returns_none(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        response = MagicMock()
        response.candidates[0].content.parts[0].inline_data.data = None
        mock_client.models.generate_content.return_value = response

        assert gemini_service.synthesize_speech("Hello", "Kore") is None

    def test_failure_returns_none(self, gemini_service, mock_genai):
        _, mock_client = mock_genai
        mock_client.models.generate_content.side_effect = RuntimeError("tts down")

        assert gemini_service.synthesize_speech("Hello", "Kore") is None
