"""Unit tests for quiet hours."""

from datetime import datetime, time

import pytest

from thinkback.errors import ValidationError
from thinkback.models.settings import Settings
from thinkback.quiet_hours import (
    QuietWindow,
    is_quiet_hours_active,
    is_within_window,
    parse_clock,
)


class TestParseClock:
    """Tests for HH:MM parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("09:00", 540), ("9:05", 545), ("23:59", 1439), (" 08:30 ", 510)],
    )
    def test_valid_times(self, value, expected):
        """Test that valid times convert to minutes since midnight."""
        assert parse_clock(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "9", "", "12:5", "ab:cd"])
    def test_invalid_times_raise(self, value):
        """Test that malformed times fail fast."""
        with pytest.raises(ValidationError):
            parse_clock(value)


class TestDaytimeWindow:
    """Window that does not cross midnight: 09:00-17:00."""

    @pytest.fixture
    def window(self):
        return QuietWindow(enabled=True, start="09:00", end="17:00")

    @pytest.mark.parametrize("now", [time(9, 0), time(12, 0), time(16, 59)])
    def test_active_inside(self, window, now):
        assert window.is_active(now) is True

    @pytest.mark.parametrize("now", [time(8, 59), time(17, 0), time(23, 0), time(0, 0)])
    def test_inactive_outside(self, window, now):
        assert window.is_active(now) is False

    def test_does_not_cross_midnight(self, window):
        assert window.crosses_midnight is False


class TestOvernightWindow:
    """Window that crosses midnight: 23:00-08:00."""

    @pytest.fixture
    def window(self):
        return QuietWindow(enabled=True, start="23:00", end="08:00")

    @pytest.mark.parametrize("now", [time(23, 0), time(23, 30), time(0, 0), time(2, 0), time(7, 59)])
    def test_active_overnight(self, window, now):
        assert window.is_active(now) is True

    @pytest.mark.parametrize("now", [time(8, 0), time(12, 0), time(22, 59)])
    def test_inactive_during_day(self, window, now):
        assert window.is_active(now) is False

    def test_crosses_midnight(self, window):
        assert window.crosses_midnight is True

    def test_accepts_datetime(self, window):
        """Test that only the time of day of a datetime matters."""
        assert window.is_active(datetime(2026, 1, 1, 23, 45)) is True
        assert window.is_active(datetime(2026, 6, 1, 10, 0)) is False


class TestDisabledWindow:
    """A disabled window never suppresses output."""

    @pytest.mark.parametrize("now", [time(0, 0), time(3, 0), time(12, 0), time(23, 30)])
    def test_never_active(self, now):
        window = QuietWindow(enabled=False, start="23:00", end="08:00")
        assert window.is_active(now) is False


class TestEqualBounds:
    """start == end covers the whole day."""

    @pytest.mark.parametrize("now", [time(0, 0), time(10, 0), time(10, 1), time(23, 59)])
    def test_always_active(self, now):
        window = QuietWindow(enabled=True, start="10:00", end="10:00")
        assert window.is_active(now) is True

    def test_pure_predicate(self):
        assert is_within_window(600, 600, 0) is True
        assert is_within_window(600, 600, 1439) is True


class TestQuietWindowValidation:
    """Tests for malformed window bounds."""

    def test_malformed_start_rejected(self):
        with pytest.raises(ValidationError):
            QuietWindow(enabled=True, start="11pm", end="08:00")

    def test_malformed_end_rejected(self):
        with pytest.raises(ValidationError):
            QuietWindow(enabled=False, start="23:00", end="8")


class TestFromSettings:
    """Tests for reading the window from a settings record."""

    def test_default_settings_are_overnight(self):
        """Test defaults: enabled, 23:00-08:00."""
        settings = Settings()
        window = QuietWindow.from_settings(settings)

        assert window == QuietWindow(enabled=True, start="23:00", end="08:00")

    def test_is_quiet_hours_active(self):
        settings = Settings().replace(quiet_hours_start="22:00", quiet_hours_end="06:00")

        assert is_quiet_hours_active(settings, time(22, 30)) is True
        assert is_quiet_hours_active(settings, time(6, 0)) is False

    def test_disabled_in_settings(self):
        settings = Settings().replace(quiet_hours_enabled=False)
        assert is_quiet_hours_active(settings, time(2, 0)) is False
