"""Tests for domain value objects: quiet hours, push tokens, memory state."""

from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from microflash.models.enums import CardState
from microflash.models.value_objects import MemoryState, PushToken, QuietHours


class TestQuietHours:
    # --- Valid construction ---

    def test_valid_window(self):
        qh = QuietHours("22:00", "07:00")
        assert qh.start == "22:00"
        assert qh.end == "07:00"
        assert qh.start_time == time(22, 0)
        assert qh.end_time == time(7, 0)
        assert qh.wraps_midnight is True

    def test_same_day_window(self):
        qh = QuietHours("13:00", "14:30")
        assert qh.wraps_midnight is False
        assert qh.contains(time(13, 0)) is True
        assert qh.contains(time(14, 29)) is True
        assert qh.contains(time(14, 30)) is False
        assert qh.contains(time(12, 59)) is False

    def test_empty_window_contains_nothing(self):
        qh = QuietHours("09:00", "09:00")
        assert qh.contains(time(9, 0)) is False

    def test_seconds_are_ignored(self):
        qh = QuietHours("22:00", "07:00")
        assert qh.contains(time(6, 59, 59)) is True
        assert qh.contains(time(7, 0, 30)) is False

    # --- Invalid values rejected ---

    @pytest.mark.parametrize("value", ["24:00", "7:00", "07:60", "0700", "", "noon"])
    def test_invalid_format_raises(self, value):
        with pytest.raises(ValueError, match="HH:MM"):
            QuietHours(value, "07:00")

    def test_from_optional_needs_both_bounds(self):
        assert QuietHours.from_optional(None, "07:00") is None
        assert QuietHours.from_optional("22:00", None) is None
        assert QuietHours.from_optional("22:00", "07:00") == QuietHours("22:00", "07:00")

    # --- Next end ---

    def test_next_end_later_today(self):
        qh = QuietHours("22:00", "07:00")
        local_now = datetime(2026, 3, 10, 6, 30, tzinfo=timezone.utc)
        assert qh.next_end_after(local_now) == datetime(2026, 3, 10, 7, 0, tzinfo=timezone.utc)

    def test_next_end_tomorrow(self):
        qh = QuietHours("22:00", "07:00")
        local_now = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert qh.next_end_after(local_now) == datetime(2026, 3, 11, 7, 0, tzinfo=timezone.utc)

    def test_next_end_keeps_local_timezone(self):
        tz = ZoneInfo("Europe/Berlin")
        qh = QuietHours("22:00", "07:00")
        local_now = datetime(2026, 3, 10, 23, 0, tzinfo=tz)
        end = qh.next_end_after(local_now)
        assert end.tzinfo is tz
        assert (end.hour, end.day) == (7, 11)

    # --- Immutability and equality ---

    def test_immutable(self):
        qh = QuietHours("22:00", "07:00")
        with pytest.raises(AttributeError, match="immutable"):
            qh._start = "23:00"

    def test_equality_and_hash(self):
        assert QuietHours("22:00", "07:00") == QuietHours("22:00", "07:00")
        assert QuietHours("22:00", "07:00") != QuietHours("22:00", "06:00")
        assert len({QuietHours("22:00", "07:00"), QuietHours("22:00", "07:00")}) == 1

    def test_str(self):
        assert str(QuietHours("22:00", "07:00")) == "22:00-07:00"


class TestPushToken:
    @pytest.mark.parametrize(
        "value",
        ["ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]", "ExpoPushToken[abc-123]"],
    )
    def test_valid_tokens(self, value):
        assert PushToken.is_valid(value) is True
        assert PushToken(value).value == value

    @pytest.mark.parametrize(
        "value",
        ["", "ExponentPushToken[]", "ExponentPushToken", "fcm:abcdef", "ExpoPushToken[a]x", None],
    )
    def test_invalid_tokens(self, value):
        assert PushToken.is_valid(value) is False

    def test_invalid_token_raises(self):
        with pytest.raises(ValueError, match="Invalid Expo push token"):
            PushToken("apns-device-token")

    def test_non_string_raises_type_error(self):
        with pytest.raises(TypeError):
            PushToken(12345)

    def test_immutable(self):
        token = PushToken("ExpoPushToken[abc]")
        with pytest.raises(AttributeError):
            token._value = "ExpoPushToken[def]"


class TestMemoryState:
    def test_defaults_describe_a_new_card(self):
        state = MemoryState()
        assert state.state == CardState.NEW
        assert state.stability == 0.0
        assert state.last_review is None

    def test_evolve_returns_copy(self):
        state = MemoryState()
        changed = state.evolve(reps=3, state=CardState.REVIEW)
        assert changed.reps == 3
        assert changed.state == CardState.REVIEW
        assert state.reps == 0
        assert state.state == CardState.NEW
