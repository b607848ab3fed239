"""Envelope header formatting tests."""

import pytest

from app.gateway.envelope import (
    EnvelopeFormatOptions,
    format_elapsed,
    format_envelope,
    format_timestamp,
    resolve_envelope_format_options,
)

UTC = EnvelopeFormatOptions(timezone="utc")


class TestResolveOptions:

    def test_defaults_without_config(self) -> None:
        assert resolve_envelope_format_options(None) == EnvelopeFormatOptions()

    def test_reads_agent_defaults(self) -> None:
        options = resolve_envelope_format_options(
            {
                "agents": {
                    "defaults": {
                        "envelope_timezone": "user",
                        "envelope_timestamp": "off",
                        "envelope_elapsed": False,
                        "user_timezone": " Europe/Berlin ",
                    }
                }
            }
        )
        assert options.timezone == "user"
        assert options.include_timestamp is False
        assert options.include_elapsed is False
        assert options.user_timezone == "Europe/Berlin"


class TestFormatElapsed:

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "+0s"), (59, "+59s"), (300, "+5m"), (7200, "+2h"), (3 * 86400, "+3d"), (-10, "+0s")],
    )
    def test_units(self, seconds: int, expected: str) -> None:
        assert format_elapsed(seconds) == expected


class TestFormatEnvelope:

    def test_timestamp_in_utc(self) -> None:
        assert format_timestamp(1700000000, UTC) == "2023-11-14 22:13 UTC"

    def test_first_message_has_no_elapsed(self) -> None:
        envelope = format_envelope("Telegram", "Ana (@ana_x)", "hi", 1700000000, UTC)
        assert envelope == "[Telegram Ana (@ana_x) 2023-11-14 22:13 UTC] hi"

    def test_follow_up_carries_elapsed(self) -> None:
        envelope = format_envelope("Telegram", "Ana", "again", 1700000300, UTC, previous_timestamp=1700000000)
        assert envelope == "[Telegram Ana +5m 2023-11-14 22:18 UTC] again"

    def test_parts_can_be_switched_off(self) -> None:
        options = EnvelopeFormatOptions(timezone="utc", include_timestamp=False, include_elapsed=False)
        envelope = format_envelope("Telegram", "Ana", "hi", 1700000300, options, previous_timestamp=1700000000)
        assert envelope == "[Telegram Ana] hi"

    def test_unknown_zone_falls_back_to_utc(self) -> None:
        options = EnvelopeFormatOptions(timezone="Not/AZone")
        assert format_timestamp(1700000000, options) == "2023-11-14 22:13 UTC"

    def test_user_zone_without_user_timezone_uses_local(self) -> None:
        options = EnvelopeFormatOptions(timezone="user")
        assert format_timestamp(1700000000, options).startswith("2023-11-1")
