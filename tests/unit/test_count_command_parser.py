from __future__ import annotations

from lunch_roster.domain.count_command_parser import parse_count_command


def test_parse_mentions_into_user_ids() -> None:
    parsed = parse_count_command(":tacos: <@U1> <@U2>")

    assert parsed is not None
    assert parsed.emoji_name == "tacos"
    assert parsed.participants == ["U1", "U2"]


def test_parse_requires_at_least_one_participant() -> None:
    assert parse_count_command(":tacos:") is None


def test_parse_requires_leading_emoji_marker() -> None:
    assert parse_count_command("hello world") is None
    assert parse_count_command("<@U1> :tacos:") is None


def test_parse_wraps_free_text_guests() -> None:
    parsed = parse_count_command(":pizza: <@U1> maria   juan")

    assert parsed is not None
    assert parsed.participants == ["U1", "_maria_", "_juan_"]


def test_parse_strips_mention_display_name_and_skin_tone() -> None:
    parsed = parse_count_command(":thumbsup::skin-tone-2: <@U7|ana>")

    assert parsed is not None
    assert parsed.emoji_name == "thumbsup"
    assert parsed.participants == ["U7"]


def test_parse_handles_empty_text() -> None:
    assert parse_count_command("") is None
    assert parse_count_command(None) is None
