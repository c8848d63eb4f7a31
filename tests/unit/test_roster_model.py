from __future__ import annotations

import pytest

from lunch_roster.domain.roster import (
    RosterEntry,
    canonical_emoji_name,
    is_counting_triggers,
    roster_key,
)
from lunch_roster.domain.roster_policy import RosterPolicy


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("pizza", "pizza"),
        ("thumbsup::skin-tone-3", "thumbsup"),
        ("wave..skin-tone-2", "wave"),
        (":sushi:", "sushi"),
    ],
)
def test_canonical_emoji_name_strips_modifiers(raw: str, expected: str) -> None:
    assert canonical_emoji_name(raw) == expected


def test_roster_key_joins_channel_and_timestamp() -> None:
    assert roster_key("C1", "1700000000.000100") == "C1-1700000000.000100"


def test_is_counting_requires_count_trigger_without_main_trigger() -> None:
    assert is_counting_triggers(["count"], trigger_reaction="lunch", count_reaction="count")
    assert not is_counting_triggers(
        ["lunch", "count"],
        trigger_reaction="lunch",
        count_reaction="count",
    )
    assert not is_counting_triggers(["lunch"], trigger_reaction="lunch", count_reaction="count")
    assert not is_counting_triggers(["count"], trigger_reaction="lunch", count_reaction=None)


def test_entry_remove_participant_drops_last_occurrence() -> None:
    entry = RosterEntry(name="pizza", current=["a", "b", "a", "c"])

    assert entry.remove_participant("a") is True
    assert entry.current == ["a", "b", "c"]
    assert entry.remove_participant("z") is False


def test_policy_recognizes_triggers_with_modifiers() -> None:
    policy = RosterPolicy(trigger_reaction="lunch", count_reaction="count")

    assert policy.all_triggers == ("lunch", "count")
    assert policy.is_trigger("lunch::skin-tone-2")
    assert policy.is_trigger("count")
    assert not policy.is_trigger("pizza")


def test_policy_expiry_uses_opening_timestamp_and_timeout() -> None:
    policy = RosterPolicy(trigger_reaction="lunch", timeout_ms=60_000)

    assert not policy.is_expired(opened_ts="1000.000100", now_seconds=1059.0)
    assert policy.is_expired(opened_ts="1000.000100", now_seconds=1061.0)
    assert not policy.is_expired(opened_ts="not-a-ts", now_seconds=10_000_000.0)
