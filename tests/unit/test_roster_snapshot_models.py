from __future__ import annotations

import json

import pytest

from lunch_roster.application.dto.roster_snapshot_models import (
    record_to_roster,
    roster_to_record,
)
from lunch_roster.domain.roster import Roster, RosterEntry
from lunch_roster.infrastructure.db.roster_snapshot_repository import (
    SnapshotDecodeError,
    decode_snapshot,
    encode_snapshot,
)

LEGACY_DOCUMENT = {
    "messages": {
        "C1-100.000001": {
            "channel": "C1",
            "user": "U1",
            "originalMessage": "100.000001",
            "reactions": {
                "pizza": {
                    "name": "pizza",
                    "count": 1,
                    "original": ["U2"],
                    "current": ["U2", "U3"],
                    "final": ["U2"],
                    "up": ["U3"],
                    "down": [],
                }
            },
            "ts": "100.000002",
        },
        "C1-90.000001": None,
    }
}


def test_legacy_document_decodes_without_triggers() -> None:
    document = decode_snapshot(json.dumps(LEGACY_DOCUMENT))

    record = document.messages["C1-100.000001"]
    assert record is not None
    assert record.needs_migration
    assert record.is_counting is None
    assert document.messages["C1-90.000001"] is None

    roster = record_to_roster(record)
    assert roster.triggers == []
    assert roster.is_counting is False
    assert roster.entries["pizza"].current == ["U2", "U3"]
    assert roster.summary_message_ts == "100.000002"


def test_encoded_document_uses_persisted_field_names() -> None:
    roster = Roster(
        channel="C1",
        initiating_user_id="U1",
        original_message_ts="100.000001",
        triggers=["lunch"],
        entries={"pizza": RosterEntry(name="pizza", original=["U2"], current=["U2"])},
    )
    document = decode_snapshot(json.dumps({"messages": {}}))
    document.messages[roster.key] = roster_to_record(roster)

    encoded = json.loads(encode_snapshot(document))

    stored = encoded["messages"]["C1-100.000001"]
    assert stored["originalMessage"] == "100.000001"
    assert stored["isCounting"] is False
    assert stored["triggers"] == ["lunch"]
    assert "ts" not in stored


def test_damaged_record_is_skipped_and_others_kept() -> None:
    raw = json.dumps(
        {
            "messages": {
                "C1-1.0": {"channel": "C1", "user": "U1"},
                "C1-2.0": {"channel": "C1", "user": "U1", "originalMessage": "2.0"},
            }
        }
    )

    document = decode_snapshot(raw)

    assert list(document.messages) == ["C1-2.0"]


@pytest.mark.parametrize("raw", ["not json", "[]", '{"rosters": {}}'])
def test_unreadable_document_raises_decode_error(raw: str) -> None:
    with pytest.raises(SnapshotDecodeError):
        decode_snapshot(raw)
