"""Pydantic models for the persisted roster snapshot document."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from lunch_roster.domain.roster import Roster, RosterEntry


class SnapshotModel(BaseModel):
    """Base model accepting both field names and persisted aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SnapshotDecodeError(ValueError):
    """Raised when a stored or legacy snapshot cannot be decoded."""


class RosterEntryRecord(SnapshotModel):
    """Persisted participants for one emoji."""

    name: str
    count: int = 0
    original: list[str] = Field(default_factory=list)
    current: list[str] = Field(default_factory=list)
    final: list[str] = Field(default_factory=list)
    up: list[str] = Field(default_factory=list)
    down: list[str] = Field(default_factory=list)


class RosterRecord(SnapshotModel):
    """Persisted roster; legacy records omit `triggers` and `isCounting`."""

    channel: str
    user: str
    original_message: str = Field(alias="originalMessage")
    triggers: list[str] | None = None
    is_counting: bool | None = Field(default=None, alias="isCounting")
    reactions: dict[str, RosterEntryRecord] = Field(default_factory=dict)
    ts: str | None = None

    @property
    def needs_migration(self) -> bool:
        return not self.triggers


class RosterSnapshotDocument(SnapshotModel):
    """Whole-store snapshot keyed by `<channel>-<originalTimestamp>`."""

    messages: dict[str, RosterRecord | None] = Field(default_factory=dict)


def roster_to_record(roster: Roster) -> RosterRecord:
    """Convert a live roster into its persisted record."""

    return RosterRecord(
        channel=roster.channel,
        user=roster.initiating_user_id,
        original_message=roster.original_message_ts,
        triggers=list(roster.triggers),
        is_counting=roster.is_counting,
        reactions={
            name: RosterEntryRecord(
                name=entry.name,
                count=entry.count,
                original=list(entry.original),
                current=list(entry.current),
                final=list(entry.final),
                up=list(entry.up),
                down=list(entry.down),
            )
            for name, entry in roster.entries.items()
        },
        ts=roster.summary_message_ts,
    )


def record_to_roster(record: RosterRecord) -> Roster:
    """Convert a persisted record into a live roster, keeping legacy gaps empty."""

    return Roster(
        channel=record.channel,
        initiating_user_id=record.user,
        original_message_ts=record.original_message,
        triggers=list(record.triggers or []),
        is_counting=bool(record.is_counting),
        entries={
            name: RosterEntry(
                name=entry.name,
                original=list(entry.original),
                current=list(entry.current),
                count=entry.count,
                final=list(entry.final),
                up=list(entry.up),
                down=list(entry.down),
            )
            for name, entry in record.reactions.items()
        },
        summary_message_ts=record.ts,
    )
