"""Port for loading and saving the whole roster store snapshot."""

from __future__ import annotations

from typing import Protocol

from lunch_roster.application.dto.roster_snapshot_models import RosterSnapshotDocument


class RosterSnapshotRepositoryPort(Protocol):
    """Async repository contract for the single roster snapshot document."""

    async def load(self) -> RosterSnapshotDocument | None:
        """Return the persisted snapshot, or None when nothing was saved yet."""

    async def save(self, document: RosterSnapshotDocument) -> None:
        """Overwrite the persisted snapshot with `document`."""
