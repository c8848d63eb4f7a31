"""In-memory roster store with whole-snapshot persistence."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from lunch_roster.application.dto.roster_snapshot_models import (
    RosterSnapshotDocument,
    SnapshotDecodeError,
    record_to_roster,
    roster_to_record,
)
from lunch_roster.application.ports.roster_snapshot_repository_port import (
    RosterSnapshotRepositoryPort,
)
from lunch_roster.domain.multiset import partition, reconcile
from lunch_roster.domain.roster import Roster, canonical_emoji_name
from lunch_roster.domain.roster_policy import RosterPolicy

logger = logging.getLogger(__name__)


class RosterStore:
    """Open rosters keyed by `<channel>-<message ts>`.

    Every mutation goes through a store method and leaves derived entry
    fields recomputed, so callers never touch entry lists directly.
    """

    def __init__(
        self,
        *,
        policy: RosterPolicy,
        snapshot_repository: RosterSnapshotRepositoryPort,
    ) -> None:
        self._policy = policy
        self._snapshot_repository = snapshot_repository
        self._rosters: dict[str, Roster] = {}

    def __len__(self) -> int:
        return len(self._rosters)

    def __contains__(self, key: object) -> bool:
        return key in self._rosters

    def keys(self) -> list[str]:
        return list(self._rosters)

    def get(self, key: str) -> Roster | None:
        return self._rosters.get(key)

    async def load(self) -> int:
        """Replace in-memory rosters with the persisted snapshot; return count loaded.

        An unreadable snapshot is logged and the store starts empty.
        """

        self._rosters = {}
        try:
            document = await self._snapshot_repository.load()
        except (SnapshotDecodeError, ValidationError) as error:
            logger.warning("roster_store_load_failed error=%s", error)
            return 0
        if document is None:
            return 0

        legacy = 0
        for key, record in document.messages.items():
            if record is None:
                continue
            if record.needs_migration:
                legacy += 1
            self._rosters[key] = record_to_roster(record)
        logger.info("roster_store_loaded rosters=%s legacy=%s", len(self._rosters), legacy)
        return len(self._rosters)

    async def persist(self) -> None:
        """Overwrite the persisted snapshot with every open roster."""

        await self._snapshot_repository.save(self.snapshot())

    def snapshot(self) -> RosterSnapshotDocument:
        return RosterSnapshotDocument(
            messages={key: roster_to_record(roster) for key, roster in self._rosters.items()}
        )

    def add(self, roster: Roster) -> Roster:
        roster.is_counting = self._policy.is_counting(roster.triggers)
        self._rosters[roster.key] = roster
        self._recompute(roster)
        return roster

    def discard(self, key: str) -> Roster | None:
        return self._rosters.pop(key, None)

    def set_summary_ts(self, key: str, ts: str) -> bool:
        roster = self._rosters.get(key)
        if roster is None:
            return False
        roster.summary_message_ts = ts
        return True

    def append_participant(self, key: str, *, emoji_name: str, identifier: str) -> bool:
        """Append one participant to an entry; False when roster or entry is unknown."""

        return self.append_participants(key, emoji_name=emoji_name, identifiers=[identifier])

    def append_participants(self, key: str, *, emoji_name: str, identifiers: list[str]) -> bool:
        roster = self._rosters.get(key)
        entry = roster.entry_for(emoji_name) if roster is not None else None
        if roster is None or entry is None:
            return False
        for identifier in identifiers:
            entry.append_participant(identifier)
        self._recompute(roster)
        return True

    def remove_participant(self, key: str, *, emoji_name: str, identifier: str) -> bool:
        """Remove the last occurrence of a participant; False when nothing was removed."""

        return self.remove_participants(key, emoji_name=emoji_name, identifiers=[identifier]) > 0

    def remove_participants(self, key: str, *, emoji_name: str, identifiers: list[str]) -> int:
        roster = self._rosters.get(key)
        entry = roster.entry_for(emoji_name) if roster is not None else None
        if roster is None or entry is None:
            return 0
        removed = sum(1 for identifier in identifiers if entry.remove_participant(identifier))
        if removed:
            self._recompute(roster)
        return removed

    def add_trigger(self, key: str, trigger: str) -> bool:
        roster = self._rosters.get(key)
        if roster is None:
            return False
        roster.triggers.append(canonical_emoji_name(trigger))
        roster.is_counting = self._policy.is_counting(roster.triggers)
        self._recompute(roster)
        return True

    def remove_trigger(self, key: str, trigger: str) -> bool:
        """Remove one occurrence of `trigger`, refusing to empty the trigger list."""

        roster = self._rosters.get(key)
        if roster is None or len(roster.triggers) <= 1:
            return False
        name = canonical_emoji_name(trigger)
        for index in range(len(roster.triggers) - 1, -1, -1):
            if roster.triggers[index] == name:
                del roster.triggers[index]
                roster.is_counting = self._policy.is_counting(roster.triggers)
                self._recompute(roster)
                return True
        return False

    def migrate_legacy(self, key: str) -> bool:
        """Give a roster saved before trigger tracking the main trigger."""

        roster = self._rosters.get(key)
        if roster is None or roster.triggers:
            return False
        roster.triggers = [self._policy.trigger_reaction]
        roster.is_counting = False
        self._recompute(roster)
        return True

    def reconcile_entries(self, key: str, fetched: dict[str, list[str]]) -> int:
        """Merge fetched participants into matching entries; return entries touched."""

        roster = self._rosters.get(key)
        if roster is None:
            return 0
        touched = 0
        for name, entry in roster.entries.items():
            if name not in fetched:
                continue
            entry.current = reconcile(entry.current, fetched[name])
            touched += 1
        self._recompute(roster)
        return touched

    def recompute(self, key: str) -> Roster | None:
        roster = self._rosters.get(key)
        if roster is not None:
            self._recompute(roster)
        return roster

    def _recompute(self, roster: Roster) -> None:
        for entry in roster.entries.values():
            result = partition(entry.original, entry.current, is_counting=roster.is_counting)
            if roster.is_counting:
                entry.original = list(result.final)
            entry.count = result.count
            entry.final = result.final
            entry.up = result.up
            entry.down = result.down
