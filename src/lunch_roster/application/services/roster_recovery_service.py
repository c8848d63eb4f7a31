"""Startup recovery: rebuild persisted rosters against live Slack history."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from lunch_roster.application.services.history_fetcher import HistoryFetcher
from lunch_roster.application.services.roster_store import RosterStore
from lunch_roster.domain.roster_policy import RosterPolicy

RefreshCallable = Callable[[str], Awaitable[None]]
NowCallable = Callable[[], float]
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryResult:
    """Counts of what one recovery pass did."""

    dropped_stale: int = 0
    migrated: int = 0
    reconciled: int = 0
    fetch_failed: int = 0


class RosterRecoveryService:
    """Drop stale rosters, migrate legacy ones, and reconcile the rest."""

    def __init__(
        self,
        *,
        store: RosterStore,
        history_fetcher: HistoryFetcher,
        policy: RosterPolicy,
        refresh: RefreshCallable,
        now: NowCallable = time.time,
    ) -> None:
        self._store = store
        self._history_fetcher = history_fetcher
        self._policy = policy
        self._refresh = refresh
        self._now = now

    async def recover(self) -> RecoveryResult:
        """Run one recovery pass over every roster currently in the store."""

        now_seconds = self._now()
        dropped_stale = 0
        migrated = 0
        reconciled = 0
        fetch_failed = 0

        for key in self._store.keys():
            roster = self._store.get(key)
            if roster is None:
                continue
            # The summary post marks when the roster opened; the trigger may
            # land on a much older message.
            opened_ts = roster.summary_message_ts or roster.original_message_ts
            if self._policy.is_expired(opened_ts=opened_ts, now_seconds=now_seconds):
                self._store.discard(key)
                dropped_stale += 1
                logger.info("roster_recovery_dropped_stale key=%s", key)
                continue

            if self._store.migrate_legacy(key):
                migrated += 1
                logger.info("roster_recovery_migrated_legacy key=%s", key)

            fetched = await self._history_fetcher.fetch_reacted_users(
                channel=roster.channel,
                message_ts=roster.original_message_ts,
            )
            if fetched.reacted_users is None:
                fetch_failed += 1
                logger.warning(
                    "roster_recovery_fetch_failed key=%s error=%s",
                    key,
                    fetched.error,
                )
                continue

            self._store.reconcile_entries(key, fetched.reacted_users)
            await self._refresh(key)
            reconciled += 1

        if dropped_stale or migrated or fetch_failed:
            await self._store.persist()

        result = RecoveryResult(
            dropped_stale=dropped_stale,
            migrated=migrated,
            reconciled=reconciled,
            fetch_failed=fetch_failed,
        )
        logger.info(
            "roster_recovery_done dropped_stale=%s migrated=%s reconciled=%s fetch_failed=%s",
            result.dropped_stale,
            result.migrated,
            result.reconciled,
            result.fetch_failed,
        )
        return result
