from __future__ import annotations

from typing import Any

import pytest

from lunch_roster.application.dto.roster_snapshot_models import RosterSnapshotDocument
from lunch_roster.application.services.history_fetcher import HistoryFetcher
from lunch_roster.application.services.roster_recovery_service import RosterRecoveryService
from lunch_roster.application.services.roster_store import RosterStore
from lunch_roster.domain.roster import Roster, RosterEntry
from lunch_roster.domain.roster_policy import RosterPolicy

NOW = 1_700_000_000.0
FRESH_TS = "1699990000.000100"
STALE_TS = "1699000000.000100"


class _FakeSlack:
    def __init__(self, messages: dict[str, dict[str, Any]]) -> None:
        self.messages = messages

    async def fetch_history(self, *, channel: str, ts: str) -> list[dict[str, Any]]:
        message = self.messages.get(ts)
        return [message] if message is not None else []

    async def fetch_replies(
        self,
        *,
        channel: str,
        ts: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        return []


class _InMemorySnapshotRepository:
    def __init__(self) -> None:
        self.saved: list[RosterSnapshotDocument] = []

    async def load(self) -> RosterSnapshotDocument | None:
        return None

    async def save(self, document: RosterSnapshotDocument) -> None:
        self.saved.append(document)


class _RefreshSpy:
    def __init__(self) -> None:
        self.keys: list[str] = []

    async def __call__(self, key: str) -> None:
        self.keys.append(key)


def _roster(ts: str, *, triggers: list[str], summary_ts: str | None = None) -> Roster:
    return Roster(
        channel="C1",
        initiating_user_id="U1",
        original_message_ts=ts,
        triggers=triggers,
        entries={"pizza": RosterEntry(name="pizza", original=["U2"], current=["U2", "U4"])},
        summary_message_ts=summary_ts,
    )


def _build(
    messages: dict[str, dict[str, Any]],
) -> tuple[RosterRecoveryService, RosterStore, _RefreshSpy, _InMemorySnapshotRepository]:
    policy = RosterPolicy(trigger_reaction="lunch", timeout_ms=86_400_000)
    repository = _InMemorySnapshotRepository()
    store = RosterStore(policy=policy, snapshot_repository=repository)
    refresh = _RefreshSpy()
    service = RosterRecoveryService(
        store=store,
        history_fetcher=HistoryFetcher(slack=_FakeSlack(messages)),  # type: ignore[arg-type]
        policy=policy,
        refresh=refresh,
        now=lambda: NOW,
    )
    return service, store, refresh, repository


@pytest.mark.asyncio
async def test_stale_roster_is_dropped_without_fetching() -> None:
    service, store, refresh, repository = _build({})
    store.add(_roster(STALE_TS, triggers=["lunch"], summary_ts=STALE_TS))

    result = await service.recover()

    assert result.dropped_stale == 1
    assert len(store) == 0
    assert refresh.keys == []
    assert repository.saved[-1].messages == {}


@pytest.mark.asyncio
async def test_fresh_roster_is_reconciled_with_history() -> None:
    message = {
        "ts": FRESH_TS,
        "text": "Lunch? :pizza:",
        "reactions": [{"name": "pizza", "users": ["U2", "U5"]}],
    }
    service, store, refresh, _ = _build({FRESH_TS: message})
    key = store.add(_roster(FRESH_TS, triggers=["lunch"])).key

    result = await service.recover()

    assert result.reconciled == 1
    assert refresh.keys == [key]
    entry = store.get(key).entries["pizza"]  # type: ignore[union-attr]
    assert entry.current == ["U2", "U4", "U5"]
    assert entry.original == ["U2"]
    assert entry.up == ["U4", "U5"]


@pytest.mark.asyncio
async def test_legacy_roster_is_migrated_before_reconcile() -> None:
    message = {"ts": FRESH_TS, "text": ":pizza:", "reactions": []}
    service, store, _, repository = _build({FRESH_TS: message})
    key = store.add(_roster(FRESH_TS, triggers=[])).key

    result = await service.recover()

    roster = store.get(key)
    assert result.migrated == 1
    assert roster is not None
    assert roster.triggers == ["lunch"]
    assert roster.is_counting is False
    assert repository.saved


@pytest.mark.asyncio
async def test_fetch_failure_keeps_roster_unchanged() -> None:
    service, store, refresh, _ = _build({})
    key = store.add(_roster(FRESH_TS, triggers=["lunch"])).key

    result = await service.recover()

    assert result.fetch_failed == 1
    assert result.reconciled == 0
    assert refresh.keys == []
    assert store.get(key).entries["pizza"].current == ["U2", "U4"]  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_age_is_measured_from_summary_post_not_message() -> None:
    message = {"ts": STALE_TS, "text": ":pizza:", "reactions": []}
    service, store, refresh, _ = _build({STALE_TS: message})
    key = store.add(_roster(STALE_TS, triggers=["lunch"], summary_ts=FRESH_TS)).key

    result = await service.recover()

    assert result.dropped_stale == 0
    assert result.reconciled == 1
    assert key in store
    assert refresh.keys == [key]


@pytest.mark.asyncio
async def test_roster_without_summary_ages_from_message() -> None:
    service, store, _, _ = _build({})
    store.add(_roster(STALE_TS, triggers=["lunch"]))

    result = await service.recover()

    assert result.dropped_stale == 1
    assert len(store) == 0
