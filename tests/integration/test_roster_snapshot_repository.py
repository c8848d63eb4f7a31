from __future__ import annotations

import json
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command
from lunch_roster.application.dto.roster_snapshot_models import (
    RosterRecord,
    RosterSnapshotDocument,
)
from lunch_roster.application.services.roster_store import RosterStore
from lunch_roster.domain.roster_policy import RosterPolicy
from lunch_roster.infrastructure.db.metadata import roster_snapshots
from lunch_roster.infrastructure.db.roster_snapshot_repository import (
    SqlAlchemyRosterSnapshotRepository,
    import_legacy_snapshot,
)
from lunch_roster.infrastructure.db.session import create_session_factory


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _document(*keys: str) -> RosterSnapshotDocument:
    return RosterSnapshotDocument(
        messages={
            key: RosterRecord(
                channel="C1",
                user="U1",
                original_message=key.split("-", 1)[1],
                triggers=["lunch"],
                is_counting=False,
            )
            for key in keys
        }
    )


@pytest.mark.asyncio
async def test_load_returns_none_before_first_save(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "snapshot_empty.db")
    repository = SqlAlchemyRosterSnapshotRepository(create_session_factory(async_url))

    assert await repository.load() is None


@pytest.mark.asyncio
async def test_save_overwrites_previous_snapshot(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "snapshot_overwrite.db")
    repository = SqlAlchemyRosterSnapshotRepository(create_session_factory(async_url))

    await repository.save(_document("C1-1.0", "C1-2.0"))
    await repository.save(_document("C1-3.0"))
    loaded = await repository.load()

    assert loaded is not None
    assert list(loaded.messages) == ["C1-3.0"]
    record = loaded.messages["C1-3.0"]
    assert record is not None
    assert record.original_message == "3.0"
    assert record.triggers == ["lunch"]


@pytest.mark.asyncio
async def test_legacy_snapshot_is_imported_once(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "snapshot_legacy.db")
    repository = SqlAlchemyRosterSnapshotRepository(create_session_factory(async_url))
    legacy_path = tmp_path / "messages.json"
    legacy_path.write_text(
        json.dumps(
            {
                "messages": {
                    "C1-100.000001": {
                        "channel": "C1",
                        "user": "U1",
                        "originalMessage": "100.000001",
                        "reactions": {},
                    }
                }
            }
        ),
        encoding="utf-8",
    )

    first = await import_legacy_snapshot(repository=repository, legacy_path=legacy_path)
    second = await import_legacy_snapshot(repository=repository, legacy_path=legacy_path)
    missing = await import_legacy_snapshot(
        repository=repository,
        legacy_path=tmp_path / "absent.json",
    )

    loaded = await repository.load()
    assert first is True
    assert second is False
    assert missing is False
    assert loaded is not None
    record = loaded.messages["C1-100.000001"]
    assert record is not None
    assert record.needs_migration


@pytest.mark.asyncio
async def test_legacy_import_skips_damaged_records(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "snapshot_legacy_damaged.db")
    repository = SqlAlchemyRosterSnapshotRepository(create_session_factory(async_url))
    legacy_path = tmp_path / "messages.json"
    legacy_path.write_text(
        json.dumps(
            {
                "messages": {
                    "C1-1.0": {"channel": "C1", "user": "U1"},
                    "C1-2.0": {"channel": "C1", "user": "U1", "originalMessage": "2.0"},
                }
            }
        ),
        encoding="utf-8",
    )

    imported = await import_legacy_snapshot(repository=repository, legacy_path=legacy_path)

    loaded = await repository.load()
    assert imported is True
    assert loaded is not None
    assert list(loaded.messages) == ["C1-2.0"]


@pytest.mark.asyncio
async def test_unreadable_legacy_file_is_not_imported(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "snapshot_legacy_unreadable.db")
    repository = SqlAlchemyRosterSnapshotRepository(create_session_factory(async_url))
    legacy_path = tmp_path / "messages.json"
    legacy_path.write_text("{not json", encoding="utf-8")

    imported = await import_legacy_snapshot(repository=repository, legacy_path=legacy_path)

    assert imported is False
    assert await repository.load() is None


@pytest.mark.asyncio
async def test_store_starts_empty_when_stored_row_is_unreadable(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "snapshot_unreadable_row.db")
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        connection.execute(
            sa.insert(roster_snapshots).values(snapshot_key="rosters", document="{broken")
        )
    engine.dispose()
    store = RosterStore(
        policy=RosterPolicy(trigger_reaction="lunch"),
        snapshot_repository=SqlAlchemyRosterSnapshotRepository(
            create_session_factory(async_url)
        ),
    )

    assert await store.load() == 0
