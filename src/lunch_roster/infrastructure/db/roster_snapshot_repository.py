"""SQLAlchemy adapter for roster snapshot persistence."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, cast

import sqlalchemy as sa
from pydantic import ValidationError
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lunch_roster.application.dto.roster_snapshot_models import (
    RosterRecord,
    RosterSnapshotDocument,
    SnapshotDecodeError,
)
from lunch_roster.application.ports.roster_snapshot_repository_port import (
    RosterSnapshotRepositoryPort,
)
from lunch_roster.infrastructure.db.metadata import roster_snapshots

logger = logging.getLogger(__name__)
DEFAULT_SNAPSHOT_KEY = "rosters"


class SqlAlchemyRosterSnapshotRepository(RosterSnapshotRepositoryPort):
    """Single-document roster snapshot repository backed by SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
    ) -> None:
        self._session_factory = session_factory
        self._snapshot_key = snapshot_key

    async def load(self) -> RosterSnapshotDocument | None:
        """Return stored snapshot document, or None when no row exists."""

        statement = sa.select(roster_snapshots.c.document).where(
            roster_snapshots.c.snapshot_key == self._snapshot_key
        )
        async with self._session_factory() as session:
            raw_document = (await session.execute(statement)).scalar_one_or_none()

        if raw_document is None:
            return None
        return decode_snapshot(raw_document)

    async def save(self, document: RosterSnapshotDocument) -> None:
        """Overwrite stored snapshot row with the encoded document."""

        encoded = encode_snapshot(document)
        update_statement = (
            sa.update(roster_snapshots)
            .where(roster_snapshots.c.snapshot_key == self._snapshot_key)
            .values(document=encoded, updated_at=sa.func.current_timestamp())
        )
        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(update_statement))
            if int(result.rowcount or 0) == 0:
                await session.execute(
                    sa.insert(roster_snapshots).values(
                        snapshot_key=self._snapshot_key,
                        document=encoded,
                    )
                )
            await session.commit()

        logger.debug(
            "roster_snapshot_saved snapshot_key=%s rosters=%s",
            self._snapshot_key,
            len(document.messages),
        )


def encode_snapshot(document: RosterSnapshotDocument) -> str:
    """Encode snapshot with persisted field names, dropping deleted rosters."""

    return document.model_dump_json(by_alias=True, exclude_none=True)


def decode_snapshot(raw_document: str | bytes) -> RosterSnapshotDocument:
    """Decode a snapshot document in current or legacy layout.

    Records that fail validation are logged and skipped so one damaged roster
    does not hide the others. A document that is not a JSON object with a
    `messages` mapping raises `SnapshotDecodeError`.
    """

    try:
        payload = json.loads(raw_document)
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise SnapshotDecodeError(f"invalid roster snapshot JSON: {error}") from error

    raw_messages = payload.get("messages") if isinstance(payload, dict) else None
    if not isinstance(raw_messages, dict):
        raise SnapshotDecodeError("invalid roster snapshot: missing messages mapping")

    messages: dict[str, RosterRecord | None] = {}
    for key, raw_record in raw_messages.items():
        if raw_record is None:
            messages[key] = None
            continue
        try:
            messages[key] = RosterRecord.model_validate(raw_record)
        except ValidationError as error:
            logger.warning(
                "roster_snapshot_record_skipped key=%s errors=%s",
                key,
                error.error_count(),
            )
    return RosterSnapshotDocument(messages=messages)


async def import_legacy_snapshot(
    *,
    repository: RosterSnapshotRepositoryPort,
    legacy_path: str | Path,
) -> bool:
    """Seed an empty repository from a legacy JSON snapshot file.

    Returns True when a legacy document was imported.
    """

    path = Path(legacy_path)
    if not path.is_file():
        logger.info("legacy_snapshot_missing path=%s", path)
        return False

    if await repository.load() is not None:
        logger.info("legacy_snapshot_skipped_existing path=%s", path)
        return False

    try:
        document = decode_snapshot(path.read_text(encoding="utf-8"))
    except SnapshotDecodeError as error:
        logger.warning("legacy_snapshot_unreadable path=%s error=%s", path, error)
        return False
    await repository.save(document)
    logger.info(
        "legacy_snapshot_imported path=%s rosters=%s",
        path,
        sum(1 for record in document.messages.values() if record is not None),
    )
    return True
