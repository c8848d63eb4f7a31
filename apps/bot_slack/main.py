"""bot-slack entrypoint: Events API endpoint wired to roster services."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request

from lunch_roster.application.ports.roster_snapshot_repository_port import (
    RosterSnapshotRepositoryPort,
)
from lunch_roster.application.ports.slack_messaging_port import SlackMessagingPort
from lunch_roster.application.services.history_fetcher import HistoryFetcher
from lunch_roster.application.services.roster_event_router import (
    RosterEventResult,
    RosterEventRouter,
)
from lunch_roster.application.services.roster_recovery_service import (
    RecoveryResult,
    RosterRecoveryService,
)
from lunch_roster.application.services.roster_store import RosterStore
from lunch_roster.config.settings import Settings, load_settings
from lunch_roster.domain.roster_policy import RosterPolicy
from lunch_roster.infrastructure.db.roster_snapshot_repository import (
    SqlAlchemyRosterSnapshotRepository,
    import_legacy_snapshot,
)
from lunch_roster.infrastructure.db.session import create_session_factory
from lunch_roster.infrastructure.http.slack_signature import verify_slack_signature
from lunch_roster.infrastructure.logging import configure_logging
from lunch_roster.infrastructure.slack.event_parser import (
    parse_reaction_event,
    parse_thread_message_event,
)
from lunch_roster.infrastructure.slack.http_client import SlackHttpClient

BOT_SLACK_HOST = "0.0.0.0"
BOT_SLACK_PORT = 8000
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotSlackRuntime:
    """Composed bot-slack runtime dependencies."""

    settings: Settings
    slack_client: SlackMessagingPort
    snapshot_repository: RosterSnapshotRepositoryPort
    store: RosterStore
    router: RosterEventRouter
    recovery_service: RosterRecoveryService


def build_roster_policy(settings: Settings) -> RosterPolicy:
    """Build roster trigger/lifetime policy from runtime settings."""

    return RosterPolicy(
        trigger_reaction=settings.trigger_reaction.strip(":"),
        count_reaction=settings.count_reaction.strip(":") if settings.count_reaction else None,
        default_reactions=tuple(settings.default_reactions),
        timeout_ms=settings.timeout_ms,
    )


def build_bot_slack_runtime(
    *,
    settings: Settings | None = None,
    slack_client: SlackMessagingPort | None = None,
    snapshot_repository: RosterSnapshotRepositoryPort | None = None,
) -> BotSlackRuntime:
    """Build runtime wiring for the Slack roster bot."""

    runtime_settings = settings or load_settings()
    runtime_slack_client = slack_client or SlackHttpClient(
        bot_token=runtime_settings.slack_bot_token,
        api_base_url=runtime_settings.slack_api_base_url,
        timeout_seconds=runtime_settings.slack_http_timeout_seconds,
    )
    runtime_snapshot_repository = snapshot_repository or SqlAlchemyRosterSnapshotRepository(
        create_session_factory(runtime_settings.database_url)
    )
    policy = build_roster_policy(runtime_settings)
    store = RosterStore(policy=policy, snapshot_repository=runtime_snapshot_repository)
    history_fetcher = HistoryFetcher(slack=runtime_slack_client)
    router = RosterEventRouter(
        store=store,
        history_fetcher=history_fetcher,
        slack=runtime_slack_client,
        policy=policy,
    )
    recovery_service = RosterRecoveryService(
        store=store,
        history_fetcher=history_fetcher,
        policy=policy,
        refresh=router.refresh,
    )
    return BotSlackRuntime(
        settings=runtime_settings,
        slack_client=runtime_slack_client,
        snapshot_repository=runtime_snapshot_repository,
        store=store,
        router=router,
        recovery_service=recovery_service,
    )


async def start_runtime(runtime: BotSlackRuntime) -> RecoveryResult:
    """Load persisted rosters and reconcile them before events are accepted."""

    if runtime.settings.legacy_snapshot_path:
        await import_legacy_snapshot(
            repository=runtime.snapshot_repository,
            legacy_path=runtime.settings.legacy_snapshot_path,
        )
    await runtime.store.load()
    return await runtime.recovery_service.recover()


async def route_slack_event(
    *,
    router: RosterEventRouter,
    event: dict[str, Any],
    bot_user_id: str | None,
) -> RosterEventResult | None:
    """Dispatch one Events API `event` object to the roster router."""

    event_type = event.get("type")
    result: RosterEventResult | None = None
    if event_type in {"reaction_added", "reaction_removed"}:
        reaction = parse_reaction_event(event=event, bot_user_id=bot_user_id)
        if reaction is None:
            return None
        if event_type == "reaction_added":
            result = await router.handle_reaction_added(reaction)
        else:
            result = await router.handle_reaction_removed(reaction)
    elif event_type == "message":
        message = parse_thread_message_event(event=event, bot_user_id=bot_user_id)
        if message is None:
            return None
        result = await router.handle_thread_message(message)

    if result is not None:
        logger.debug(
            "slack_event_routed type=%s processed=%s reason=%s",
            event_type,
            result.processed,
            result.reason,
        )
    return result


def create_app(
    *,
    runtime: BotSlackRuntime | None = None,
    signing_secret: str | None = None,
) -> FastAPI:
    """Create FastAPI app receiving Slack Events API callbacks."""

    if runtime is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        runtime = build_bot_slack_runtime(settings=settings)
    app_runtime = runtime
    app_signing_secret = signing_secret or app_runtime.settings.slack_signing_secret

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await start_runtime(app_runtime)
        logger.info("bot_slack_ready rosters=%s", len(app_runtime.store))
        yield

    app = FastAPI(lifespan=lifespan)

    @app.get("/healthz")
    async def healthz() -> dict[str, object]:
        return {"ok": True, "open_rosters": len(app_runtime.store)}

    @app.post("/slack/events")
    async def slack_events(
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> dict[str, object]:
        raw_body = await request.body()
        if not verify_slack_signature(
            secret=app_signing_secret,
            body=raw_body,
            timestamp=request.headers.get("x-slack-request-timestamp"),
            provided_signature=request.headers.get("x-slack-signature"),
        ):
            raise HTTPException(status_code=401, detail="invalid signature")

        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise HTTPException(status_code=400, detail="invalid JSON payload") from error
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="invalid JSON payload")

        if payload.get("type") == "url_verification":
            return {"challenge": payload.get("challenge")}

        retry_num = request.headers.get("x-slack-retry-num")
        if retry_num is not None:
            logger.info(
                "slack_event_retry_ignored retry_num=%s reason=%s",
                retry_num,
                request.headers.get("x-slack-retry-reason"),
            )
            return {"ok": True}

        event = payload.get("event")
        if payload.get("type") == "event_callback" and isinstance(event, dict):
            background_tasks.add_task(
                route_slack_event,
                router=app_runtime.router,
                event=event,
                bot_user_id=app_runtime.settings.slack_bot_user_id,
            )
        return {"ok": True}

    return app


def run_asgi_server(*, host: str = BOT_SLACK_HOST, port: int = BOT_SLACK_PORT) -> None:
    """Run bot-slack as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.bot_slack.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run bot-slack runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
