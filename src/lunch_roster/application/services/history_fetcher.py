"""Rebuild who reacted to a roster message from Slack history and its thread."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from lunch_roster.application.ports.slack_messaging_port import SlackMessagingPort
from lunch_roster.domain.count_command_parser import parse_count_command
from lunch_roster.domain.roster import canonical_emoji_name
from lunch_roster.infrastructure.slack.http_client import SlackAdapterError

logger = logging.getLogger(__name__)
REPLIES_LIMIT = 100


@dataclass(frozen=True)
class HistoryFetchResult:
    """Per-emoji participants for a message, or the reason the fetch failed."""

    reacted_users: dict[str, list[str]] | None
    message_text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.reacted_users is not None


@dataclass(frozen=True)
class _Contribution:
    name: str
    users: list[str] = field(default_factory=list)


class HistoryFetcher:
    """Merge native reactions and thread count commands into one mapping."""

    def __init__(self, *, slack: SlackMessagingPort, replies_limit: int = REPLIES_LIMIT) -> None:
        self._slack = slack
        self._replies_limit = replies_limit

    async def fetch_reacted_users(self, *, channel: str, message_ts: str) -> HistoryFetchResult:
        """Return emoji -> participants for the message at `message_ts`."""

        try:
            history = await self._slack.fetch_history(channel=channel, ts=message_ts)
        except SlackAdapterError as error:
            return _failure(channel, message_ts, f"history_failed: {error}")

        original = _find_message(history, message_ts)
        if original is None:
            return _failure(channel, message_ts, "original_message_not_found")

        try:
            replies = await self._slack.fetch_replies(
                channel=channel,
                ts=message_ts,
                limit=self._replies_limit,
            )
        except SlackAdapterError as error:
            return _failure(channel, message_ts, f"replies_failed: {error}")

        contributions = _native_reactions(original)
        thread_replies = [reply for reply in replies if reply.get("ts") != message_ts]
        for reply in thread_replies:
            command = parse_count_command(reply.get("text"))
            if command is not None:
                contributions.append(_Contribution(command.emoji_name, command.participants))

        reacted_users: dict[str, list[str]] = {}
        for contribution in contributions:
            reacted_users.setdefault(contribution.name, []).extend(contribution.users)

        text = original.get("text")
        logger.info(
            "history_fetched channel=%s message_ts=%s emojis=%s replies=%s",
            channel,
            message_ts,
            len(reacted_users),
            len(thread_replies),
        )
        return HistoryFetchResult(
            reacted_users=reacted_users,
            message_text=text if isinstance(text, str) else "",
        )


def _find_message(messages: list[dict[str, Any]], message_ts: str) -> dict[str, Any] | None:
    for message in messages:
        if message.get("ts") == message_ts:
            return message
    return messages[0] if messages else None


def _native_reactions(message: dict[str, Any]) -> list[_Contribution]:
    reactions = message.get("reactions")
    if not isinstance(reactions, list):
        return []

    contributions: list[_Contribution] = []
    for reaction in reactions:
        if not isinstance(reaction, dict):
            continue
        name = reaction.get("name")
        users = reaction.get("users")
        if not isinstance(name, str) or not name or not isinstance(users, list):
            continue
        contributions.append(
            _Contribution(
                canonical_emoji_name(name),
                list(dict.fromkeys(user for user in users if isinstance(user, str))),
            )
        )
    return contributions


def _failure(channel: str, message_ts: str, error: str) -> HistoryFetchResult:
    logger.warning(
        "history_fetch_failed channel=%s message_ts=%s error=%s",
        channel,
        message_ts,
        error,
    )
    return HistoryFetchResult(reacted_users=None, error=error)
