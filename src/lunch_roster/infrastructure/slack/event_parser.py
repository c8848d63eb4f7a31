"""Parsing helpers for Slack Events API reaction and thread message events."""

from __future__ import annotations

from typing import Any

from lunch_roster.application.services.roster_event_router import (
    ReactionEvent,
    ThreadMessageEvent,
)

_REACTION_EVENT_TYPES = frozenset({"reaction_added", "reaction_removed"})
_MESSAGE_CHANGED = "message_changed"
_MESSAGE_DELETED = "message_deleted"


def parse_reaction_event(
    *,
    event: dict[str, Any],
    bot_user_id: str | None = None,
) -> ReactionEvent | None:
    """Parse Slack `reaction_added`/`reaction_removed` payload into `ReactionEvent`."""

    if event.get("type") not in _REACTION_EVENT_TYPES:
        return None

    user = event.get("user")
    if not isinstance(user, str) or not user or user == bot_user_id:
        return None

    reaction = event.get("reaction")
    if not isinstance(reaction, str) or not reaction:
        return None

    item = event.get("item")
    if not isinstance(item, dict) or item.get("type", "message") != "message":
        return None

    channel = item.get("channel")
    message_ts = item.get("ts")
    if (
        not isinstance(channel, str)
        or not channel
        or not isinstance(message_ts, str)
        or not message_ts
    ):
        return None

    return ReactionEvent(
        channel=channel,
        message_ts=message_ts,
        user_id=user,
        reaction=reaction,
    )


def parse_thread_message_event(
    *,
    event: dict[str, Any],
    bot_user_id: str | None = None,
) -> ThreadMessageEvent | None:
    """Parse a Slack `message` event in a thread into old/new text delta."""

    if event.get("type") != "message":
        return None

    channel = event.get("channel")
    if not isinstance(channel, str) or not channel:
        return None

    previous = event.get("previous_message")
    previous_message = previous if isinstance(previous, dict) else {}
    thread_ts = event.get("thread_ts") or previous_message.get("thread_ts")
    if not isinstance(thread_ts, str) or not thread_ts:
        return None

    subtype = event.get("subtype")
    if subtype is None:
        if event.get("user") == bot_user_id and bot_user_id is not None:
            return None
        old_text = ""
        new_text = _text_of(event)
    elif subtype == _MESSAGE_CHANGED:
        current = event.get("message")
        current_message = current if isinstance(current, dict) else {}
        if current_message.get("user") == bot_user_id and bot_user_id is not None:
            return None
        old_text = _text_of(previous_message)
        new_text = _text_of(current_message)
    elif subtype == _MESSAGE_DELETED:
        old_text = _text_of(previous_message)
        new_text = ""
    else:
        return None

    return ThreadMessageEvent(
        channel=channel,
        thread_ts=thread_ts,
        old_text=old_text,
        new_text=new_text,
    )


def _text_of(message: dict[str, Any]) -> str:
    text = message.get("text")
    return text if isinstance(text, str) else ""
