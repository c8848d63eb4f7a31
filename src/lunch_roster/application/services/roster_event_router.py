"""Route Slack reaction and thread message events into roster mutations."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from lunch_roster.application.ports.slack_messaging_port import SlackMessagingPort
from lunch_roster.application.services.history_fetcher import HistoryFetcher
from lunch_roster.application.services.roster_store import RosterStore
from lunch_roster.domain.count_command_parser import parse_count_command
from lunch_roster.domain.roster import (
    SKIN_TONE_PREFIX,
    Roster,
    RosterEntry,
    canonical_emoji_name,
    roster_key,
)
from lunch_roster.domain.roster_policy import RosterPolicy
from lunch_roster.infrastructure.slack.http_client import SlackAdapterError
from lunch_roster.infrastructure.slack.summary_templates import build_roster_summary_message

logger = logging.getLogger(__name__)
_TEXT_EMOJI = re.compile(r":([^\s:]+):")


@dataclass(frozen=True)
class ReactionEvent:
    """Normalized Slack reaction payload for a channel message."""

    channel: str
    message_ts: str
    user_id: str
    reaction: str


@dataclass(frozen=True)
class ThreadMessageEvent:
    """Net text change of one thread reply; added replies have empty old text."""

    channel: str
    thread_ts: str
    old_text: str
    new_text: str


@dataclass(frozen=True)
class RosterEventResult:
    """Outcome model for roster event handling."""

    processed: bool
    reason: str | None = None


def build_initial_entries(
    *,
    message_text: str,
    reacted_users: dict[str, list[str]],
    default_reactions: Iterable[str],
) -> dict[str, RosterEntry]:
    """Create entries for emoji written in the message plus reacted defaults."""

    defaults = {canonical_emoji_name(name) for name in default_reactions}
    names = [
        canonical_emoji_name(match)
        for match in _TEXT_EMOJI.findall(message_text or "")
        if not match.startswith(SKIN_TONE_PREFIX)
    ]
    names.extend(name for name in reacted_users if name in defaults)

    entries: dict[str, RosterEntry] = {}
    for name in names:
        if name in entries:
            continue
        users = list(reacted_users.get(name, []))
        entries[name] = RosterEntry(name=name, original=users, current=list(users))
    return entries


class RosterEventRouter:
    """Apply reaction and thread events to open rosters.

    Platform calls suspend the handler, so every continuation re-reads the
    roster from the store instead of trusting state captured before the call.
    """

    def __init__(
        self,
        *,
        store: RosterStore,
        history_fetcher: HistoryFetcher,
        slack: SlackMessagingPort,
        policy: RosterPolicy,
    ) -> None:
        self._store = store
        self._history_fetcher = history_fetcher
        self._slack = slack
        self._policy = policy
        self._pending_keys: set[str] = set()
        self._deleting_keys: set[str] = set()

    async def handle_reaction_added(self, event: ReactionEvent) -> RosterEventResult:
        """Open a roster, add a trigger, or count a participant."""

        reaction = canonical_emoji_name(event.reaction)
        key = roster_key(event.channel, event.message_ts)
        logger.debug(
            "reaction_added_received key=%s user_id=%s reaction=%s",
            key,
            event.user_id,
            reaction,
        )

        if self._policy.is_trigger(reaction):
            if key in self._pending_keys:
                return RosterEventResult(processed=False, reason="creation_pending")
            roster = self._store.get(key)
            if roster is None:
                return await self._open_roster(event=event, trigger=reaction, key=key)
            if roster.initiating_user_id != event.user_id:
                return RosterEventResult(processed=False, reason="not_initiating_user")
            self._store.add_trigger(key, reaction)
            logger.info("roster_trigger_added key=%s trigger=%s", key, reaction)
            await self.refresh(key)
            return RosterEventResult(processed=True)

        if key not in self._store:
            return RosterEventResult(processed=False, reason="no_roster")
        if not self._store.append_participant(key, emoji_name=reaction, identifier=event.user_id):
            return RosterEventResult(processed=False, reason="unknown_reaction")
        await self.refresh(key)
        return RosterEventResult(processed=True)

    async def handle_reaction_removed(self, event: ReactionEvent) -> RosterEventResult:
        """Drop a participant, retract a trigger, or close the roster."""

        reaction = canonical_emoji_name(event.reaction)
        key = roster_key(event.channel, event.message_ts)
        roster = self._store.get(key)
        if roster is None:
            return RosterEventResult(processed=False, reason="no_roster")

        if not self._policy.is_trigger(reaction):
            removed = self._store.remove_participant(
                key,
                emoji_name=reaction,
                identifier=event.user_id,
            )
            if not removed:
                return RosterEventResult(processed=False, reason="not_participating")
            await self.refresh(key)
            return RosterEventResult(processed=True)

        if roster.initiating_user_id != event.user_id:
            return RosterEventResult(processed=False, reason="not_initiating_user")
        if key in self._pending_keys:
            return RosterEventResult(processed=False, reason="creation_pending")

        if len(roster.triggers) > 1:
            if not self._store.remove_trigger(key, reaction):
                return RosterEventResult(processed=False, reason="unknown_trigger")
            logger.info("roster_trigger_removed key=%s trigger=%s", key, reaction)
            await self.refresh(key)
            return RosterEventResult(processed=True)

        return await self._close_roster(key)

    async def handle_thread_message(self, event: ThreadMessageEvent) -> RosterEventResult:
        """Apply the participant delta of an added, edited or deleted thread reply."""

        key = roster_key(event.channel, event.thread_ts)
        if key not in self._store:
            return RosterEventResult(processed=False, reason="no_roster")

        changed = False
        added = parse_count_command(event.new_text)
        if added is not None:
            changed = self._store.append_participants(
                key,
                emoji_name=added.emoji_name,
                identifiers=added.participants,
            )
        removed = parse_count_command(event.old_text)
        if removed is not None:
            removed_count = self._store.remove_participants(
                key,
                emoji_name=removed.emoji_name,
                identifiers=removed.participants,
            )
            changed = changed or removed_count > 0

        if not changed:
            return RosterEventResult(processed=False, reason="no_count_change")
        await self.refresh(key)
        return RosterEventResult(processed=True)

    async def refresh(self, key: str) -> None:
        """Recompute a roster, push its summary text, and persist the store."""

        roster = self._store.recompute(key)
        if roster is None:
            return
        if roster.summary_message_ts is not None:
            await self._update_summary(roster, render_summary(roster))
        await self._store.persist()

    async def _open_roster(
        self,
        *,
        event: ReactionEvent,
        trigger: str,
        key: str,
    ) -> RosterEventResult:
        self._pending_keys.add(key)
        try:
            try:
                await self._slack.start_typing(channel=event.channel)
            except SlackAdapterError as error:
                logger.warning("typing_indicator_failed channel=%s error=%s", event.channel, error)

            fetched = await self._history_fetcher.fetch_reacted_users(
                channel=event.channel,
                message_ts=event.message_ts,
            )
            if fetched.reacted_users is None:
                return RosterEventResult(processed=False, reason="history_unavailable")
            if key in self._store:
                return RosterEventResult(processed=False, reason="already_open")

            entries = build_initial_entries(
                message_text=fetched.message_text,
                reacted_users=fetched.reacted_users,
                default_reactions=self._policy.default_reactions,
            )
            if not fetched.reacted_users or not entries:
                logger.info("roster_not_opened key=%s reason=no_tracked_reactions", key)
                return RosterEventResult(processed=False, reason="no_tracked_reactions")

            roster = self._store.add(
                Roster(
                    channel=event.channel,
                    initiating_user_id=event.user_id,
                    original_message_ts=event.message_ts,
                    triggers=[trigger],
                    entries=entries,
                )
            )
            posted_text = render_summary(roster)
            try:
                summary_ts = await self._slack.post_message(
                    channel=event.channel,
                    text=posted_text,
                )
            except SlackAdapterError as error:
                self._store.discard(key)
                logger.warning("roster_summary_post_failed key=%s error=%s", key, error)
                return RosterEventResult(processed=False, reason="summary_post_failed")

            if not self._store.set_summary_ts(key, summary_ts):
                return RosterEventResult(processed=False, reason="no_roster")
            logger.info(
                "roster_opened key=%s user_id=%s trigger=%s entries=%s summary_ts=%s",
                key,
                event.user_id,
                trigger,
                ",".join(entries),
                summary_ts,
            )
            current = self._store.recompute(key)
            if current is not None:
                latest_text = render_summary(current)
                if latest_text != posted_text:
                    await self._update_summary(current, latest_text)
            await self._store.persist()
            return RosterEventResult(processed=True)
        finally:
            self._pending_keys.discard(key)

    async def _close_roster(self, key: str) -> RosterEventResult:
        if key in self._deleting_keys:
            return RosterEventResult(processed=False, reason="deletion_pending")
        self._deleting_keys.add(key)
        try:
            roster = self._store.get(key)
            if roster is None:
                return RosterEventResult(processed=False, reason="no_roster")
            if roster.summary_message_ts is not None:
                try:
                    await self._slack.delete_message(
                        channel=roster.channel,
                        ts=roster.summary_message_ts,
                    )
                except SlackAdapterError as error:
                    logger.warning("roster_summary_delete_failed key=%s error=%s", key, error)
                    return RosterEventResult(processed=False, reason="deletion_failed")

            self._store.discard(key)
            await self._store.persist()
            logger.info("roster_closed key=%s", key)
            return RosterEventResult(processed=True)
        finally:
            self._deleting_keys.discard(key)

    async def _update_summary(self, roster: Roster, text: str) -> None:
        assert roster.summary_message_ts is not None
        try:
            await self._slack.update_message(
                channel=roster.channel,
                ts=roster.summary_message_ts,
                text=text,
            )
        except SlackAdapterError as error:
            logger.warning("roster_summary_update_failed key=%s error=%s", roster.key, error)


def render_summary(roster: Roster) -> str:
    return build_roster_summary_message(roster.entries.values())
