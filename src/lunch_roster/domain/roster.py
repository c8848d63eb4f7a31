"""Roster aggregate: one open lunch poll attached to a channel message."""

from __future__ import annotations

from dataclasses import dataclass, field

_MODIFIER_SEPARATORS = ("::", "..")
SKIN_TONE_PREFIX = "skin-tone-"


def roster_key(channel: str, message_ts: str) -> str:
    """Return the store key for the roster attached to a channel message."""

    return f"{channel}-{message_ts}"


def canonical_emoji_name(name: str) -> str:
    """Strip skin-tone and other modifier suffixes from an emoji name."""

    canonical = name.strip().strip(":")
    for separator in _MODIFIER_SEPARATORS:
        canonical = canonical.split(separator, 1)[0]
    return canonical


def is_counting_triggers(
    triggers: list[str],
    *,
    trigger_reaction: str,
    count_reaction: str | None,
) -> bool:
    """Return whether a trigger list makes a roster a counting roster."""

    if count_reaction is None:
        return False
    return trigger_reaction not in triggers and count_reaction in triggers


@dataclass
class RosterEntry:
    """Participants for one food emoji inside a roster.

    `original` is the baseline frozen at creation or recovery; `current`
    accumulates live additions and removals. The remaining fields are derived
    and rewritten on every recompute.
    """

    name: str
    original: list[str] = field(default_factory=list)
    current: list[str] = field(default_factory=list)
    count: int = 0
    final: list[str] = field(default_factory=list)
    up: list[str] = field(default_factory=list)
    down: list[str] = field(default_factory=list)

    def append_participant(self, identifier: str) -> None:
        self.current.append(identifier)

    def remove_participant(self, identifier: str) -> bool:
        """Remove the last occurrence of `identifier`; return whether one existed."""

        for index in range(len(self.current) - 1, -1, -1):
            if self.current[index] == identifier:
                del self.current[index]
                return True
        return False


@dataclass
class Roster:
    """Open roster keyed by channel and originating message timestamp."""

    channel: str
    initiating_user_id: str
    original_message_ts: str
    triggers: list[str]
    is_counting: bool = False
    entries: dict[str, RosterEntry] = field(default_factory=dict)
    summary_message_ts: str | None = None

    @property
    def key(self) -> str:
        return roster_key(self.channel, self.original_message_ts)

    def entry_for(self, reaction: str) -> RosterEntry | None:
        return self.entries.get(canonical_emoji_name(reaction))
