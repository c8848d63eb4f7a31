"""Parser for `:emoji: @user guest ...` headcount commands in message text."""

from __future__ import annotations

import re
from dataclasses import dataclass

from lunch_roster.domain.roster import canonical_emoji_name

_EMOJI_MARKER = re.compile(r":([^\s:]+):")
_USER_MENTION = re.compile(r"<@([^>|]+)(?:\|[^>]*)?>")


@dataclass(frozen=True)
class CountCommand:
    """Participants claimed for one emoji by a text command."""

    emoji_name: str
    participants: list[str]


def guest_label(token: str) -> str:
    """Wrap a free-text guest name so it occupies a roster slot."""

    return f"_{token}_"


def parse_count_command(text: str | None) -> CountCommand | None:
    """Extract an emoji and its participants, or None when text is not a command."""

    words = (text or "").split()
    if len(words) < 2:
        return None

    marker = _EMOJI_MARKER.search(words[0])
    if marker is None:
        return None

    participants = [_participant_from_token(token) for token in words[1:]]
    return CountCommand(
        emoji_name=canonical_emoji_name(marker.group(1)),
        participants=participants,
    )


def _participant_from_token(token: str) -> str:
    mention = _USER_MENTION.search(token)
    if mention is not None:
        return mention.group(1)
    return guest_label(token)
