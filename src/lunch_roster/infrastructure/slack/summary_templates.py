"""Slack text templates for the roster summary message."""

from __future__ import annotations

from collections.abc import Iterable

from lunch_roster.domain.roster import RosterEntry

SUMMARY_HEADER = "Today's eaters"


def format_participant(identifier: str) -> str:
    """Render a user id as a mention; guest labels are already display text."""

    if len(identifier) > 1 and identifier.startswith("_") and identifier.endswith("_"):
        return identifier
    return f"<@{identifier}>"


def build_roster_summary_message(entries: Iterable[RosterEntry]) -> str:
    """Build the summary body from already recomputed roster entries."""

    entry_list = list(entries)
    lines = [SUMMARY_HEADER]
    lines.extend(_committed_line(entry) for entry in entry_list)
    movement = [line for line in (_movement_line(entry) for entry in entry_list) if line]
    if movement:
        lines.append("")
        lines.extend(movement)
    return "\n".join(lines)


def _committed_line(entry: RosterEntry) -> str:
    line = f":{entry.name}: -> {entry.count}"
    if entry.final:
        line += " " + ", ".join(format_participant(x) for x in entry.final)
    free_seats = entry.count - len(entry.final)
    if free_seats > 0:
        line += f" + {free_seats} free"
    return line


def _movement_line(entry: RosterEntry) -> str | None:
    if not entry.up and not entry.down:
        return None
    dropped = ", ".join(format_participant(x) for x in entry.down)
    waiting = ", ".join(format_participant(x) for x in entry.up)
    return f":{entry.name}: - dropped: {dropped} - waiting: {waiting}"
