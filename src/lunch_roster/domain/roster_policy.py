"""Trigger and lifetime policy shared by roster services."""

from __future__ import annotations

from dataclasses import dataclass, field

from lunch_roster.domain.roster import canonical_emoji_name, is_counting_triggers


@dataclass(frozen=True)
class RosterPolicy:
    """Configured trigger emoji, always-tracked emoji and roster lifetime."""

    trigger_reaction: str
    count_reaction: str | None = None
    default_reactions: tuple[str, ...] = field(default_factory=tuple)
    timeout_ms: int = 86_400_000

    @property
    def all_triggers(self) -> tuple[str, ...]:
        if self.count_reaction is None:
            return (self.trigger_reaction,)
        return (self.trigger_reaction, self.count_reaction)

    def is_trigger(self, reaction: str) -> bool:
        return canonical_emoji_name(reaction) in self.all_triggers

    def is_counting(self, triggers: list[str]) -> bool:
        return is_counting_triggers(
            triggers,
            trigger_reaction=self.trigger_reaction,
            count_reaction=self.count_reaction,
        )

    def is_expired(self, *, opened_ts: str, now_seconds: float) -> bool:
        """Return whether a roster opened at `opened_ts` outlived the timeout."""

        try:
            opened_at = float(opened_ts)
        except ValueError:
            return False
        return now_seconds > opened_at + self.timeout_ms / 1000
