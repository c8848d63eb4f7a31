"""Multiset reconciliation of participant lists.

Participant lists are ordered and may repeat an identifier: each occurrence is
a seat, so one person ordering for a guest appears twice. Nothing here performs
I/O; the roster store calls these on every recompute and recovery calls
`reconcile` when merging a fresh history fetch.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Partition:
    """Derived view of one roster entry."""

    count: int
    final: list[str] = field(default_factory=list)
    up: list[str] = field(default_factory=list)
    down: list[str] = field(default_factory=list)


def deduplicate(identifiers: list[str]) -> list[str]:
    """Return identifiers without repeats, keeping first-seen order."""

    return list(dict.fromkeys(identifiers))


def reconcile(previous: list[str], fetched: list[str]) -> list[str]:
    """Merge a previously accumulated list with a freshly fetched one.

    Every occurrence in `fetched` that confirms an occurrence of `previous`
    cancels against it, so confirmed participants are never doubled. A
    previous identifier the fetch does not reproduce at all is backfilled
    exactly once. Previous order is kept; unconfirmed fetched occurrences
    follow in fetch order.
    """

    unconfirmed = Counter(fetched)
    merged: list[str] = []
    emitted: set[str] = set()
    for identifier in previous:
        if unconfirmed[identifier] > 0:
            unconfirmed[identifier] -= 1
            merged.append(identifier)
        elif identifier not in emitted and identifier not in fetched:
            merged.append(identifier)
        emitted.add(identifier)

    for identifier in fetched:
        if unconfirmed[identifier] > 0:
            unconfirmed[identifier] -= 1
            merged.append(identifier)
    return merged


def partition(original: list[str], current: list[str], *, is_counting: bool) -> Partition:
    """Split an entry into settled, newly waiting and dropped participants.

    Baseline seats belong to baseline members. `final` holds the baseline
    members still present, in current order, so it never exceeds `count`.
    Anyone else present is waiting in `up`; baseline members gone from
    `final` are reported in `down`. A counting entry counts who is present.
    """

    deduped_current = deduplicate(current)
    if is_counting:
        return Partition(count=len(deduped_current), final=deduped_current)

    deduped_original = deduplicate(original)
    count = len(deduped_original)
    baseline = set(deduped_original)
    final = [identifier for identifier in deduped_current if identifier in baseline]
    settled = set(final)
    up = [identifier for identifier in deduped_current if identifier not in settled]
    down = [identifier for identifier in deduped_original if identifier not in settled]
    return Partition(count=count, final=final, up=up, down=down)
