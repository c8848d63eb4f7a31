"""Port for the Slack Web API operations used by roster services."""

from __future__ import annotations

from typing import Any, Protocol


class SlackMessagingPort(Protocol):
    """Slack operations required by history fetch, routing and recovery."""

    async def fetch_history(self, *, channel: str, ts: str) -> list[dict[str, Any]]:
        """Return the channel message posted at `ts` (empty list when missing)."""

    async def fetch_replies(
        self,
        *,
        channel: str,
        ts: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Return the thread rooted at `ts`, parent first."""

    async def post_message(self, *, channel: str, text: str) -> str:
        """Post text to a channel and return the new message timestamp."""

    async def update_message(self, *, channel: str, ts: str, text: str) -> None:
        """Replace the text of a posted message."""

    async def delete_message(self, *, channel: str, ts: str) -> None:
        """Delete a posted message."""

    async def start_typing(self, *, channel: str) -> None:
        """Signal that the bot is working on a reply in `channel`."""
