"""Concrete Slack Web API adapter for history, reply and message operations."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlackHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class SlackHttpTransportPort(Protocol):
    """Transport protocol used by Slack HTTP adapter."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> SlackHttpResponse:
        """Execute one HTTP request and return normalized response data."""


class SlackAdapterError(RuntimeError):
    """Raised for normalized Slack adapter failures."""


class UrllibSlackHttpTransport:
    """urllib-based async transport implementation for Slack HTTP calls."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> SlackHttpResponse:
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> SlackHttpResponse:
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with urlopen(request, timeout=timeout_seconds) as response:
                status_code = int(response.getcode())
                payload = response.read()
                return SlackHttpResponse(status_code=status_code, body_bytes=payload)
        except HTTPError as error:
            payload = error.read()
            return SlackHttpResponse(status_code=int(error.code), body_bytes=payload)
        except URLError as error:
            raise SlackAdapterError(f"transport connection failure: {error}") from error


class SlackHttpClient:
    """Slack Web API adapter implementing the roster messaging port."""

    def __init__(
        self,
        *,
        bot_token: str,
        api_base_url: str = "https://slack.com/api",
        transport: SlackHttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._bot_token = bot_token
        self._transport = transport or UrllibSlackHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def fetch_history(self, *, channel: str, ts: str) -> list[dict[str, Any]]:
        """Fetch the single channel message posted at `ts`."""

        response = await self._call(
            operation="conversations.history",
            http_method="GET",
            params={
                "channel": channel,
                "latest": ts,
                "oldest": ts,
                "inclusive": "true",
                "limit": "1",
            },
        )
        return _extract_messages(response=response, operation="conversations.history")

    async def fetch_replies(
        self,
        *,
        channel: str,
        ts: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Fetch up to `limit` messages of the thread rooted at `ts`."""

        response = await self._call(
            operation="conversations.replies",
            http_method="GET",
            params={"channel": channel, "ts": ts, "limit": str(limit)},
        )
        return _extract_messages(response=response, operation="conversations.replies")

    async def post_message(self, *, channel: str, text: str) -> str:
        """Post text to channel and return the created message timestamp."""

        response = await self._call(
            operation="chat.postMessage",
            http_method="POST",
            params={"channel": channel, "text": text, "link_names": False},
        )
        ts = response.get("ts")
        if isinstance(ts, str) and ts:
            return ts
        raise SlackAdapterError("chat.postMessage response missing ts")

    async def update_message(self, *, channel: str, ts: str, text: str) -> None:
        """Replace text of a previously posted message."""

        await self._call(
            operation="chat.update",
            http_method="POST",
            params={"channel": channel, "ts": ts, "text": text},
        )

    async def delete_message(self, *, channel: str, ts: str) -> None:
        """Delete a previously posted message."""

        await self._call(
            operation="chat.delete",
            http_method="POST",
            params={"channel": channel, "ts": ts},
        )

    async def start_typing(self, *, channel: str) -> None:
        """Record typing intent; bot tokens have no Web API typing indicator."""

        logger.debug("slack_typing_requested channel=%s", channel)

    async def _call(
        self,
        *,
        operation: str,
        http_method: str,
        params: dict[str, object],
    ) -> dict[str, object]:
        headers = {"Authorization": f"Bearer {self._bot_token}"}
        url = f"{self._api_base_url}/{operation}"
        body: bytes | None = None
        if http_method == "GET":
            url = f"{url}?{urlencode(params)}"
        else:
            body = json.dumps(params, ensure_ascii=False).encode("utf-8")
            headers["Content-Type"] = "application/json; charset=utf-8"

        try:
            response = await self._transport.request(
                method=http_method,
                url=url,
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except SlackAdapterError:
            raise
        except Exception as error:  # noqa: BLE001
            raise SlackAdapterError(f"{operation} transport failure") from error

        if response.status_code < 200 or response.status_code >= 300:
            details = _decode_error_payload(response.body_bytes)
            raise SlackAdapterError(
                f"{operation} failed with status {response.status_code}: {details}"
            )

        try:
            decoded = json.loads(response.body_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise SlackAdapterError(f"{operation} returned invalid JSON payload") from error
        if not isinstance(decoded, dict):
            raise SlackAdapterError(f"{operation} returned non-object JSON payload")
        if decoded.get("ok") is not True:
            raise SlackAdapterError(f"{operation} failed: {decoded.get('error', 'unknown_error')}")
        return decoded


def _extract_messages(*, response: dict[str, object], operation: str) -> list[dict[str, Any]]:
    messages = response.get("messages")
    if not isinstance(messages, list):
        raise SlackAdapterError(f"{operation} response missing messages")
    return [message for message in messages if isinstance(message, dict)]


def _decode_error_payload(payload: bytes) -> str:
    if not payload:
        return "empty response body"
    try:
        decoded = payload.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary>"
    return decoded[:200]
