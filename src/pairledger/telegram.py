"""Minimal async Telegram Bot API client."""

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from pairledger.config import get_settings
from pairledger.errors import TelegramError

logger = structlog.get_logger(__name__)


class Transport(Protocol):
    """Outbound message delivery."""

    async def send(
        self,
        user_id: int,
        text: str,
        keyboard: list[list[str]] | None = None,
        html: bool = False,
    ) -> None: ...


@dataclass(frozen=True)
class IncomingMessage:
    """A text message extracted from a Telegram update."""

    update_id: int
    chat_id: int
    user_id: int
    text: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @classmethod
    def from_update(cls, update: dict[str, Any]) -> "IncomingMessage | None":
        message = update.get("message") or {}
        sender = message.get("from") or {}
        text = message.get("text")
        if text is None or "id" not in sender:
            return None
        return cls(
            update_id=update["update_id"],
            chat_id=message["chat"]["id"],
            user_id=sender["id"],
            text=text,
            username=sender.get("username"),
            first_name=sender.get("first_name"),
            last_name=sender.get("last_name"),
        )


class TelegramClient:
    """Sends messages and long-polls updates over the Bot API."""

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        poll_timeout: int | None = None,
    ):
        settings = get_settings()
        self._token = token or settings.bot_token.get_secret_value()
        self._base_url = (base_url or settings.telegram_api_url).rstrip("/")
        self._poll_timeout = settings.telegram_poll_timeout if poll_timeout is None else poll_timeout
        self._client = http_client
        self._logger = logger.bind(component="telegram")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self._base_url}/bot{self._token}",
                # long polling holds the request open for poll_timeout seconds
                timeout=httpx.Timeout(self._poll_timeout + 10),
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke a Bot API method and return its ``result``."""
        client = await self._get_client()
        try:
            response = await client.post(f"/{method}", json=payload or {})
        except httpx.HTTPError as e:
            raise TelegramError(f"{method} failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400 or not data.get("ok"):
            raise TelegramError(
                data.get("description") or f"{method} failed",
                status_code=response.status_code,
                details=data,
            )
        return data.get("result")

    async def send(
        self,
        user_id: int,
        text: str,
        keyboard: list[list[str]] | None = None,
        html: bool = False,
    ) -> None:
        payload: dict[str, Any] = {"chat_id": user_id, "text": text}
        if html:
            payload["parse_mode"] = "HTML"
        if keyboard is not None:
            if keyboard:
                payload["reply_markup"] = {
                    "keyboard": [[{"text": label} for label in row] for row in keyboard],
                    "resize_keyboard": True,
                    "one_time_keyboard": True,
                }
            else:
                payload["reply_markup"] = {"remove_keyboard": True}
        await self.call("sendMessage", payload)

    async def get_updates(
        self, offset: int | None = None
    ) -> tuple[int | None, list[IncomingMessage]]:
        """Long-poll for updates.

        Returns:
            The offset to confirm the received updates with, and the text
            messages among them.
        """
        payload: dict[str, Any] = {
            "timeout": self._poll_timeout,
            "allowed_updates": ["message"],
        }
        if offset is not None:
            payload["offset"] = offset
        updates = await self.call("getUpdates", payload) or []

        next_offset = offset
        messages = []
        for update in updates:
            next_offset = max(next_offset or 0, update["update_id"] + 1)
            message = IncomingMessage.from_update(update)
            if message is not None:
                messages.append(message)
        return next_offset, messages
