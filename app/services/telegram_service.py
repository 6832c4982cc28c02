"""
app/services/telegram_service.py

Purpose: Telegram Bot API transport

- Sends text, photos and media groups
- Edits message text / inline controls, answers callback queries
- Channel membership lookups
- Webhook registration and long-poll update fetching
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.core.exceptions import TransportError
from app.core.logging import get_logger
from utils.telegram_utils import Keyboard, inline_keyboard_markup, truncate

logger = get_logger(__name__)

PARSE_MODE = "HTML"


@dataclass(frozen=True)
class MediaItem:
    """One photo of a media group; media is a Telegram file_id."""
    media: str
    caption: Optional[str] = None


class Transport:
    """
    Outbound capabilities the bot core relies on.
    Every method raises TransportError on failure.
    """

    async def send_text(
        self,
        chat_id: Any,
        text: str,
        buttons: Optional[Keyboard] = None,
        reply_keyboard: Optional[Dict[str, Any]] = None,
    ) -> int:
        raise NotImplementedError

    async def send_photo(
        self,
        chat_id: Any,
        media_ref: str,
        caption: Optional[str] = None,
        buttons: Optional[Keyboard] = None,
    ) -> int:
        raise NotImplementedError

    async def send_media_group(self, chat_id: Any, items: Sequence[MediaItem]) -> List[int]:
        raise NotImplementedError

    async def edit_message_controls(self, chat_id: Any, message_id: int, buttons: Optional[Keyboard]) -> None:
        raise NotImplementedError

    async def edit_message_text(self, chat_id: Any, message_id: int, text: str) -> None:
        raise NotImplementedError

    async def answer_interaction(self, interaction_id: str, text: Optional[str] = None, show_alert: bool = False) -> None:
        raise NotImplementedError

    async def get_member_status(self, chat_id: Any, user_id: int) -> str:
        raise NotImplementedError


class TelegramTransport(Transport):
    """Transport backed by the Telegram Bot API over httpx."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = f"{base_url.rstrip('/')}/bot{token}"
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def call(self, method: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        """
        Calls a Bot API method and returns its "result".

        Honors one 429 retry_after before giving up.

        Raises:
            TransportError: On network errors or an ok=false response
        """
        url = f"{self.base_url}/{method}"

        for attempt in (1, 2):
            try:
                response = await self._client.post(url, json=payload, timeout=timeout or self.timeout)
                body = response.json()
            except httpx.TimeoutException:
                logger.error(f"Telegram API timeout on {method}")
                raise TransportError(f"Telegram API timeout on {method}")
            except (httpx.RequestError, ValueError) as e:
                logger.error(f"Telegram API request failed on {method}: {e}")
                raise TransportError(f"Telegram API request failed on {method}", details=str(e))

            if body.get("ok"):
                return body.get("result")

            retry_after = (body.get("parameters") or {}).get("retry_after")
            if response.status_code == 429 and retry_after and attempt == 1:
                logger.warning(f"Rate limited on {method}, retrying in {retry_after}s")
                await asyncio.sleep(float(retry_after))
                continue

            description = body.get("description", f"HTTP {response.status_code}")
            logger.warning(f"Telegram API error on {method}: {description}")
            raise TransportError(
                f"Telegram API error on {method}: {description}",
                details={"error_code": body.get("error_code"), "method": method}
            )

        raise TransportError(f"Telegram API error on {method}: rate limited")

    async def send_text(self, chat_id, text, buttons=None, reply_keyboard=None) -> int:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": PARSE_MODE,
            "disable_web_page_preview": True,
        }
        if buttons is not None:
            payload["reply_markup"] = inline_keyboard_markup(buttons)
        elif reply_keyboard is not None:
            payload["reply_markup"] = reply_keyboard

        result = await self.call("sendMessage", payload)
        return int(result["message_id"])

    async def send_photo(self, chat_id, media_ref, caption=None, buttons=None) -> int:
        payload: Dict[str, Any] = {"chat_id": chat_id, "photo": media_ref}
        if caption:
            payload["caption"] = truncate(caption)
            payload["parse_mode"] = PARSE_MODE
        if buttons is not None:
            payload["reply_markup"] = inline_keyboard_markup(buttons)

        result = await self.call("sendPhoto", payload)
        return int(result["message_id"])

    async def send_media_group(self, chat_id, items) -> List[int]:
        media = []
        for item in items:
            entry: Dict[str, Any] = {"type": "photo", "media": item.media}
            if item.caption:
                entry["caption"] = truncate(item.caption)
                entry["parse_mode"] = PARSE_MODE
            media.append(entry)

        result = await self.call("sendMediaGroup", {"chat_id": chat_id, "media": media})
        return [int(message["message_id"]) for message in result]

    async def edit_message_controls(self, chat_id, message_id, buttons) -> None:
        await self.call("editMessageReplyMarkup", {
            "chat_id": chat_id,
            "message_id": message_id,
            "reply_markup": inline_keyboard_markup(buttons),
        })

    async def edit_message_text(self, chat_id, message_id, text) -> None:
        await self.call("editMessageText", {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": PARSE_MODE,
        })

    async def answer_interaction(self, interaction_id, text=None, show_alert=False) -> None:
        payload: Dict[str, Any] = {"callback_query_id": interaction_id}
        if text:
            payload["text"] = text
            payload["show_alert"] = show_alert
        await self.call("answerCallbackQuery", payload)

    async def get_member_status(self, chat_id, user_id) -> str:
        """
        Returns the chat member status ("member", "left", ...).
        """
        result = await self.call("getChatMember", {"chat_id": chat_id, "user_id": user_id})
        return result.get("status", "left")

    async def set_webhook(self, url: str, secret: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message", "callback_query"],
        }
        if secret:
            payload["secret_token"] = secret
        await self.call("setWebhook", payload)
        logger.info(f"Webhook set to {url}")

    async def delete_webhook(self) -> None:
        await self.call("deleteWebhook", {"drop_pending_updates": False})

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        # long poll: the HTTP timeout must outlast the server side wait
        return await self.call("getUpdates", payload, timeout=timeout + self.timeout)
