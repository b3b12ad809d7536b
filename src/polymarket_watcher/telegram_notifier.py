from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TelegramError(RuntimeError):
    pass


class TelegramNotifier:
    def __init__(self, bot_token: str, timeout: float = 15.0, retries: int = 4) -> None:
        self._base_url = f"https://api.telegram.org/bot{bot_token}"
        self._client = httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout
        self.retries = retries

    async def close(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        chat_id: str,
        text: str,
        rich_format: bool = True,
        suppress_link_preview: bool = True,
        parse_mode: str = "HTML",
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": suppress_link_preview,
        }
        if rich_format:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        await self._call("sendMessage", payload)

    async def get_updates(self, offset: int | None = None, poll_timeout: int = 25) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {
            "timeout": poll_timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload, timeout=poll_timeout + self.timeout)
        return result if isinstance(result, list) else []

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def delete_message(self, chat_id: str, message_id: int) -> None:
        await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def _call(self, method: str, payload: dict[str, Any], timeout: float | None = None) -> Any:
        delay = 1.0

        for attempt in range(self.retries):
            try:
                response = await self._client.post(
                    f"{self._base_url}/{method}",
                    json=payload,
                    timeout=timeout if timeout is not None else self.timeout,
                )

                if response.status_code == 429:
                    retry_after = 2.0
                    try:
                        body = response.json()
                        retry_after = float(
                            body.get("parameters", {}).get("retry_after", retry_after)
                        )
                    except (ValueError, TypeError, AttributeError):
                        pass
                    logger.warning("Telegram rate limited. Sleeping %.1fs", retry_after)
                    await asyncio.sleep(retry_after)
                    continue

                response.raise_for_status()
                data = response.json()
                if not data.get("ok", False):
                    raise TelegramError(f"Telegram {method} failed: {data}")
                return data.get("result")
            except (httpx.HTTPError, ValueError, TelegramError) as exc:
                if attempt == self.retries - 1:
                    raise
                logger.warning("Telegram %s attempt %d failed: %s", method, attempt + 1, exc)
                await asyncio.sleep(delay)
                delay *= 2

        raise TelegramError(f"Telegram {method} gave up after {self.retries} attempts")
