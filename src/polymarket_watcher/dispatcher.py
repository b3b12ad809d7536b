from __future__ import annotations

import logging
from typing import Any, Protocol

from .storage import StorageError, WalletStore

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    async def send(
        self,
        chat_id: str,
        text: str,
        rich_format: bool = True,
        suppress_link_preview: bool = True,
        parse_mode: str = "HTML",
        reply_markup: dict[str, Any] | None = None,
    ) -> None: ...


class AlertDispatcher:
    def __init__(self, sender: MessageSender, store: WalletStore) -> None:
        self.sender = sender
        self.store = store
        self.sent = 0
        self.failed = 0

    async def send(self, recipient_id: str, text: str) -> bool:
        try:
            await self.sender.send(recipient_id, text, rich_format=True, suppress_link_preview=True)
        except Exception as exc:
            self.failed += 1
            logger.exception("Failed to deliver alert to %s: %s", recipient_id, exc)
            return False
        self.sent += 1
        return True

    async def broadcast(self, text: str) -> int:
        try:
            recipients = await self.store.list_recipients()
        except StorageError as exc:
            logger.warning("Cannot list recipients for broadcast: %s", exc)
            return 0

        delivered = 0
        for recipient_id in recipients:
            if await self.send(recipient_id, text):
                delivered += 1
        return delivered
