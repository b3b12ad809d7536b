from __future__ import annotations

from typing import Any

from polymarket_watcher.types import BUY, Trade


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class DummySender:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.markups: list[dict[str, Any] | None] = []
        self.answered: list[tuple[str, str | None]] = []
        self.deleted: list[tuple[str, int]] = []

    async def send(
        self,
        chat_id: str,
        text: str,
        rich_format: bool = True,
        suppress_link_preview: bool = True,
        parse_mode: str = "HTML",
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        self.messages.append((chat_id, text))
        self.markups.append(reply_markup)

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        self.answered.append((callback_query_id, text))

    async def delete_message(self, chat_id: str, message_id: int) -> None:
        self.deleted.append((chat_id, message_id))

    async def close(self) -> None:
        return None


def make_trade(
    timestamp: int,
    amount: float,
    wallet: str = "0xaaa",
    market_id: str = "m1",
    side: str = BUY,
) -> Trade:
    return Trade(
        timestamp=timestamp,
        market_id=market_id,
        market_name=f"Market {market_id}",
        market_slug=f"market-{market_id}",
        outcome="Yes",
        side=side,
        amount_usd=amount,
        wallet=wallet,
    )
