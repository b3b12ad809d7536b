from __future__ import annotations

import math
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .types import BUY, SELL, MarketRef, Trade, WalletActivity


def normalize_trade(record: dict[str, Any], market: MarketRef) -> Trade | None:
    timestamp = parse_timestamp_ms(record.get("timestamp"))
    if timestamp is None:
        return None

    side = normalize_side(record.get("side"))
    if side is None:
        return None

    size = _to_float(record.get("size"))
    price = _to_float(record.get("price"))
    amount = size * price
    if not math.isfinite(amount):
        amount = 0.0
    wallet = _string_or_none(
        record.get("taker") or record.get("proxyWallet") or record.get("actorId")
    )

    return Trade(
        timestamp=timestamp,
        market_id=market.market_id,
        market_name=market.name,
        market_slug=market.slug,
        outcome=_string_or_none(record.get("outcome")) or "Yes/No",
        side=side,
        amount_usd=amount,
        wallet=wallet or "Unknown",
        tx_hash=_string_or_none(record.get("transactionHash") or record.get("txHash")),
    )


def normalize_activity(record: dict[str, Any]) -> WalletActivity | None:
    fingerprint = _string_or_none(record.get("id")) or _string_or_none(
        record.get("transactionHash") or record.get("txHash")
    )
    if fingerprint is None:
        return None

    return WalletActivity(
        fingerprint=fingerprint,
        activity_type=str(record.get("type") or "").strip().upper(),
        side=str(record.get("side") or "").strip().upper(),
        size=_to_float(record.get("size")),
        price=_to_float(record.get("price")),
        outcome=_string_or_none(record.get("outcome")),
        title=_string_or_none(record.get("title")),
        slug=_string_or_none(record.get("slug")),
    )


def normalize_market(record: dict[str, Any]) -> MarketRef | None:
    market_id = _string_or_none(record.get("id"))
    if market_id is None:
        return None
    name = _string_or_none(record.get("question") or record.get("name") or record.get("title"))
    return MarketRef(
        market_id=market_id,
        name=name or f"Market {market_id}",
        slug=_string_or_none(record.get("slug")),
    )


def normalize_side(value: Any) -> str | None:
    text = str(value or "").strip().upper()
    if text == "BUY":
        return BUY
    if text == "SELL":
        return SELL
    return None


def parse_timestamp_ms(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return int(parsed.timestamp() * 1000)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None

    if not math.isfinite(number):
        return None

    # The data API reports seconds; some feeds already use milliseconds.
    if number < 10**12:
        number *= 1000
    return int(number)


def trade_key(trade: Trade) -> str:
    if trade.tx_hash:
        return f"{trade.tx_hash}_{trade.wallet}_{trade.outcome}_{trade.amount_usd:.6f}"
    return f"{trade.market_id}_{trade.timestamp}_{trade.wallet}_{trade.side}_{trade.amount_usd:.6f}"


class SeenTrades:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def first_sighting(self, trade: Trade) -> bool:
        now = self._clock()
        self._purge(now)
        key = trade_key(trade)
        if key in self._seen:
            return False
        self._seen[key] = now
        return True

    def _purge(self, now: float) -> None:
        cutoff = now - self.ttl_seconds
        while self._seen:
            first_key = next(iter(self._seen))
            if self._seen[first_key] >= cutoff:
                break
            self._seen.popitem(last=False)


def _to_float(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _string_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
