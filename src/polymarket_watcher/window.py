from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from .types import BUY, Trade

WINDOW_MS = 60_000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MarketPartition:
    market_id: str
    latest: Trade
    buys: list[Trade] = field(default_factory=list)
    sells: list[Trade] = field(default_factory=list)

    @property
    def buy_volume(self) -> float:
        return sum(t.amount_usd for t in self.buys)

    @property
    def sell_volume(self) -> float:
        return sum(t.amount_usd for t in self.sells)

    @property
    def unique_buyers(self) -> int:
        return len({t.wallet for t in self.buys})


class TradeWindow:
    """Trades seen within the last ``horizon_ms``, pruned on every add."""

    def __init__(self, horizon_ms: int = WINDOW_MS, clock: Callable[[], int] = now_ms) -> None:
        self.horizon_ms = horizon_ms
        self._clock = clock
        self._trades: list[Trade] = []

    def __len__(self) -> int:
        return len(self._trades)

    def add(self, trade: Trade) -> None:
        self._trades.append(trade)
        now = self._clock()
        self._trades = [t for t in self._trades if now - t.timestamp <= self.horizon_ms]

    def clear(self) -> None:
        self._trades = []

    def snapshot(self) -> tuple[Trade, ...]:
        return tuple(self._trades)

    def partitions(self) -> dict[str, MarketPartition]:
        groups: dict[str, MarketPartition] = {}
        for trade in self._trades:
            group = groups.get(trade.market_id)
            if group is None:
                group = MarketPartition(market_id=trade.market_id, latest=trade)
                groups[trade.market_id] = group
            elif trade.timestamp >= group.latest.timestamp:
                group.latest = trade

            if trade.side == BUY:
                group.buys.append(trade)
            else:
                group.sells.append(trade)
        return groups
