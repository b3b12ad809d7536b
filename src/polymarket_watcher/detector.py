from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .types import Signal, SignalType, Trade
from .window import WINDOW_MS, MarketPartition, TradeWindow, now_ms

logger = logging.getLogger(__name__)

COOLDOWN_MS = 300_000


@dataclass(frozen=True)
class Thresholds:
    cluster_min_usd: float = 10_000.0
    surge_min_usd: float = 15_000.0
    min_unique_buyers: int = 3
    min_buy_ratio: float = 3.0


def buy_pressure_ratio(buy_volume: float, sell_volume: float) -> float:
    if sell_volume == 0:
        return buy_volume
    return buy_volume / sell_volume


def classify(buy_volume: float, unique_buyers: int, thresholds: Thresholds) -> SignalType | None:
    if unique_buyers >= thresholds.min_unique_buyers and buy_volume > thresholds.cluster_min_usd:
        return SignalType.WOLF_PACK
    if buy_volume > thresholds.surge_min_usd:
        return SignalType.VOLUME_SURGE
    return None


class SignalDetector:
    """Owns the trade window and the per-market alert cooldowns.

    Not safe for concurrent use: ``add`` and ``evaluate`` must be driven by a
    single task.
    """

    def __init__(
        self,
        thresholds: Thresholds | None = None,
        window_ms: int = WINDOW_MS,
        cooldown_ms: int = COOLDOWN_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.thresholds = thresholds or Thresholds()
        self.cooldown_ms = cooldown_ms
        self._clock = clock
        self.window = TradeWindow(window_ms, clock=clock)
        self._last_alert: dict[str, int] = {}

    def add(self, trade: Trade) -> None:
        self.window.add(trade)

    def reset(self) -> None:
        self.window.clear()
        self._last_alert.clear()

    def last_alert_at(self, market_id: str) -> int | None:
        return self._last_alert.get(market_id)

    def in_cooldown(self, market_id: str, now: int) -> bool:
        last = self._last_alert.get(market_id)
        return last is not None and now - last < self.cooldown_ms

    def evaluate(self) -> list[Signal]:
        now = self._clock()
        signals: list[Signal] = []

        for market_id, partition in self.window.partitions().items():
            if self.in_cooldown(market_id, now):
                continue

            signal = self._evaluate_partition(partition)
            if signal is None:
                continue

            self._last_alert[market_id] = now
            logger.info(
                "Signal %s market=%s buy_vol=%.2f buyers=%d ratio=%.2f",
                signal.signal_type.value,
                market_id,
                signal.buy_volume,
                signal.unique_buyers,
                signal.ratio,
            )
            signals.append(signal)

        return signals

    def _evaluate_partition(self, partition: MarketPartition) -> Signal | None:
        buy_volume = partition.buy_volume
        sell_volume = partition.sell_volume

        ratio = buy_pressure_ratio(buy_volume, sell_volume)
        if sell_volume > 0 and ratio < self.thresholds.min_buy_ratio:
            return None

        unique_buyers = partition.unique_buyers
        signal_type = classify(buy_volume, unique_buyers, self.thresholds)
        if signal_type is None:
            return None

        meta = partition.latest
        return Signal(
            signal_type=signal_type,
            market_id=partition.market_id,
            market_name=meta.market_name,
            market_slug=meta.market_slug,
            outcome=meta.outcome,
            buy_volume=buy_volume,
            unique_buyers=unique_buyers,
            ratio=ratio,
        )
