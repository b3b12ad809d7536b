from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

BUY = "Buy"
SELL = "Sell"


class SignalType(str, Enum):
    WOLF_PACK = "WOLF_PACK"
    VOLUME_SURGE = "VOLUME_SURGE"


@dataclass(frozen=True)
class MarketRef:
    market_id: str
    name: str
    slug: str | None


@dataclass(frozen=True)
class Trade:
    # Upstream trade time in epoch milliseconds.
    timestamp: int
    market_id: str
    market_name: str
    market_slug: str | None
    outcome: str
    side: str
    amount_usd: float
    wallet: str
    tx_hash: str | None = None


@dataclass(frozen=True)
class Signal:
    signal_type: SignalType
    market_id: str
    market_name: str
    market_slug: str | None
    outcome: str
    buy_volume: float
    unique_buyers: int
    ratio: float


@dataclass(frozen=True)
class WalletActivity:
    fingerprint: str
    activity_type: str
    side: str
    size: float
    price: float
    outcome: str | None
    title: str | None
    slug: str | None

    @property
    def is_trade(self) -> bool:
        return self.activity_type.upper() == "TRADE"

    @property
    def value_usd(self) -> float:
        return self.size * self.price


@dataclass(frozen=True)
class WatchedWallet:
    address: str
    name: str
    last_fingerprint: str | None = None


@dataclass(frozen=True)
class WalletChange:
    recipient_id: str
    wallet: WatchedWallet
    activity: WalletActivity
