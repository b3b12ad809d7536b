from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    poly_gamma_base: str
    poly_data_base: str
    poly_market_base: str
    cluster_min_usd: float
    surge_min_usd: float
    min_unique_buyers: int
    min_buy_ratio: float
    window_seconds: int
    cooldown_seconds: int
    hot_markets_limit: int
    trades_per_market: int
    forward_sells: bool
    fetch_concurrency: int
    global_scan_interval_seconds: float
    wallet_scan_interval_seconds: float
    max_wallets_per_user: int
    store_backend: str
    store_path: str
    seen_trade_ttl_seconds: int
    health_log_interval_seconds: int
    log_level: str


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        telegram_bot_token=_required("TELEGRAM_BOT_TOKEN"),
        poly_gamma_base=os.getenv("POLY_GAMMA_BASE", "https://gamma-api.polymarket.com").strip(),
        poly_data_base=os.getenv("POLY_DATA_BASE", "https://data-api.polymarket.com").strip(),
        poly_market_base=os.getenv("POLY_MARKET_BASE", "https://polymarket.com/market").strip(),
        cluster_min_usd=_optional_float("CLUSTER_MIN_USD", 10000.0),
        surge_min_usd=_optional_float("SURGE_MIN_USD", 15000.0),
        min_unique_buyers=_optional_int("MIN_UNIQUE_BUYERS", 3),
        min_buy_ratio=_optional_float("MIN_BUY_RATIO", 3.0),
        window_seconds=_optional_int("WINDOW_SECONDS", 60),
        cooldown_seconds=_optional_int("COOLDOWN_SECONDS", 300),
        hot_markets_limit=_optional_int("HOT_MARKETS_LIMIT", 20),
        trades_per_market=_optional_int("TRADES_PER_MARKET", 3),
        forward_sells=_optional_bool("FORWARD_SELLS", False),
        fetch_concurrency=max(1, _optional_int("FETCH_CONCURRENCY", 8)),
        global_scan_interval_seconds=_optional_float("GLOBAL_SCAN_INTERVAL_SECONDS", 15.0),
        wallet_scan_interval_seconds=_optional_float("WALLET_SCAN_INTERVAL_SECONDS", 15.0),
        max_wallets_per_user=_optional_int("MAX_WALLETS_PER_USER", 5),
        store_backend=os.getenv("STORE_BACKEND", "json").strip().lower(),
        store_path=os.getenv("STORE_PATH", "watchlists.json").strip(),
        seen_trade_ttl_seconds=_optional_int("SEEN_TRADE_TTL_SECONDS", 600),
        health_log_interval_seconds=_optional_int("HEALTH_LOG_INTERVAL_SECONDS", 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
