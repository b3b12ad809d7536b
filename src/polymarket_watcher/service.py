from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from .config import Settings
from .conversation import CommandHandler, help_text
from .detector import SignalDetector, Thresholds
from .dispatcher import AlertDispatcher
from .formatting import format_signal_message
from .ingest import SeenTrades, normalize_trade
from .polymarket_client import PolymarketClient
from .storage import build_store
from .telegram_notifier import TelegramNotifier
from .tracker import WalletChangeTracker
from .types import BUY, MarketRef, Signal, Trade

logger = logging.getLogger(__name__)


@dataclass
class Metrics:
    global_scans: int = 0
    markets_polled: int = 0
    fetch_errors: int = 0
    trades_ingested: int = 0
    signals_emitted: int = 0


class WatcherService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.metrics = Metrics()
        self.detector = SignalDetector(
            Thresholds(
                cluster_min_usd=settings.cluster_min_usd,
                surge_min_usd=settings.surge_min_usd,
                min_unique_buyers=settings.min_unique_buyers,
                min_buy_ratio=settings.min_buy_ratio,
            ),
            window_ms=settings.window_seconds * 1000,
            cooldown_ms=settings.cooldown_seconds * 1000,
        )
        self.seen = SeenTrades(settings.seen_trade_ttl_seconds)
        self.polymarket = PolymarketClient(settings.poly_gamma_base, settings.poly_data_base)
        self.store = build_store(
            settings.store_backend, settings.store_path, settings.max_wallets_per_user
        )
        self.notifier = TelegramNotifier(settings.telegram_bot_token)
        self.dispatcher = AlertDispatcher(self.notifier, self.store)
        self.tracker = WalletChangeTracker(
            self.polymarket, self.store, self.dispatcher, settings.poly_market_base
        )
        self.commands = CommandHandler(
            self.notifier,
            self.store,
            self.tracker,
            help_text(settings.cluster_min_usd, settings.surge_min_usd, settings.hot_markets_limit),
        )
        self._update_offset: int | None = None

    async def run(self) -> None:
        tasks = [
            asyncio.create_task(
                self._every(self.settings.global_scan_interval_seconds, self.scan_global_market)
            ),
            asyncio.create_task(
                self._every(self.settings.wallet_scan_interval_seconds, self.scan_watchlists)
            ),
            asyncio.create_task(self._updates_loop()),
            asyncio.create_task(self._health_loop()),
        ]
        logger.info(
            "Watcher running (cluster>%.0f surge>%.0f markets=%d)",
            self.settings.cluster_min_usd,
            self.settings.surge_min_usd,
            self.settings.hot_markets_limit,
        )
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.notifier.close()
            await self.polymarket.close()
            await self.store.close()

    async def scan_global_market(self) -> list[Signal]:
        self.metrics.global_scans += 1
        try:
            markets = await self.polymarket.list_hot_markets(self.settings.hot_markets_limit)
        except (httpx.HTTPError, ValueError) as exc:
            self.metrics.fetch_errors += 1
            logger.warning("Hot market listing failed: %s", exc)
            return []

        semaphore = asyncio.Semaphore(self.settings.fetch_concurrency)
        batches = await asyncio.gather(
            *(self._fetch_market_trades(market, semaphore) for market in markets)
        )

        for batch in batches:
            self.ingest(batch)

        signals = self.detector.evaluate()
        for signal in signals:
            self.metrics.signals_emitted += 1
            text = format_signal_message(
                signal, self.settings.poly_market_base, self.settings.window_seconds
            )
            await self.dispatcher.broadcast(text)
        return signals

    def ingest(self, trades: list[Trade]) -> int:
        added = 0
        for trade in trades:
            if trade.side != BUY and not self.settings.forward_sells:
                continue
            if not self.seen.first_sighting(trade):
                continue
            self.detector.add(trade)
            added += 1
        self.metrics.trades_ingested += added
        return added

    async def _fetch_market_trades(
        self, market: MarketRef, semaphore: asyncio.Semaphore
    ) -> list[Trade]:
        async with semaphore:
            try:
                rows = await self.polymarket.list_recent_trades(
                    market, self.settings.trades_per_market
                )
                trades = [
                    trade
                    for trade in (normalize_trade(row, market) for row in rows)
                    if trade is not None
                ]
            except (httpx.HTTPError, ValueError, ArithmeticError) as exc:
                self.metrics.fetch_errors += 1
                logger.warning("Trade fetch failed for market %s: %s", market.market_id, exc)
                return []

        self.metrics.markets_polled += 1
        return trades

    async def scan_watchlists(self) -> int:
        return await self.tracker.scan_all()

    async def poll_updates(self) -> int:
        updates = await self.notifier.get_updates(self._update_offset)
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self._update_offset = update_id + 1
            try:
                await self.commands.handle_update(update)
            except Exception as exc:
                logger.exception("Failed to handle update %s: %s", update_id, exc)
        return len(updates)

    async def _updates_loop(self) -> None:
        backoff = 1.0
        while True:
            try:
                await self.poll_updates()
                backoff = 1.0
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Update polling failed (%s). Retrying in %.1fs", exc, backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, 30.0)

    async def _every(self, interval: float, job: Callable[[], Awaitable[object]]) -> None:
        while True:
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Periodic job %s failed: %s", job.__name__, exc)
            await asyncio.sleep(interval)

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_log_interval_seconds)
            logger.info(
                (
                    "health global_scans=%d markets_polled=%d fetch_errors=%d "
                    "trades_ingested=%d window=%d signals=%d wallet_alerts=%d "
                    "wallet_errors=%d alerts_sent=%d alerts_failed=%d"
                ),
                self.metrics.global_scans,
                self.metrics.markets_polled,
                self.metrics.fetch_errors,
                self.metrics.trades_ingested,
                len(self.detector.window),
                self.metrics.signals_emitted,
                self.tracker.alerts,
                self.tracker.errors,
                self.dispatcher.sent,
                self.dispatcher.failed,
            )
