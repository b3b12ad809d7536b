from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import httpx

from .dispatcher import AlertDispatcher
from .formatting import DEFAULT_MARKET_BASE, format_wallet_message, format_watchlist_summary
from .storage import StorageError, WalletStore
from .types import WalletActivity, WalletChange, WatchedWallet

logger = logging.getLogger(__name__)

EMPTY_WATCHLIST_TEXT = "📭 Your watchlist is empty."


class ActivitySource(Protocol):
    async def latest_activity(self, address: str) -> WalletActivity | None: ...


class WalletChangeTracker:
    def __init__(
        self,
        source: ActivitySource,
        store: WalletStore,
        dispatcher: AlertDispatcher,
        market_base: str = DEFAULT_MARKET_BASE,
    ) -> None:
        self.source = source
        self.store = store
        self.dispatcher = dispatcher
        self.market_base = market_base
        self.alerts = 0
        self.errors = 0
        self._scan_locks: dict[str, asyncio.Lock] = {}

    async def check_for_update(self, recipient_id: str, wallet: WatchedWallet) -> WalletChange | None:
        activity = await self.source.latest_activity(wallet.address)
        if activity is None:
            return None

        if wallet.last_fingerprint is None:
            logger.info("Initial sync for %s (%s)", wallet.name, wallet.address)
            await self.store.set_fingerprint(recipient_id, wallet.address, activity.fingerprint)
            return None

        if wallet.last_fingerprint == activity.fingerprint:
            return None

        change = None
        if activity.is_trade:
            change = WalletChange(recipient_id=recipient_id, wallet=wallet, activity=activity)
            await self.dispatcher.send(recipient_id, format_wallet_message(change, self.market_base))
            self.alerts += 1
        await self.store.set_fingerprint(recipient_id, wallet.address, activity.fingerprint)
        return change

    async def scan_recipient(self, recipient_id: str, manual: bool = False) -> int:
        # Manual and periodic scans of one watchlist must not read the same fingerprints.
        lock = self._scan_locks.setdefault(recipient_id, asyncio.Lock())
        async with lock:
            return await self._scan_recipient(recipient_id, manual)

    async def _scan_recipient(self, recipient_id: str, manual: bool) -> int:
        try:
            wallets = await self.store.get_wallets(recipient_id)
        except StorageError as exc:
            logger.warning("Cannot load watchlist for %s: %s", recipient_id, exc)
            wallets = None

        if not wallets:
            if manual:
                text = EMPTY_WATCHLIST_TEXT if wallets is not None else format_watchlist_summary(0)
                await self.dispatcher.send(recipient_id, text)
            return 0

        found = 0
        for wallet in wallets:
            try:
                if await self.check_for_update(recipient_id, wallet) is not None:
                    found += 1
            except (httpx.HTTPError, ValueError, StorageError) as exc:
                self.errors += 1
                logger.warning("Error scanning wallet %s (%s): %s", wallet.name, wallet.address, exc)

        if manual:
            await self.dispatcher.send(recipient_id, format_watchlist_summary(found))
        return found

    async def scan_all(self) -> int:
        try:
            recipients = await self.store.list_recipients()
        except StorageError as exc:
            logger.warning("Cannot list recipients: %s", exc)
            return 0

        total = 0
        for recipient_id in recipients:
            total += await self.scan_recipient(recipient_id)
        return total
