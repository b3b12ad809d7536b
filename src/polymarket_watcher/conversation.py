from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Any

from .formatting import short_address
from .storage import StorageError, WalletStore, WatchlistFullError
from .telegram_notifier import TelegramNotifier
from .tracker import EMPTY_WATCHLIST_TEXT, WalletChangeTracker
from .types import WatchedWallet

logger = logging.getLogger(__name__)

ADD_WALLET = "➕ Add Wallet"
VIEW_WATCHLIST = "📋 View Watchlist"
SCAN_LIST = "🚀 Scan My List"
HELP = "❓ Help"
REMOVE_PREFIX = "DEL_"

MAIN_KEYBOARD = {
    "keyboard": [[ADD_WALLET, VIEW_WATCHLIST], [SCAN_LIST, HELP]],
    "resize_keyboard": True,
    "is_persistent": True,
}

WELCOME_TEXT = (
    "🏰 <b>Welcome to Alpha Scout.</b>\n\n"
    "<b>System Status:</b>\n"
    "🟢 <b>Sentinel:</b> Active (Private Watchlist)\n"
    "🐺 <b>Wolf Pack:</b> Active (Global Cluster Detection)\n"
    "🌊 <b>Surge:</b> Active (Whale Volume Tracking)\n\n"
    "<i>Select a command below to begin.</i>"
)


def help_text(cluster_min_usd: float, surge_min_usd: float, hot_markets: int) -> str:
    return (
        "ℹ️ <b>How to use Alpha Scout:</b>\n\n"
        "1️⃣ <b>Sentinel (Private Spy):</b>\n"
        "Click 'Add Wallet' to track a specific person. You get an alert whenever they trade.\n\n"
        "2️⃣ <b>Wolf Pack (Global Radar):</b>\n"
        f"The bot automatically scans the top {hot_markets} markets. If 3+ strangers "
        f"coordinate a buy over ${cluster_min_usd:,.0f}, everyone gets an alert.\n\n"
        "3️⃣ <b>Volume Surge:</b>\n"
        f"Automatic alert if buying in one market tops ${surge_min_usd:,.0f} within a minute."
    )


class Step(str, Enum):
    IDLE = "IDLE"
    AWAITING_ADDRESS = "AWAITING_ADDRESS"
    AWAITING_NAME = "AWAITING_NAME"


@dataclass(frozen=True)
class Conversation:
    step: Step = Step.IDLE
    pending_address: str | None = None


IDLE = Conversation()


def advance(state: Conversation, text: str) -> tuple[Conversation, WatchedWallet | None]:
    """Apply one message to a conversation; returns the new state and a completed wallet."""
    if text == ADD_WALLET:
        return Conversation(Step.AWAITING_ADDRESS), None
    if state.step is Step.AWAITING_ADDRESS:
        return Conversation(Step.AWAITING_NAME, pending_address=text.strip()), None
    if state.step is Step.AWAITING_NAME and state.pending_address:
        name = text.strip() or short_address(state.pending_address)
        return IDLE, WatchedWallet(address=state.pending_address, name=name)
    return IDLE, None


class CommandHandler:
    def __init__(
        self,
        notifier: TelegramNotifier,
        store: WalletStore,
        tracker: WalletChangeTracker,
        help_message: str,
    ) -> None:
        self.notifier = notifier
        self.store = store
        self.tracker = tracker
        self.help_message = help_message
        self._conversations: dict[str, Conversation] = {}

    def state_of(self, chat_id: str) -> Conversation:
        return self._conversations.get(chat_id, IDLE)

    async def handle_update(self, update: dict[str, Any]) -> None:
        if "callback_query" in update:
            await self._handle_callback(update["callback_query"])
            return

        message = update.get("message")
        if not isinstance(message, dict):
            return
        chat_id = str(message.get("chat", {}).get("id", "")).strip()
        text = message.get("text")
        if not chat_id or not isinstance(text, str):
            return
        await self.handle_text(chat_id, text)

    async def handle_text(self, chat_id: str, text: str) -> None:
        if text.startswith("/start"):
            self._conversations.pop(chat_id, None)
            try:
                await self.store.register_recipient(chat_id)
            except StorageError as exc:
                logger.warning("Cannot register %s: %s", chat_id, exc)
            await self.notifier.send(chat_id, WELCOME_TEXT, reply_markup=MAIN_KEYBOARD)
            return
        if text.startswith("/"):
            return

        state = self.state_of(chat_id)
        if text == ADD_WALLET or state.step is not Step.IDLE:
            await self._advance_conversation(chat_id, state, text)
            return

        if text == VIEW_WATCHLIST:
            await self._show_watchlist(chat_id)
        elif text == SCAN_LIST:
            await self.tracker.scan_recipient(chat_id, manual=True)
        elif text == HELP:
            await self.notifier.send(chat_id, self.help_message)

    async def _advance_conversation(self, chat_id: str, state: Conversation, text: str) -> None:
        new_state, wallet = advance(state, text)
        if new_state is IDLE:
            self._conversations.pop(chat_id, None)
        else:
            self._conversations[chat_id] = new_state

        if new_state.step is Step.AWAITING_ADDRESS:
            await self.notifier.send(chat_id, "🕵️ <b>Paste the Polymarket Address:</b>")
        elif new_state.step is Step.AWAITING_NAME:
            await self.notifier.send(chat_id, "🏷️ <b>Give this whale a name:</b>")
        elif wallet is not None:
            await self._add_wallet(chat_id, wallet)

    async def _add_wallet(self, chat_id: str, wallet: WatchedWallet) -> None:
        try:
            await self.store.add_wallet(chat_id, wallet)
        except WatchlistFullError as exc:
            await self.notifier.send(chat_id, f"⚠️ Limit Reached (Max {exc.limit} Wallets).")
            return
        except StorageError as exc:
            logger.warning("Cannot add wallet for %s: %s", chat_id, exc)
            await self.notifier.send(chat_id, "❌ Could not save this wallet, please try again.")
            return
        await self.notifier.send(
            chat_id, f"✅ <b>Added!</b>\nNow tracking: <b>{escape(wallet.name)}</b>"
        )

    async def _show_watchlist(self, chat_id: str) -> None:
        try:
            wallets = await self.store.get_wallets(chat_id)
        except StorageError as exc:
            logger.warning("Cannot load watchlist for %s: %s", chat_id, exc)
            wallets = []
        if not wallets:
            await self.notifier.send(chat_id, EMPTY_WATCHLIST_TEXT)
            return
        buttons = [
            [{"text": f"🗑 Remove {w.name}", "callback_data": f"{REMOVE_PREFIX}{w.address}"}]
            for w in wallets
        ]
        await self.notifier.send(
            chat_id,
            "📋 <b>Your Watchlist:</b>",
            reply_markup={"inline_keyboard": buttons},
        )

    async def _handle_callback(self, query: dict[str, Any]) -> None:
        data = str(query.get("data") or "")
        if not data.startswith(REMOVE_PREFIX):
            return
        message = query.get("message") or {}
        chat_id = str(message.get("chat", {}).get("id", "")).strip()
        address = data[len(REMOVE_PREFIX):]

        try:
            removed = await self.store.remove_wallet(chat_id, address)
        except StorageError as exc:
            logger.warning("Cannot remove %s for %s: %s", address, chat_id, exc)
            removed = False

        await self.notifier.answer_callback_query(
            str(query.get("id", "")), "Deleted" if removed else "Not found"
        )
        message_id = message.get("message_id")
        if removed and message_id is not None:
            await self.notifier.delete_message(chat_id, int(message_id))
