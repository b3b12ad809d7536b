from __future__ import annotations

from html import escape

from .types import Signal, SignalType, WalletChange

DEFAULT_MARKET_BASE = "https://polymarket.com/market"

_SIGNAL_TITLES = {
    SignalType.WOLF_PACK: "🚨 <b>Wolf Pack Cluster Detected</b>",
    SignalType.VOLUME_SURGE: "🌊 <b>High Volume Surge Detected</b>",
}


def short_address(address: str | None) -> str:
    if not address:
        return "Unknown"
    addr = address.strip()
    if len(addr) <= 12:
        return addr
    return f"{addr[:6]}...{addr[-4:]}"


def format_usd(amount: float) -> str:
    return f"${amount:,.0f}"


def format_ratio(ratio: float) -> str:
    if ratio > 100:
        return "MAX"
    return f"{ratio:.1f}"


def side_to_text(side: str) -> str:
    if (side or "").upper() == "BUY":
        return "🟢 Buy"
    return "🔴 Sell"


def build_market_link(base_url: str, slug_or_id: str | None) -> str | None:
    if not slug_or_id:
        return None
    return f"{base_url.rstrip('/')}/{slug_or_id}"


def format_signal_message(
    signal: Signal, market_base: str = DEFAULT_MARKET_BASE, window_seconds: int = 60
) -> str:
    title = _SIGNAL_TITLES.get(signal.signal_type, "⚠️ <b>Market Alert</b>")
    link = build_market_link(market_base, signal.market_slug or signal.market_id)

    lines = [
        f"{title}\n",
        f"🎯 <b>Market:</b> {escape(signal.market_name)}",
        f"📈 <b>Outcome:</b> {escape(signal.outcome)}",
        f"💰 <b>Total Vol:</b> {format_usd(signal.buy_volume)}",
        f"👥 <b>Unique Wallets:</b> {signal.unique_buyers}",
        f"⚖️ <b>Buy Pressure:</b> {format_ratio(signal.ratio)}x",
        f"⏱ <b>Time Window:</b> {window_seconds}s\n",
    ]
    if link:
        lines.append(f'<a href="{escape(link, quote=True)}">View Market</a>')
    return "\n".join(lines)


def format_wallet_message(change: WalletChange, market_base: str = DEFAULT_MARKET_BASE) -> str:
    activity = change.activity
    link = build_market_link(market_base, activity.slug)

    lines = [
        f"🔔 <b>{escape(change.wallet.name)} Alert</b>",
        f"Wallet: {escape(short_address(change.wallet.address))}",
        f"Action: {side_to_text(activity.side)}",
        f"Asset: {escape(activity.outcome or 'Position')}",
        f"Market: {escape(activity.title or 'Unknown market')}",
        f"Value: ${activity.value_usd:.2f}",
    ]
    if link:
        lines.append(f'<a href="{escape(link, quote=True)}">View Market</a>')
    return "\n".join(lines)


def format_watchlist_summary(found: int) -> str:
    if found == 0:
        return "✅ No new trades found since last check."
    noun = "trade" if found == 1 else "trades"
    return f"✅ Scan complete: {found} new {noun} reported above."
