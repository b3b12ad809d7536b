from __future__ import annotations

from typing import Any

import httpx

from .ingest import normalize_activity, normalize_market
from .types import MarketRef, WalletActivity


class PolymarketClient:
    def __init__(
        self,
        gamma_api_base: str = "https://gamma-api.polymarket.com",
        data_api_base: str = "https://data-api.polymarket.com",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.gamma_api_base = gamma_api_base.rstrip("/")
        self.data_api_base = data_api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def list_hot_markets(self, limit: int) -> list[MarketRef]:
        data = await self._get(
            f"{self.gamma_api_base}/markets",
            params={
                "limit": limit,
                "active": "true",
                "closed": "false",
                "order": "volume24hr",
                "ascending": "false",
            },
        )
        markets: list[MarketRef] = []
        for row in _rows(data):
            market = normalize_market(row)
            if market is not None:
                markets.append(market)
        return markets

    async def list_recent_trades(self, market: MarketRef, limit: int) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": limit, "type": "TRADE"}
        if market.slug:
            params["slug"] = market.slug
        else:
            params["market"] = market.market_id
        data = await self._get(f"{self.data_api_base}/activity", params=params)
        return _rows(data)

    async def latest_activity(self, address: str) -> WalletActivity | None:
        data = await self._get(
            f"{self.data_api_base}/activity",
            params={
                "user": address,
                "limit": 1,
                "sortBy": "TIMESTAMP",
                "sortDirection": "DESC",
            },
        )
        rows = _rows(data)
        if not rows:
            return None
        activity = normalize_activity(rows[0])
        if activity is None:
            raise ValueError(f"Activity record for {address} has no id or transaction hash")
        return activity

    async def _get(self, url: str, params: dict[str, Any]) -> Any:
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()
        return resp.json()


def _rows(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("data", [])
    if not isinstance(data, list):
        raise ValueError(f"Unexpected response shape: {type(data).__name__}")
    return [row for row in data if isinstance(row, dict)]
