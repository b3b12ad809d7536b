from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any

from .types import WatchedWallet

MAX_WALLETS_PER_USER = 5


class StorageError(RuntimeError):
    pass


class WatchlistFullError(Exception):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Watchlist limit reached ({limit} wallets)")
        self.limit = limit


class WalletStore(ABC):
    @abstractmethod
    async def list_recipients(self) -> list[str]: ...

    @abstractmethod
    async def register_recipient(self, recipient_id: str) -> None: ...

    @abstractmethod
    async def get_wallets(self, recipient_id: str) -> list[WatchedWallet]: ...

    @abstractmethod
    async def add_wallet(self, recipient_id: str, wallet: WatchedWallet) -> None: ...

    @abstractmethod
    async def remove_wallet(self, recipient_id: str, address: str) -> bool: ...

    @abstractmethod
    async def set_fingerprint(self, recipient_id: str, address: str, fingerprint: str) -> None: ...

    async def close(self) -> None:
        return None


class MemoryWalletStore(WalletStore):
    def __init__(self, max_wallets: int = MAX_WALLETS_PER_USER) -> None:
        self.max_wallets = max_wallets
        self._watchlists: dict[str, list[WatchedWallet]] = {}
        self._lock = asyncio.Lock()

    async def list_recipients(self) -> list[str]:
        return list(self._watchlists)

    async def register_recipient(self, recipient_id: str) -> None:
        async with self._lock:
            if recipient_id not in self._watchlists:
                self._commit(recipient_id, [])

    async def get_wallets(self, recipient_id: str) -> list[WatchedWallet]:
        return list(self._watchlists.get(recipient_id, []))

    async def add_wallet(self, recipient_id: str, wallet: WatchedWallet) -> None:
        async with self._lock:
            wallets = self._watchlists.get(recipient_id, [])
            if len(wallets) >= self.max_wallets:
                raise WatchlistFullError(self.max_wallets)
            self._commit(recipient_id, [*wallets, wallet])

    async def remove_wallet(self, recipient_id: str, address: str) -> bool:
        async with self._lock:
            wallets = self._watchlists.get(recipient_id, [])
            kept = [w for w in wallets if w.address != address]
            if len(kept) == len(wallets):
                return False
            self._commit(recipient_id, kept)
            return True

    async def set_fingerprint(self, recipient_id: str, address: str, fingerprint: str) -> None:
        async with self._lock:
            wallets = self._watchlists.get(recipient_id, [])
            self._commit(
                recipient_id,
                [
                    replace(w, last_fingerprint=fingerprint) if w.address == address else w
                    for w in wallets
                ],
            )

    def _commit(self, recipient_id: str, wallets: list[WatchedWallet]) -> None:
        # The new state only becomes visible once the backend has accepted it.
        updated = {**self._watchlists, recipient_id: wallets}
        self._persist(updated)
        self._watchlists = updated

    def _persist(self, watchlists: dict[str, list[WatchedWallet]]) -> None:
        return None


class JsonFileWalletStore(MemoryWalletStore):
    def __init__(self, path: str | Path, max_wallets: int = MAX_WALLETS_PER_USER) -> None:
        super().__init__(max_wallets)
        self.path = Path(path)
        self._watchlists = self._load()

    def _load(self) -> dict[str, list[WatchedWallet]]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read watchlist store {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageError(f"Watchlist store {self.path} must contain a JSON object")

        out: dict[str, list[WatchedWallet]] = {}
        for recipient_id, rows in raw.items():
            if not isinstance(rows, list):
                continue
            out[str(recipient_id)] = [
                _wallet_from_dict(row) for row in rows if isinstance(row, dict) and row.get("address")
            ]
        return out

    def _persist(self, watchlists: dict[str, list[WatchedWallet]]) -> None:
        payload = {
            recipient_id: [_wallet_to_dict(w) for w in wallets]
            for recipient_id, wallets in watchlists.items()
        }
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".watchlists-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise StorageError(f"Cannot write watchlist store {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)


def _wallet_from_dict(row: dict[str, Any]) -> WatchedWallet:
    return WatchedWallet(
        address=str(row["address"]),
        name=str(row.get("name") or row["address"]),
        last_fingerprint=row.get("last_fingerprint") or None,
    )


def _wallet_to_dict(wallet: WatchedWallet) -> dict[str, Any]:
    return {
        "address": wallet.address,
        "name": wallet.name,
        "last_fingerprint": wallet.last_fingerprint,
    }


def build_store(backend: str, path: str, max_wallets: int = MAX_WALLETS_PER_USER) -> WalletStore:
    kind = backend.strip().lower()
    if kind == "memory":
        return MemoryWalletStore(max_wallets)
    if kind == "json":
        return JsonFileWalletStore(path, max_wallets)
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")
