import asyncio
import json

import pytest

from polymarket_watcher.storage import (
    JsonFileWalletStore,
    MemoryWalletStore,
    StorageError,
    WatchlistFullError,
    build_store,
)
from polymarket_watcher.types import WatchedWallet


def test_memory_store_enforces_capacity() -> None:
    async def scenario() -> None:
        store = MemoryWalletStore(max_wallets=5)
        for i in range(5):
            await store.add_wallet("42", WatchedWallet(f"0x{i}", f"w{i}"))
        with pytest.raises(WatchlistFullError):
            await store.add_wallet("42", WatchedWallet("0x9", "w9"))
        assert len(await store.get_wallets("42")) == 5

    asyncio.run(scenario())


def test_memory_store_remove_and_fingerprint() -> None:
    async def scenario() -> None:
        store = MemoryWalletStore()
        await store.add_wallet("42", WatchedWallet("0xa", "A"))
        await store.add_wallet("42", WatchedWallet("0xb", "B"))
        await store.set_fingerprint("42", "0xb", "tx9")

        wallets = await store.get_wallets("42")
        assert [w.last_fingerprint for w in wallets] == [None, "tx9"]

        assert await store.remove_wallet("42", "0xa") is True
        assert await store.remove_wallet("42", "0xa") is False
        assert [w.address for w in await store.get_wallets("42")] == ["0xb"]
        assert await store.list_recipients() == ["42"]

    asyncio.run(scenario())


def test_json_store_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "data" / "watchlists.json"

    async def scenario() -> None:
        store = JsonFileWalletStore(path)
        await store.register_recipient("7")
        await store.add_wallet("42", WatchedWallet("0xa", "A"))
        await store.set_fingerprint("42", "0xa", "tx1")

        reopened = JsonFileWalletStore(path)
        assert sorted(await reopened.list_recipients()) == ["42", "7"]
        assert await reopened.get_wallets("42") == [WatchedWallet("0xa", "A", "tx1")]

    asyncio.run(scenario())
    assert json.loads(path.read_text())["42"][0]["last_fingerprint"] == "tx1"


def test_json_store_rejects_corrupt_file(tmp_path) -> None:
    path = tmp_path / "watchlists.json"
    path.write_text("{not json")
    with pytest.raises(StorageError):
        JsonFileWalletStore(path)


def test_build_store_selects_backend(tmp_path) -> None:
    assert isinstance(build_store("memory", "unused"), MemoryWalletStore)
    assert isinstance(build_store("json", str(tmp_path / "w.json")), JsonFileWalletStore)
    with pytest.raises(ValueError):
        build_store("mongo", "unused")


def test_failed_write_leaves_memory_and_disk_unchanged(tmp_path, monkeypatch) -> None:
    path = tmp_path / "watchlists.json"

    async def scenario() -> None:
        store = JsonFileWalletStore(path)
        await store.add_wallet("42", WatchedWallet("0xa", "A"))

        def no_space(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("polymarket_watcher.storage.tempfile.mkstemp", no_space)
        with pytest.raises(StorageError):
            await store.add_wallet("42", WatchedWallet("0xb", "B"))
        with pytest.raises(StorageError):
            await store.set_fingerprint("42", "0xa", "tx1")
        with pytest.raises(StorageError):
            await store.remove_wallet("42", "0xa")

        assert await store.get_wallets("42") == [WatchedWallet("0xa", "A")]

    asyncio.run(scenario())
    assert json.loads(path.read_text()) == {
        "42": [{"address": "0xa", "name": "A", "last_fingerprint": None}]
    }


def test_failed_write_removes_temporary_file(tmp_path, monkeypatch) -> None:
    path = tmp_path / "watchlists.json"

    def broken_dump(*args, **kwargs):
        raise OSError("write error")

    async def scenario() -> None:
        store = JsonFileWalletStore(path)
        monkeypatch.setattr("polymarket_watcher.storage.json.dump", broken_dump)
        with pytest.raises(StorageError):
            await store.register_recipient("42")
        assert await store.list_recipients() == []

    asyncio.run(scenario())
    assert list(tmp_path.iterdir()) == []
