import asyncio
import json

import httpx

from polymarket_watcher.telegram_notifier import TelegramNotifier


def test_send_posts_html_without_preview() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": {}})

    notifier = TelegramNotifier("token")
    notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    asyncio.run(notifier.send("42", "<b>hi</b>"))

    path, body = calls[0]
    assert path == "/bottoken/sendMessage"
    assert body == {
        "chat_id": "42",
        "text": "<b>hi</b>",
        "disable_web_page_preview": True,
        "parse_mode": "HTML",
    }


def test_get_updates_returns_result_list() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["offset"] == 5
        return httpx.Response(200, json={"ok": True, "result": [{"update_id": 5}]})

    notifier = TelegramNotifier("token")
    notifier._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    assert asyncio.run(notifier.get_updates(offset=5, poll_timeout=0)) == [{"update_id": 5}]
