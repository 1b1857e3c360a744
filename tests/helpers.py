from typing import List, Optional

import httpx

FORM_TOKEN = "1FAIpQLSeXXXX"
VIEW_URL = f"https://docs.google.com/forms/d/e/{FORM_TOKEN}/viewform"
LINE_USER_ID = "U" + "a1b2c3d4" * 4

FORM_HTML = """<!doctype html>
<html>
<head>
<title>イベント参加登録 - Google フォーム</title>
<meta itemprop="description" content="当日の受付に使います">
</head>
<body>
<form>
<input type="hidden" name="entry.1234567890" value="">
<input type="hidden" name="entry.2345678901" value="">
</form>
</body>
</html>"""


class RecordingTransport:
    """httpx handler that answers per host and remembers what was asked."""

    def __init__(self, routes: Optional[dict] = None) -> None:
        self.routes = routes or {}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            return httpx.Response(404, text="")
        if callable(handler):
            return handler(request)
        return handler

    @property
    def hosts(self) -> List[str]:
        return [r.url.host for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class FakeDiscoverer:
    def __init__(self, result) -> None:
        self.result = result
        self.calls: List[str] = []

    async def discover(self, normalized_view_url: str):
        self.calls.append(normalized_view_url)
        return self.result


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[tuple] = []

    async def send_card(self, user_id, form_url, title, description) -> None:
        self.sent.append((user_id, form_url, title, description))
        if self.fail:
            raise RuntimeError("push failed")
