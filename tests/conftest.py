"""
測試共用的假物件與 fixtures

以記憶體內的假 Page / BrowserContext / CDPSession 取代真實瀏覽器，
以 httpx.MockTransport 取代 Extension backend。
"""

from collections import defaultdict
from pathlib import Path
from typing import Any

import httpx
import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from browser_bridge.bridge.artifacts import ArtifactRetention
from browser_bridge.bridge.coordinator import BrowserBridge
from browser_bridge.bridge.discovery import ConnectionHandle
from browser_bridge.bridge.extension_client import ExtensionClient

BACKEND = "http://backend.test"


class FakeClock:
    """可手動推進的時鐘（秒）"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeElement:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return self.page.tag_names.get(self.selector, "DIV")

    async def screenshot(self, path: str) -> None:
        Path(path).write_bytes(b"element-png")
        self.page.screenshots.append((path, False))


class FakeCDPSession:
    def __init__(self):
        self.handlers: dict[str, list] = defaultdict(list)
        self.sent: list[tuple[str, Any]] = []
        self.bodies: dict[str, dict[str, Any]] = {}
        self.body_errors: dict[str, str] = {}
        self.enable_error: str | None = None

    def on(self, event: str, handler) -> None:
        self.handlers[event].append(handler)

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.sent.append((method, params))
        if method == "Network.enable" and self.enable_error:
            raise PlaywrightError(self.enable_error)
        if method == "Network.getResponseBody":
            request_id = params["requestId"]
            if request_id in self.body_errors:
                raise PlaywrightError(self.body_errors[request_id])
            return self.bodies[request_id]
        return {}

    def emit(self, event: str, params: dict[str, Any]) -> None:
        for handler in self.handlers[event]:
            handler(params)

    def calls(self, method: str) -> int:
        return sum(1 for sent_method, _ in self.sent if sent_method == method)


class FakePage:
    def __init__(self, url: str, title: str = "", selectors: set[str] | None = None):
        self.url = url
        self._title = title
        self.context: FakeContext | None = None
        self.selectors = selectors or set()
        self.tag_names: dict[str, str] = {}
        self.evaluate_result: Any = None
        self.evaluate_calls: list[tuple[str, Any]] = []
        self.clicked: list[str] = []
        self.filled: list[tuple[str, str]] = []
        self.screenshots: list[tuple[str, bool]] = []
        self.brought_to_front = False
        self.closed = False

    def is_closed(self) -> bool:
        return self.closed

    async def title(self) -> str:
        return self._title

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.evaluate_calls.append((expression, arg))
        if isinstance(self.evaluate_result, Exception):
            raise self.evaluate_result
        if callable(self.evaluate_result):
            return self.evaluate_result(expression, arg)
        return self.evaluate_result

    async def wait_for_selector(self, selector: str, timeout: float | None = None) -> FakeElement:
        if selector not in self.selectors:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return FakeElement(self, selector)

    async def query_selector(self, selector: str) -> FakeElement | None:
        return FakeElement(self, selector) if selector in self.selectors else None

    async def click(self, selector: str) -> None:
        self.clicked.append(selector)

    async def fill(self, selector: str, value: str) -> None:
        self.filled.append((selector, value))

    async def screenshot(self, path: str, full_page: bool = False) -> None:
        Path(path).write_bytes(b"page-png")
        self.screenshots.append((path, full_page))

    async def bring_to_front(self) -> None:
        self.brought_to_front = True

    async def goto(self, url: str) -> None:
        self.url = url


class FakeContext:
    def __init__(self, pages: list[FakePage]):
        self.pages = list(pages)
        self.cdp_sessions: dict[int, FakeCDPSession] = {}
        self.new_session_calls = 0
        for page in self.pages:
            page.context = self

    async def new_cdp_session(self, page: FakePage) -> FakeCDPSession:
        self.new_session_calls += 1
        return self.cdp_sessions.setdefault(id(page), FakeCDPSession())

    async def new_page(self) -> FakePage:
        page = FakePage("about:blank")
        page.context = self
        self.pages.append(page)
        return page


class FakeBrowser:
    def __init__(self, pages: list[FakePage]):
        self.contexts = [FakeContext(pages)]
        self.connected = True
        self.closed = False

    def is_connected(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.closed = True
        self.connected = False


class FakeDiscovery:
    """固定回傳同一條連線（或 None）的探索器"""

    def __init__(self, browser: FakeBrowser | None):
        self.browser = browser
        self.acquire_calls = 0

    async def acquire(self) -> ConnectionHandle | None:
        self.acquire_calls += 1
        if self.browser is None:
            return None
        return ConnectionHandle(self.browser, "ws://fake/devtools/browser/1", "localhost")

    def status(self) -> dict[str, Any]:
        return {"connected": self.browser is not None}

    async def close(self) -> None:
        return None


def extension_transport(routes: dict[str, Any], calls: list[httpx.Request] | None = None) -> httpx.MockTransport:
    """
    建立模擬 Extension backend 的 transport

    routes 的值可為 JSON dict、例外或 ``callable(request) -> dict``；未列出的路徑視為無法連線。
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            raise httpx.ConnectError("Connection refused", request=request)
        if isinstance(route, Exception):
            raise route
        payload = route(request) if callable(route) else route
        return httpx.Response(200, json=payload)

    return httpx.MockTransport(handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_bridge(tmp_path):
    """建立彼此隔離的 BrowserBridge"""

    def factory(
        pages: list[FakePage] | None = None,
        routes: dict[str, Any] | None = None,
        cdp_available: bool = True,
        in_wsl: bool = False,
        fetch_transport: httpx.AsyncBaseTransport | None = None,
        calls: list[httpx.Request] | None = None,
    ) -> BrowserBridge:
        browser = FakeBrowser(pages or []) if cdp_available else None
        return BrowserBridge(
            extension=ExtensionClient(BACKEND, transport=extension_transport(routes or {}, calls)),
            discovery=FakeDiscovery(browser),
            retention=ArtifactRetention(directory=tmp_path / "ai-images"),
            in_wsl=in_wsl,
            fetch_transport=fetch_transport,
        )

    return factory
