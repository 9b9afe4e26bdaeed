"""
CDP 連線探索

找出並快取一條可用的 Remote Debugging Protocol 連線。
瀏覽器可能在另一個作業系統（例如 WSL2 內的橋接程式操作 Windows 上的 Chrome），
因此依序探測多個候選主機，最後才透過宿主 OS 的 shell 詢問端點。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from urllib.parse import urlsplit, urlunsplit

import httpx
from playwright.async_api import async_playwright

from browser_bridge.bridge.errors import DiscoveryExhausted
from browser_bridge.config import (
    CDP_GATEWAY_HOST,
    CDP_PORT,
    CDP_PROBE_TIMEOUT,
    CDP_SHELL_EXECUTABLE,
    CDP_SHELL_TIMEOUT,
    INTERNAL_URL_PREFIXES,
)

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ("localhost", "127.0.0.1")

Connector = Callable[[str], Awaitable[Any]]
GatewayResolver = Callable[[str], Awaitable[str | None]]


class EndpointShell(Protocol):
    """向另一個 OS 實例詢問除錯端點的窄介面（僅有「文字或失敗」的契約）"""

    async def query_debugger_url(self, port: int) -> str | None: ...


class PowerShellEndpointShell:
    """透過 powershell.exe 向 Windows 端的 localhost 詢問 webSocketDebuggerUrl"""

    def __init__(self, executable: str = CDP_SHELL_EXECUTABLE, timeout: float = CDP_SHELL_TIMEOUT) -> None:
        self._executable = executable
        self._timeout = timeout

    async def query_debugger_url(self, port: int) -> str | None:
        script = (
            f"(Invoke-WebRequest 'http://localhost:{port}/json/version' -UseBasicParsing "
            f"| ConvertFrom-Json).webSocketDebuggerUrl"
        )
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                "-NoProfile",
                "-Command",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"無法執行 {self._executable}: {e}")
            return None

        try:
            stdout_bytes, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            logger.warning(f"{self._executable} 查詢除錯端點逾時 ({self._timeout}s)")
            return None

        if proc.returncode != 0:
            logger.debug(f"{self._executable} 查詢除錯端點失敗 (returncode={proc.returncode})")
            return None

        text = stdout_bytes.decode("utf-8", errors="replace").replace("\r", "").replace("\n", "").strip()
        return text or None


async def resolve_host_ip(hostname: str) -> str | None:
    """將主機名稱解析為 IPv4 位址（Chrome DevTools 會拒絕非 IP 的 Host header）"""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, family=socket.AF_INET, type=socket.SOCK_STREAM)
    except OSError as e:
        logger.debug(f"無法解析 {hostname}: {e}")
        return None
    return infos[0][4][0] if infos else None


def rewrite_loopback(endpoint: str, gateway_ip: str | None) -> str:
    """把端點中的 loopback 主機換成跨邊界的 gateway 位址"""
    if not gateway_ip:
        return endpoint
    parts = urlsplit(endpoint)
    if parts.hostname not in LOOPBACK_HOSTS:
        return endpoint
    netloc = f"{gateway_ip}:{parts.port}" if parts.port else gateway_ip
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def is_internal_url(url: str) -> bool:
    return url.startswith(INTERNAL_URL_PREFIXES)


class ConnectionHandle:
    """包裝一條已連線的 CDP Browser"""

    def __init__(self, browser: Any, endpoint: str, host: str) -> None:
        self.browser = browser
        self.endpoint = endpoint
        self.host = host

    @property
    def is_alive(self) -> bool:
        return bool(self.browser.is_connected())

    def pages(self) -> list[Any]:
        """所有 context 中非瀏覽器內部頁面的 Page，依瀏覽器回報順序"""
        pages: list[Any] = []
        for context in self.browser.contexts:
            pages.extend(page for page in context.pages if not is_internal_url(page.url))
        return pages

    async def close(self) -> None:
        await self.browser.close()


class ConnectionDiscovery:
    """
    CDP 連線探索與快取

    探索順序：
    1. 快取的連線仍存活則直接使用
    2. 依序探測 localhost、127.0.0.1、解析後的 gateway IP 的 /json/version
    3. 都沒有回應時，透過宿主 OS shell 詢問端點，並把 loopback 改寫成 gateway IP
    4. 連線成功後快取；全部失敗回傳 None（高保真通道仍可能獨立運作）

    連線時沿用瀏覽器預設 context，不套用 viewport 模擬，使用者視窗大小不會被改變。
    """

    def __init__(
        self,
        port: int = CDP_PORT,
        gateway_host: str = CDP_GATEWAY_HOST,
        probe_timeout: float = CDP_PROBE_TIMEOUT,
        shell: EndpointShell | None = None,
        connector: Connector | None = None,
        gateway_resolver: GatewayResolver = resolve_host_ip,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.port = port
        self.gateway_host = gateway_host
        self.probe_timeout = probe_timeout
        self._shell: EndpointShell = shell if shell is not None else PowerShellEndpointShell()
        self._connector = connector
        self._gateway_resolver = gateway_resolver
        self._transport = transport
        self._playwright: Any = None
        self._handle: ConnectionHandle | None = None
        self.last_error: DiscoveryExhausted | None = None

    @property
    def cached(self) -> ConnectionHandle | None:
        return self._handle

    async def acquire(self) -> ConnectionHandle | None:
        """取得可用的 CDP 連線；全部探測失敗時回傳 None"""
        if self._handle is not None:
            if self._handle.is_alive:
                return self._handle
            logger.warning(f"⚠️ CDP 連線已中斷，重新探索: {self._handle.endpoint}")
            self._handle = None

        gateway_ip = await self._resolve_gateway()
        endpoint, host = await self._probe_hosts(self.candidate_hosts(gateway_ip))

        if endpoint is None:
            raw = await self._shell.query_debugger_url(self.port)
            if raw:
                endpoint = rewrite_loopback(raw, gateway_ip)
                host = gateway_ip or "shell"
                logger.info(f"[CDP] 透過宿主 shell 取得端點: {endpoint}")

        if endpoint is None:
            self.last_error = DiscoveryExhausted(
                f"No debugging endpoint answered on port {self.port}. "
                f"Start Chrome with --remote-debugging-port={self.port}"
            )
            logger.warning(f"[CDP] {self.last_error.message}")
            return None

        try:
            browser = await self._connect(endpoint)
        except Exception as e:
            logger.warning(f"[CDP] 連線失敗 {endpoint}: {e}")
            self.last_error = DiscoveryExhausted(f"Failed to connect to {endpoint}: {e}")
            return None

        self._handle = ConnectionHandle(browser, endpoint, host or "")
        self.last_error = None
        logger.info(f"✅ [CDP] 已連線: {endpoint}")
        return self._handle

    def candidate_hosts(self, gateway_ip: str | None) -> list[str]:
        """候選主機：本機名稱、loopback IP，最後是跨邊界 gateway"""
        hosts = list(LOOPBACK_HOSTS)
        if gateway_ip and gateway_ip not in hosts:
            hosts.append(gateway_ip)
        return hosts

    async def invalidate(self) -> None:
        """捨棄快取的連線，下次 acquire() 會重新探索"""
        self._handle = None

    async def close(self) -> None:
        """中斷連接（但不關閉使用者的瀏覽器）"""
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                await handle.close()
            except Exception as e:
                logger.debug(f"關閉 CDP 連線時發生錯誤: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("已中斷瀏覽器連接")

    def status(self) -> dict[str, Any]:
        """連線狀態摘要"""
        handle = self._handle
        return {
            "connected": handle is not None and handle.is_alive,
            "endpoint": handle.endpoint if handle else None,
            "host": handle.host if handle else None,
            "last_error": self.last_error.message if self.last_error else None,
        }

    async def _resolve_gateway(self) -> str | None:
        ip = await self._gateway_resolver(self.gateway_host)
        if ip in LOOPBACK_HOSTS:
            return None
        return ip

    async def _probe_hosts(self, hosts: list[str]) -> tuple[str | None, str | None]:
        async with httpx.AsyncClient(timeout=self.probe_timeout, transport=self._transport) as client:
            for host in hosts:
                endpoint = await self._probe(client, host)
                if endpoint:
                    logger.info(f"[CDP] 在 {host}:{self.port} 找到 Chrome: {endpoint}")
                    return endpoint, host
        return None, None

    async def _probe(self, client: httpx.AsyncClient, host: str) -> str | None:
        url = f"http://{host}:{self.port}/json/version"
        logger.debug(f"[CDP] 嘗試 {host}:{self.port}...")
        try:
            response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"[CDP] 無法連線 {host}:{self.port}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return data.get("webSocketDebuggerUrl") or None

    async def _connect(self, endpoint: str) -> Any:
        if self._connector is not None:
            return await self._connector(endpoint)
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.connect_over_cdp(endpoint)
