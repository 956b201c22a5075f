"""
transports/http.py - JSON-RPC over HTTP.

Each request is its own POST, so responses are naturally correlated and
push notifications are impossible. Provides:
- Env var expansion in the endpoint URL
- Request timeout handling
- Connection pooling
- Latency tracking
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any, Dict

import httpx

from core.constants import CLOSE_NORMAL, DEFAULT_TIMEOUT_SECONDS
from core.exceptions import TransportError
from core.logging import get_logger
from transports.base import BaseTransport

logger = get_logger("transports.http")


@dataclass
class TransportStats:
    """Statistics for the HTTP endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


def resolve_url(url: str) -> str:
    """Expand ${VAR} references (e.g. API keys) from the environment."""
    return os.path.expandvars(url)


class HttpTransport(BaseTransport):
    """
    HTTP transport on an httpx AsyncClient.

    connect() is acknowledged on the next loop iteration since HTTP has no
    session to open. aclose() finishes in-flight posts, releases the client
    and reports a normal close.
    """

    supports_subscriptions = False

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__()
        self.rpc_url = resolve_url(rpc_url)
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._tasks: set[asyncio.Task] = set()
        self.stats = TransportStats(url=self.rpc_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
            )
        return self._client

    def connect(self) -> None:
        asyncio.get_running_loop().call_soon(self.sink.on_transport_connect)

    def post(self, message: Dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._post(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, message: Dict[str, Any]) -> None:
        request_id = message.get("id")
        self.stats.total_requests += 1
        start_ms = int(time.time() * 1000)

        try:
            client = await self._get_client()
            resp = await client.post(self.rpc_url, json=message)
        except httpx.TimeoutException:
            latency_ms = int(time.time() * 1000) - start_ms
            self._report_failure(request_id, f"Timeout after {latency_ms}ms")
            return
        except httpx.HTTPError as e:
            self._report_failure(request_id, f"HTTP request failed: {e}")
            return

        latency_ms = int(time.time() * 1000) - start_ms

        try:
            payload = resp.json()
        except ValueError:
            payload = None

        is_rpc_error = isinstance(payload, dict) and "error" in payload
        if payload is None or (resp.is_error and not is_rpc_error):
            self._report_failure(
                request_id,
                f"HTTP {resp.status_code} from {self.rpc_url}",
                status_code=resp.status_code,
            )
            return

        if not isinstance(payload, dict):
            self._report_failure(
                request_id,
                f"Malformed JSON-RPC response: {type(payload).__name__} body",
                status_code=resp.status_code,
            )
            return

        # Nodes may answer parse-level errors with a null id; one POST is one request
        if payload.get("id") is None:
            payload = {**payload, "id": request_id}

        self.stats.successful_requests += 1
        self.stats.total_latency_ms += latency_ms
        self.stats.last_success_ts = int(time.time() * 1000)
        logger.debug(
            "HTTP response",
            extra={"context": {"request_id": request_id, "latency_ms": latency_ms}},
        )
        self.sink.on_transport_message(payload)

    def _report_failure(self, request_id: Any, message: str, **details: Any) -> None:
        self.stats.failed_requests += 1
        self.stats.last_error = message
        logger.debug(
            message,
            extra={"context": {"request_id": request_id, "url": self.rpc_url}},
        )
        self.sink.on_transport_error(
            request_id,
            TransportError(message, details={"url": self.rpc_url, **details}),
        )

    async def aclose(self) -> None:
        """Wait for in-flight posts, close the client, report close 1000."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._sink is not None:
            self._sink.on_transport_close(CLOSE_NORMAL, "client closed")
