"""
Pytest configuration and fixtures for provider tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from provider.config import ProviderConfig  # noqa: E402
from provider.ethereum import create_provider  # noqa: E402
from transports.base import BaseTransport  # noqa: E402


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


class FakeTransport(BaseTransport):
    """In-memory transport. Records outbound traffic; tests drive inbound."""

    def __init__(self, supports_subscriptions: bool = True):
        super().__init__()
        self.supports_subscriptions = supports_subscriptions
        self.sent: list[dict] = []
        self.connect_calls = 0

    def connect(self) -> None:
        self.connect_calls += 1

    def post(self, message: dict) -> None:
        self.sent.append(message)

    @property
    def last_request(self) -> dict:
        return self.sent[-1]

    def ack_connect(self) -> None:
        self.sink.on_transport_connect()

    def close(self, code: int = 1006, reason: str = "network lost") -> None:
        self.sink.on_transport_close(code, reason)

    def respond(self, request_id: int, result: Any) -> None:
        self.sink.on_transport_message({"jsonrpc": "2.0", "id": request_id, "result": result})

    def respond_error(
        self,
        request_id: int,
        code: int,
        message: str,
        data: Any = None,
    ) -> None:
        error = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        self.sink.on_transport_message({"jsonrpc": "2.0", "id": request_id, "error": error})

    def push(self, subscription: str, result: Any, kind: str = "eth") -> None:
        self.sink.on_transport_message({
            "jsonrpc": "2.0",
            "method": f"{kind}_subscription",
            "params": {"subscription": subscription, "result": result},
        })


async def settle(rounds: int = 5) -> None:
    """Let pending future callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def request_only_transport():
    return FakeTransport(supports_subscriptions=False)


@pytest.fixture
def make_provider():
    """
    Factory for providers. Call it from inside an async test: providers
    need a running loop.
    """
    def _make(
        transport: BaseTransport,
        authorizer: Optional[Any] = None,
        **overrides: Any,
    ):
        overrides.setdefault("query_network_on_connect", False)
        return create_provider(transport, authorizer, ProviderConfig(**overrides))

    return _make


class StubAuthorizer:
    """Authorizer returning a fixed answer and counting consent requests."""

    def __init__(self, accounts: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.accounts = accounts
        self.error = error
        self.calls = 0

    async def __call__(self) -> Optional[list[str]]:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.accounts


@pytest.fixture(name="settle")
def settle_fixture():
    return settle


@pytest.fixture
def make_authorizer():
    return StubAuthorizer
