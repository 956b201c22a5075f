"""
provider/ethereum.py - The provider exposed to dapps.

Composes the correlator, subscription router, lifecycle state machine and
authorization gate over one transport. The provider owns an event registry;
it is not an event emitter itself.

Providers must be created inside a running event loop: construction issues
the connect request and send() returns asyncio futures.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from core.constants import (
    ENABLE_METHOD,
    NETWORK_VERSION_METHOD,
    REQUEST_ACCOUNTS_METHOD,
    ConnectionState,
)
from core.exceptions import ProviderError, ValidationError
from core.logging import get_logger
from core.validators import parse_inbound, validate_method, validate_params
from provider.authorization import AuthorizationGate, Authorizer
from provider.config import ProviderConfig
from provider.correlator import RequestCorrelator
from provider.events import EventRegistry, Listener
from provider.lifecycle import ConnectionLifecycle
from provider.subscriptions import SubscriptionRouter

logger = get_logger("provider.ethereum")


class EthereumProvider:
    """
    Call/response provider.

    Public surface: enable, send, send_async, is_connected, on, off,
    remove_all_listeners. Events: connect, close, networkChanged,
    accountsChanged, notification.
    """

    def __init__(
        self,
        transport: Any,
        authorizer: Optional[Authorizer] = None,
        config: Optional[ProviderConfig] = None,
    ):
        self.config = config or ProviderConfig()
        self._transport = transport
        self._events = EventRegistry()
        self._correlator = RequestCorrelator(transport)
        self._subscriptions = SubscriptionRouter(self._correlator, self._events)
        self._gate = AuthorizationGate(
            self._events,
            authorizer=authorizer,
            account_methods=self.config.account_methods,
            remember=self.config.remember_authorization,
        )
        self._lifecycle = ConnectionLifecycle(
            transport,
            self._events,
            self._subscriptions,
            reconnect_delay_seconds=self.config.reconnect_delay_seconds,
            on_connected=self._query_network if self.config.query_network_on_connect else None,
        )

        transport.attach(self)
        self._lifecycle.start()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._lifecycle.state

    @property
    def network_id(self) -> Optional[str]:
        return self._lifecycle.network_id

    @property
    def accounts(self) -> List[str]:
        return list(self._gate.accounts)

    @property
    def enabled(self) -> bool:
        return self._gate.enabled

    @property
    def pending_requests(self) -> int:
        return self._correlator.pending_count

    def is_connected(self) -> bool:
        return self._lifecycle.is_connected

    def is_authorized(self, method: str) -> bool:
        return self._gate.is_authorized(method)

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    def enable(self) -> asyncio.Future:
        """Request account access. Resolves True, or rejects with 4001."""
        return self._gate.enable()

    def send(self, method: str, params: Optional[List[Any]] = None) -> asyncio.Future:
        """
        Send a JSON-RPC call. Returns a future for the raw result.

        Raises:
            ValidationError: Malformed method or params (nothing is sent).
        """
        method = validate_method(method)
        params = validate_params(params)

        if method == ENABLE_METHOD:
            return self._gate.enable()
        if method == REQUEST_ACCOUNTS_METHOD:
            return self._request_accounts()

        error = self._gate.check(method)
        if error is not None:
            future = asyncio.get_running_loop().create_future()
            future.set_exception(error)
            return future

        return self._correlator.send(method, params)

    def _request_accounts(self) -> asyncio.Future:
        outer = asyncio.get_running_loop().create_future()

        def _on_enabled(fut: asyncio.Future) -> None:
            if fut.cancelled():
                outer.cancel()
            elif fut.exception() is not None:
                outer.set_exception(fut.exception())
            else:
                outer.set_result(list(self._gate.accounts))

        self._gate.enable().add_done_callback(_on_enabled)
        return outer

    def send_async(
        self,
        payload: Dict[str, Any],
        callback: Callable[[Optional[BaseException], Optional[Dict[str, Any]]], Any],
    ) -> None:
        """
        Legacy callback API: callback(error, response).

        response is the payload with "result" added.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Payload is not a valid JSON-RPC object.")

        future = self.send(payload.get("method"), payload.get("params"))

        def _on_done(fut: asyncio.Future) -> None:
            if fut.cancelled():
                callback(ProviderError("Request cancelled."), None)
                return
            error = fut.exception()
            if error is not None:
                callback(error, None)
                return
            response = dict(payload)
            response["result"] = fut.result()
            callback(None, response)

        future.add_done_callback(_on_done)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> None:
        """Listen on a static event or on a subscription id."""
        self._events.on(event, listener)

    def off(self, event: str, listener: Listener) -> bool:
        return self._events.off(event, listener)

    def remove_all_listeners(self, event: str) -> int:
        return self._events.remove_all_listeners(event)

    def listener_count(self, event: str) -> int:
        return self._events.listener_count(event)

    # -------------------------------------------------------------------------
    # Transport sink
    # -------------------------------------------------------------------------

    def on_transport_connect(self) -> None:
        self._lifecycle.handle_connect()

    def on_transport_close(self, code: int, reason: str) -> None:
        self._lifecycle.handle_close(code, reason)

    def on_transport_message(self, raw: Any) -> None:
        """Demultiplex inbound messages: responses by id, pushes by subscription."""
        for message in parse_inbound(raw):
            if self._correlator.handle_response(message):
                continue
            if self._subscriptions.route(message):
                continue
            logger.debug(
                "Dropping unroutable message",
                extra={"context": {"method": message.get("method")}},
            )

    def on_transport_error(self, request_id: Any, error: ProviderError) -> None:
        """Transport failure. Without a request id there is nothing to reject."""
        if request_id is None or not self._correlator.fail(request_id, error):
            logger.warning(
                f"Uncorrelated transport error: {error}",
                extra={"context": {"request_id": request_id}},
            )

    def on_network_changed(self, network_id: Any) -> None:
        self._lifecycle.handle_network_changed(network_id)

    def on_accounts_changed(self, accounts: Optional[List[str]]) -> None:
        self._gate.handle_accounts_changed(accounts)

    def _query_network(self) -> None:
        self._correlator.send(NETWORK_VERSION_METHOD, []).add_done_callback(
            self._on_network_version
        )

    def _on_network_version(self, fut: asyncio.Future) -> None:
        if fut.cancelled():
            return
        error = fut.exception()
        if error is not None:
            logger.warning(f"Network version query failed: {error}")
            return
        self._lifecycle.handle_network_changed(fut.result())

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    async def aclose(self) -> None:
        """Stop reconnecting and close the transport if it can be closed."""
        self._lifecycle.stop()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()


class SubscribingEthereumProvider(EthereumProvider):
    """Provider over a transport that carries push notifications."""

    @property
    def active_subscriptions(self) -> List[str]:
        return self._subscriptions.active_ids()

    def subscribe(
        self,
        kind: str,
        method: str,
        params: Optional[List[Any]] = None,
    ) -> asyncio.Future:
        """e.g. subscribe("eth_subscribe", "newHeads"). Resolves the subscription id."""
        return self._subscriptions.subscribe(kind, method, params)

    def unsubscribe(self, kind: str, subscription_id: str) -> asyncio.Future:
        """e.g. unsubscribe("eth_unsubscribe", id). Resolves True on success."""
        return self._subscriptions.unsubscribe(kind, subscription_id)


def create_provider(
    transport: Any,
    authorizer: Optional[Authorizer] = None,
    config: Optional[ProviderConfig] = None,
) -> EthereumProvider:
    """
    Build the provider for transport.

    Without subscription support the provider has no subscribe/unsubscribe
    attributes; callers feature-detect with hasattr().
    """
    if getattr(transport, "supports_subscriptions", False):
        return SubscribingEthereumProvider(transport, authorizer, config)
    return EthereumProvider(transport, authorizer, config)
