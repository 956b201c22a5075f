"""
transports/base.py - Transport contract.

A transport moves JSON-RPC objects to and from the node. It reports
everything inbound to the attached sink (the provider):

    sink.on_transport_connect()
    sink.on_transport_close(code, reason)
    sink.on_transport_message(message)       # dict, list, str or bytes
    sink.on_transport_error(request_id, error)
    sink.on_network_changed(network_id)
    sink.on_accounts_changed(accounts)
"""

from typing import Any, Dict, Optional

from core.exceptions import TransportError


class BaseTransport:
    """Base class for transports."""

    # Push notifications need a persistent channel
    supports_subscriptions = False

    def __init__(self) -> None:
        self._sink: Optional[Any] = None

    def attach(self, sink: Any) -> None:
        self._sink = sink

    @property
    def sink(self) -> Any:
        if self._sink is None:
            raise TransportError("Transport has no attached provider")
        return self._sink

    def connect(self) -> None:
        """Request a connection. Acknowledge via sink.on_transport_connect()."""
        raise NotImplementedError

    def post(self, message: Dict[str, Any]) -> None:
        """
        Hand one request to the transport. Must not block.

        May raise TransportError if the message cannot be sent at all.
        """
        raise NotImplementedError
