"""
provider/lifecycle.py - Connection lifecycle state machine.

CONNECTION STATE CONTRACT:
==========================

States (ConnectionState):
  INITIAL     → provider created, nothing requested yet
  CONNECTING  → connect request issued to the transport
  CONNECTED   → transport acknowledged the connection
  CLOSED      → transport reported close (code, reason)

Transitions:
  INITIAL     → CONNECTING  (start)
  CONNECTING  → CONNECTED   (transport connect ack)
  *           → CLOSED      (transport close signal)
  CLOSED      → CONNECTING  (scheduled reconnect)

On close:
  1. emit close(code, reason)
  2. fail every active subscription with ConnectionClosedError, clear them
  3. schedule exactly one reconnect (CLOSED → CONNECTING)

A close arriving while a reconnect is already scheduled does not schedule
another. No backoff, no retry limit.
==========================
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.constants import ConnectionState, ProviderEvent
from core.exceptions import ConnectionClosedError, InvalidTransitionError
from core.logging import get_logger
from provider.events import EventRegistry
from provider.subscriptions import SubscriptionRouter

logger = get_logger("provider.lifecycle")


# Valid state transitions
VALID_TRANSITIONS: Dict[ConnectionState, List[ConnectionState]] = {
    ConnectionState.INITIAL: [ConnectionState.CONNECTING, ConnectionState.CLOSED],
    ConnectionState.CONNECTING: [ConnectionState.CONNECTED, ConnectionState.CLOSED],
    ConnectionState.CONNECTED: [ConnectionState.CLOSED],
    ConnectionState.CLOSED: [ConnectionState.CONNECTING, ConnectionState.CLOSED],
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: ConnectionState
    to_state: ConnectionState
    timestamp: str = ""
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class ConnectionLifecycle:
    """
    Owns ConnectionState and the last-known network id.

    Mutated only by transport signals (handle_connect, handle_close,
    handle_network_changed) and by the reconnect it schedules itself.
    """

    MAX_HISTORY = 100

    def __init__(
        self,
        transport: Any,
        events: EventRegistry,
        subscriptions: SubscriptionRouter,
        reconnect_delay_seconds: float = 0.0,
        on_connected: Optional[Callable[[], None]] = None,
    ):
        self._transport = transport
        self._events = events
        self._subscriptions = subscriptions
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self._on_connected = on_connected

        self.state = ConnectionState.INITIAL
        self.network_id: Optional[str] = None
        self.history: List[StateTransition] = []
        self.reconnect_attempts = 0
        self._reconnect_handle: Optional[asyncio.Handle] = None
        self._stopped = False

    def can_transition_to(self, new_state: ConnectionState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(
        self,
        new_state: ConnectionState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises InvalidTransitionError if transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            reason=reason,
            metadata=metadata or {},
        )
        self.history.append(transition)
        if len(self.history) > self.MAX_HISTORY:
            del self.history[: len(self.history) - self.MAX_HISTORY]
        self.state = new_state

        logger.debug(
            f"State {transition.from_state.value} -> {new_state.value}",
            extra={"context": {"reason": reason, **transition.metadata}},
        )
        return transition

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_handle is not None

    def start(self) -> None:
        """Issue the initial connect request."""
        self.transition_to(ConnectionState.CONNECTING, reason="start")
        self._transport.connect()

    def handle_connect(self) -> bool:
        """
        Transport acknowledged the connection.

        Emits connect once per session; acks outside CONNECTING are ignored.
        """
        if self.state != ConnectionState.CONNECTING:
            logger.debug(
                "Ignoring connect ack",
                extra={"context": {"state": self.state.value}},
            )
            return False

        self.transition_to(ConnectionState.CONNECTED, reason="connect ack")
        logger.info("Connected", extra={"context": {"attempt": self.reconnect_attempts}})
        self._events.emit(ProviderEvent.CONNECT)
        if self._on_connected is not None:
            self._on_connected()
        return True

    def handle_close(self, code: int, reason: str) -> None:
        """Transport reported the connection closed."""
        self.transition_to(
            ConnectionState.CLOSED,
            reason="close",
            metadata={"code": code, "close_reason": reason},
        )
        logger.warning(
            f"Connection closed: {code} {reason}",
            extra={"context": {"code": code, "close_reason": reason}},
        )

        self._events.emit(ProviderEvent.CLOSE, code, reason)
        self._subscriptions.fail_all(ConnectionClosedError(code, reason))
        self._schedule_reconnect()

    def handle_network_changed(self, network_id: Any) -> bool:
        """
        Record a network id. Emits networkChanged only while connected and
        only when the id actually changed. A None id is ignored.
        """
        if network_id is None:
            logger.debug("Ignoring empty network id")
            return False
        network_id = str(network_id)
        previous = self.network_id
        self.network_id = network_id

        if not self.is_connected or network_id == previous:
            return False

        logger.info(
            f"Network changed: {previous} -> {network_id}",
            extra={"context": {"network_id": network_id, "previous": previous}},
        )
        self._events.emit(ProviderEvent.NETWORK_CHANGED, network_id)
        return True

    def _schedule_reconnect(self) -> None:
        if self._stopped:
            return
        if self._reconnect_handle is not None:
            logger.debug("Reconnect already scheduled")
            return

        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(
            self.reconnect_delay_seconds, self._reconnect
        )

    def _reconnect(self) -> None:
        """CLOSED → CONNECTING transition action."""
        self._reconnect_handle = None
        if self._stopped or self.state != ConnectionState.CLOSED:
            return

        self.reconnect_attempts += 1
        self.transition_to(
            ConnectionState.CONNECTING,
            reason="reconnect",
            metadata={"attempt": self.reconnect_attempts},
        )
        self._transport.connect()

    def stop(self) -> None:
        """Cancel any scheduled reconnect and stop reconnecting."""
        self._stopped = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
