"""
provider/subscriptions.py - Subscription routing.

Subscribe/unsubscribe calls go through the correlator like any request.
Push notifications are fanned out to listeners keyed by subscription id.

CONTRACTS:
- an id becomes active before the subscribe future resolves
- only an unsubscribe result of True releases the id and its listeners
- pushes for inactive ids are dropped, never buffered
- fail_all() delivers one error per active id, then clears everything
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from core.constants import ProviderEvent
from core.exceptions import ProviderError, RpcError
from core.logging import get_logger
from core.validators import is_subscription_notification, validate_method, validate_params
from provider.correlator import RequestCorrelator
from provider.events import EventRegistry

logger = get_logger("provider.subscriptions")


@dataclass
class Subscription:
    """An active remote subscription."""
    subscription_id: str
    kind: str
    method: str


class SubscriptionRouter:
    """Tracks active subscriptions and routes push notifications."""

    def __init__(self, correlator: RequestCorrelator, events: EventRegistry):
        self._correlator = correlator
        self._events = events
        self._active: Dict[str, Subscription] = {}

    def is_active(self, subscription_id: str) -> bool:
        return subscription_id in self._active

    def active_ids(self) -> List[str]:
        return list(self._active)

    def subscribe(
        self,
        kind: str,
        method: str,
        params: Optional[List[Any]] = None,
    ) -> asyncio.Future:
        """
        Open a subscription, e.g. subscribe("eth_subscribe", "newHeads").

        Resolves with the subscription id issued by the node.
        """
        kind = validate_method(kind)
        method = validate_method(method)
        params = validate_params(params)

        request = self._correlator.send(kind, [method, *params])
        outer = asyncio.get_running_loop().create_future()

        def _on_subscribed(fut: asyncio.Future) -> None:
            if fut.cancelled():
                outer.cancel()
                return
            error = fut.exception()
            if error is not None:
                if not outer.done():
                    outer.set_exception(error)
                return

            subscription_id = fut.result()
            if not isinstance(subscription_id, str) or not subscription_id:
                logger.warning(
                    f"Invalid subscription id for {method}",
                    extra={"context": {"kind": kind, "result_type": type(subscription_id).__name__}},
                )
                if not outer.done():
                    outer.set_exception(RpcError(
                        "Invalid subscription id.",
                        data=repr(subscription_id),
                    ))
                return

            self._active[subscription_id] = Subscription(
                subscription_id=subscription_id,
                kind=kind,
                method=method,
            )
            logger.info(
                f"Subscribed: {method}",
                extra={"context": {"subscription": subscription_id, "kind": kind}},
            )
            if not outer.done():
                outer.set_result(subscription_id)

        request.add_done_callback(_on_subscribed)
        return outer

    def unsubscribe(self, kind: str, subscription_id: str) -> asyncio.Future:
        """
        Close a subscription. Resolves True if the node confirmed it.

        A False answer leaves the subscription and its listeners in place.
        """
        kind = validate_method(kind)

        request = self._correlator.send(kind, [subscription_id])
        outer = asyncio.get_running_loop().create_future()

        def _on_unsubscribed(fut: asyncio.Future) -> None:
            if fut.cancelled():
                outer.cancel()
                return
            error = fut.exception()
            if error is not None:
                if not outer.done():
                    outer.set_exception(error)
                return

            success = fut.result() is True
            if success:
                self._release(subscription_id)
                logger.info(
                    "Unsubscribed",
                    extra={"context": {"subscription": subscription_id, "kind": kind}},
                )
            if not outer.done():
                outer.set_result(success)

        request.add_done_callback(_on_unsubscribed)
        return outer

    def add_listener(self, subscription_id: str, listener: Callable[[Any], Any]) -> None:
        self._events.on(subscription_id, listener)

    def remove_all_listeners(self, subscription_id: str) -> int:
        return self._events.remove_all_listeners(subscription_id)

    def _release(self, subscription_id: str) -> None:
        self._active.pop(subscription_id, None)
        self._events.remove_all_listeners(subscription_id)

    def route(self, message: Dict[str, Any]) -> bool:
        """
        Deliver a push notification to its listeners.

        Returns False if the message is not a subscription notification.
        """
        if not is_subscription_notification(message):
            return False

        params = message["params"]
        subscription_id = params["subscription"]
        if subscription_id not in self._active:
            logger.debug(
                "Dropping notification for inactive subscription",
                extra={"context": {"subscription": subscription_id}},
            )
            return True

        result = params.get("result")
        self._events.emit(subscription_id, result)
        self._events.emit(ProviderEvent.NOTIFICATION, result)
        return True

    def fail_all(self, error: ProviderError) -> int:
        """
        Deliver error once to every active subscription, then clear them.

        Returns the number of subscriptions failed.
        """
        subscription_ids = list(self._active)
        for subscription_id in subscription_ids:
            self._events.emit(subscription_id, error)
            self._release(subscription_id)

        if subscription_ids:
            logger.info(
                f"Failed {len(subscription_ids)} subscriptions: {error}",
                extra={"context": {"subscriptions": subscription_ids}},
            )
        return len(subscription_ids)
