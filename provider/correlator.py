"""
provider/correlator.py - Request/response correlation.

Requests share one unordered channel. Each gets the next id from a
per-session counter; responses are matched back by id, in any order.

CONTRACTS:
- ids start at 0, strictly increase, never reused
- every future returned by send() settles exactly once
- unknown or late response ids are dropped
- no timeouts: an unanswered request stays pending
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.constants import JSONRPC_VERSION
from core.exceptions import ProviderError, RpcError, TransportError
from core.logging import get_logger
from core.validators import response_id, validate_method, validate_params

logger = get_logger("provider.correlator")


@dataclass
class PendingRequest:
    """A request waiting for its response."""
    request_id: int
    method: str
    future: asyncio.Future
    created_at_ms: int

    @property
    def age_ms(self) -> int:
        return int(time.time() * 1000) - self.created_at_ms


def build_request(request_id: int, method: str, params: List[Any]) -> Dict[str, Any]:
    """JSON-RPC 2.0 request record."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": params,
    }


class RequestCorrelator:
    """
    Owns the pending-request table and the id counter.

    The transport only needs a post(message) method. Inbound responses are
    fed in through handle_response().
    """

    def __init__(self, transport: Any):
        self._transport = transport
        self._next_id = 0
        self._pending: Dict[int, PendingRequest] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_ids(self) -> List[int]:
        return sorted(self._pending)

    def _next_request_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    def send(self, method: str, params: Optional[List[Any]] = None) -> asyncio.Future:
        """
        Send a request and return a future for its result.

        Raises:
            ValidationError: If method or params are malformed. Nothing is
                sent in that case.
        """
        method = validate_method(method)
        params = validate_params(params)

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        request_id = self._next_request_id()

        # Registered before posting; a transport may answer synchronously
        self._pending[request_id] = PendingRequest(
            request_id=request_id,
            method=method,
            future=future,
            created_at_ms=int(time.time() * 1000),
        )

        try:
            self._transport.post(build_request(request_id, method, params))
        except TransportError as e:
            self.fail(request_id, e)
            return future
        except Exception as e:
            self.fail(
                request_id,
                TransportError(
                    f"Transport post failed: {e}",
                    details={"error_type": type(e).__name__},
                ),
            )
            return future

        logger.debug(
            f"Request sent: {method}",
            extra={"context": {"request_id": request_id, "method": method}},
        )
        return future

    def handle_response(self, message: Dict[str, Any]) -> bool:
        """
        Settle the pending request matching message["id"].

        Returns True if the message is a response (known or not), False if it
        carries no id and should be routed elsewhere.
        """
        request_id = response_id(message)
        if request_id is None:
            return False

        entry = self._pending.pop(request_id, None)
        if entry is None:
            logger.debug(
                "Dropping response for unknown id",
                extra={"context": {"request_id": request_id}},
            )
            return True

        if entry.future.done():
            # Cancelled by the caller
            return True

        error = message.get("error")
        if error is not None:
            rpc_error = RpcError.from_payload(error)
            logger.debug(
                f"Request failed: {entry.method}",
                extra={"context": {
                    "request_id": request_id,
                    "code": rpc_error.code,
                    "latency_ms": entry.age_ms,
                }},
            )
            entry.future.set_exception(rpc_error)
        else:
            logger.debug(
                f"Request resolved: {entry.method}",
                extra={"context": {"request_id": request_id, "latency_ms": entry.age_ms}},
            )
            entry.future.set_result(message.get("result"))
        return True

    def fail(self, request_id: int, error: ProviderError) -> bool:
        """
        Reject one pending request with a locally produced error.

        Used by transports that can attribute a failure to a request id.
        Returns False if the id is not pending.
        """
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return False

        logger.warning(
            f"Request failed locally: {entry.method}: {error}",
            extra={"context": {"request_id": request_id, "method": entry.method}},
        )
        if not entry.future.done():
            entry.future.set_exception(error)
        return True
