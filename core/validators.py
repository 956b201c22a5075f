# PATH: core/validators.py
"""
Validators for outbound calls and inbound wire messages.

CONTRACTS:
- validate_method() / validate_params(): raise ValidationError synchronously
- parse_inbound(): never raises; returns [] for anything unusable
- classify helpers only look at shape, never at result content
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from core.constants import SUBSCRIPTION_SUFFIX
from core.exceptions import ValidationError
from core.logging import get_logger

logger = get_logger("core.validators")


def validate_method(method: Any) -> str:
    """Method must be a non-empty string."""
    if not isinstance(method, str) or not method:
        raise ValidationError(
            "Method is not a valid string.",
            details={"method": repr(method)},
        )
    return method


def validate_params(params: Any) -> List[Any]:
    """
    Params must be an ordered sequence.

    None means no params. Strings and mappings are rejected even though
    they are iterable.
    """
    if params is None:
        return []
    if isinstance(params, (list, tuple)):
        return list(params)
    raise ValidationError(
        "Params is not a valid array.",
        details={"params_type": type(params).__name__},
    )


def parse_inbound(raw: Any) -> List[Dict[str, Any]]:
    """
    Decode an inbound transport message into JSON-RPC objects.

    Accepts a dict, a list (batch) or JSON text. Unparseable payloads and
    non-object entries are dropped.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Dropping undecodable message")
            return []

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug(
                "Dropping unparseable message",
                extra={"context": {"preview": raw[:80]}},
            )
            return []

    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)]

    logger.debug(
        "Dropping non-object message",
        extra={"context": {"type": type(raw).__name__}},
    )
    return []


def response_id(message: Dict[str, Any]) -> Optional[int]:
    """
    Id of a response message, or None for notifications.

    Request ids are always ints, so any other id type cannot match and is
    treated as absent.
    """
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return None
    return request_id


def is_subscription_notification(message: Dict[str, Any]) -> bool:
    """Push notification: "<kind>_subscription" with {subscription, result}."""
    method = message.get("method")
    if not isinstance(method, str) or not method.endswith(SUBSCRIPTION_SUFFIX):
        return False
    params = message.get("params")
    return isinstance(params, dict) and isinstance(params.get("subscription"), str)


def normalize_accounts(accounts: Optional[Sequence[str]]) -> List[str]:
    """Ordered, de-duplicated account list. Order is authorization order."""
    if not accounts:
        return []
    seen = set()
    result = []
    for account in accounts:
        if account not in seen:
            seen.add(account)
            result.append(account)
    return result
