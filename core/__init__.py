"""
core - Shared constants, errors, validators and logging.

This package contains:
- constants.py: Enums, wire constants and defaults
- exceptions.py: Typed exceptions with error codes
- validators.py: Input validation and inbound message classification
- logging.py: Structured JSON logging
"""

from core.constants import (
    ConnectionState,
    ErrorCode,
    ProviderEvent,
)
from core.exceptions import (
    AuthorizationError,
    ConnectionClosedError,
    InvalidTransitionError,
    ProviderError,
    RpcError,
    TransportError,
    ValidationError,
)
from core.logging import get_logger, setup_logging

__all__ = [
    # Constants
    "ConnectionState",
    "ErrorCode",
    "ProviderEvent",
    # Exceptions
    "AuthorizationError",
    "ConnectionClosedError",
    "InvalidTransitionError",
    "ProviderError",
    "RpcError",
    "TransportError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
]
