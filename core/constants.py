"""
Constants for the provider.

Contains enums, wire-format constants and defaults.
"""

from enum import Enum
from typing import Final, Tuple

# =============================================================================
# WIRE FORMAT
# =============================================================================

JSONRPC_VERSION: Final = "2.0"

# Push notifications carry a method named "<kind>_subscription"
SUBSCRIPTION_SUFFIX: Final = "_subscription"

# Methods the authorization gate serves locally
ENABLE_METHOD: Final = "enable"
REQUEST_ACCOUNTS_METHOD: Final = "eth_requestAccounts"
NETWORK_VERSION_METHOD: Final = "net_version"

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_RECONNECT_DELAY_SECONDS = 0.0

# Methods that need an authorized account before they reach the transport
DEFAULT_ACCOUNT_METHODS: Tuple[str, ...] = (
    "eth_coinbase",
    "eth_sendTransaction",
    "eth_sign",
    "eth_signTypedData",
    "eth_signTypedData_v3",
    "eth_signTypedData_v4",
    "personal_sendTransaction",
    "personal_sign",
)

# WebSocket close status codes
CLOSE_NORMAL = 1000


class ConnectionState(str, Enum):
    """Provider connection states."""
    INITIAL = "INITIAL"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    CLOSED = "CLOSED"


class ProviderEvent(str, Enum):
    """Static event channels. Subscription ids are the dynamic ones."""
    CONNECT = "connect"
    CLOSE = "close"
    NETWORK_CHANGED = "networkChanged"
    ACCOUNTS_CHANGED = "accountsChanged"
    NOTIFICATION = "notification"


class ErrorCode(int, Enum):
    """
    Provider error codes.

    4xxx codes are raised locally by the authorization gate.
    """
    USER_DENIED_ENABLE = 4001
    USER_DENIED_ACCOUNT_CREATION = 4010
    UNAUTHORIZED = 4100

