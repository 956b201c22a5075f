"""
transports/ - Message transports to the node.

Modules:
- base: Transport contract
- http: JSON-RPC over HTTP (no subscriptions)
"""

from transports.base import BaseTransport
from transports.http import HttpTransport, TransportStats

__all__ = [
    "BaseTransport",
    "HttpTransport",
    "TransportStats",
]
