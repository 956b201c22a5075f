"""
provider/ - Request multiplexer between a dapp and a node transport.

Modules:
- events: Topic keyed listener registry
- correlator: Request ids, pending table, response matching
- subscriptions: Subscribe/unsubscribe and push routing
- lifecycle: Connection state machine with automatic reconnect
- authorization: Account authorization gate
- ethereum: The public provider
- config: YAML/env configuration
"""

from provider.authorization import AuthorizationGate
from provider.config import ProviderConfig, load_provider_config
from provider.correlator import RequestCorrelator
from provider.ethereum import EthereumProvider, SubscribingEthereumProvider, create_provider
from provider.events import EventRegistry
from provider.lifecycle import ConnectionLifecycle
from provider.subscriptions import SubscriptionRouter

__all__ = [
    "AuthorizationGate",
    "ConnectionLifecycle",
    "EthereumProvider",
    "EventRegistry",
    "ProviderConfig",
    "RequestCorrelator",
    "SubscribingEthereumProvider",
    "SubscriptionRouter",
    "create_provider",
    "load_provider_config",
]
