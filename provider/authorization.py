"""
provider/authorization.py - Account authorization gate.

The user decides, through an external authorizer, which accounts the dapp
may see. Until then, account-requiring calls never reach the transport.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional

from core.constants import DEFAULT_ACCOUNT_METHODS, ProviderEvent
from core.exceptions import AuthorizationError, unauthorized, user_denied_enable
from core.logging import get_logger
from core.validators import normalize_accounts
from provider.events import EventRegistry

logger = get_logger("provider.authorization")

# Resolves with the approved accounts, or None if the user denied.
# May raise AuthorizationError itself (e.g. 4010).
Authorizer = Callable[[], Awaitable[Optional[List[str]]]]


class AuthorizationGate:
    """
    Tracks enabled state and authorized accounts.

    Account order is authorization order. accountsChanged is emitted only
    when the list actually changes.
    """

    def __init__(
        self,
        events: EventRegistry,
        authorizer: Optional[Authorizer] = None,
        account_methods: Iterable[str] = DEFAULT_ACCOUNT_METHODS,
        remember: bool = True,
    ):
        self._events = events
        self._authorizer = authorizer
        self.account_methods = frozenset(account_methods)
        self.remember = remember

        self.enabled = False
        self.accounts: List[str] = []
        self._remembered = False
        self._pending_enable: Optional[asyncio.Future] = None

    def requires_account(self, method: str) -> bool:
        return method in self.account_methods

    def is_authorized(self, method: str) -> bool:
        """True if method may be sent right now."""
        return not self.requires_account(method) or bool(self.accounts)

    def check(self, method: str) -> Optional[AuthorizationError]:
        """Error to reject method with, or None if it may proceed."""
        if self.is_authorized(method):
            return None
        logger.info(
            f"Blocked unauthorized call: {method}",
            extra={"context": {"method": method}},
        )
        return unauthorized(method)

    def enable(self) -> asyncio.Future:
        """
        Ask the user to authorize accounts.

        Resolves True on approval. Rejects with AuthorizationError 4001 on
        denial. Remembered approvals resolve immediately; calls made while a
        consent request is in flight share it.
        """
        loop = asyncio.get_running_loop()

        if self.enabled and self.accounts and self._remembered:
            future = loop.create_future()
            future.set_result(True)
            return future

        if self._pending_enable is not None and not self._pending_enable.done():
            return self._pending_enable

        if self._authorizer is None:
            future = loop.create_future()
            future.set_exception(user_denied_enable())
            return future

        self._pending_enable = asyncio.ensure_future(self._request_consent())
        return self._pending_enable

    async def _request_consent(self) -> bool:
        logger.info("Requesting account authorization")
        try:
            accounts = await self._authorizer()
        finally:
            self._pending_enable = None

        if not accounts:
            logger.info("User denied enable")
            raise user_denied_enable()

        self.enabled = True
        self._remembered = self.remember
        self._apply_accounts(accounts)
        return True

    def handle_accounts_changed(self, accounts: Optional[Iterable[str]]) -> bool:
        """
        External account change (e.g. the user switched accounts).

        An empty list revokes authorization. Returns True if the list changed.
        """
        changed = self._apply_accounts(list(accounts or []))
        if not self.accounts:
            self.enabled = False
            self._remembered = False
        return changed

    def _apply_accounts(self, accounts: List[str]) -> bool:
        new_accounts = normalize_accounts(accounts)
        if new_accounts == self.accounts:
            return False

        self.accounts = new_accounts
        logger.info(
            "Accounts changed",
            extra={"context": {"count": len(new_accounts)}},
        )
        self._events.emit(ProviderEvent.ACCOUNTS_CHANGED, list(new_accounts))
        return True
