"""
Typed exceptions for the provider.

Local errors (authorization, validation) never touch the transport.
Remote errors are carried verbatim in RpcError.
"""

from typing import Any, Optional

from core.constants import ErrorCode


class ProviderError(Exception):
    """Base exception for the provider."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Any = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        # ErrorCode members are stored as plain ints
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.data = data
        self.details = details or {}

    def __str__(self):
        if self.code is None:
            return self.message
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """JSON-RPC style error object."""
        error: dict[str, Any] = {"message": self.message}
        if self.code is not None:
            error["code"] = self.code
        if self.data is not None:
            error["data"] = self.data
        return error


class ValidationError(ProviderError):
    """Invalid input to a public call. Raised synchronously."""
    pass


class TransportError(ProviderError):
    """Framing or network level failure."""
    pass


class RpcError(ProviderError):
    """Error reported by the remote node."""

    @classmethod
    def from_payload(cls, error: Any) -> "RpcError":
        """Build from a JSON-RPC error object, keeping fields verbatim."""
        if not isinstance(error, dict):
            return cls(str(error))
        return cls(
            message=error.get("message", str(error)),
            code=error.get("code"),
            data=error.get("data"),
        )


class AuthorizationError(ProviderError):
    """User denied access, or the call needs an authorized account."""

    def __init__(self, message: str, code: ErrorCode, data: Any = None):
        super().__init__(message, code=code, data=data)


class ConnectionClosedError(ProviderError):
    """Synthetic error delivered to subscription listeners on close."""

    def __init__(self, close_code: int, reason: str):
        super().__init__(
            "Provider connection to network closed.",
            code=close_code,
            details={"close_code": close_code, "reason": reason},
        )
        self.close_code = close_code
        self.reason = reason


class InvalidTransitionError(ProviderError):
    """Raised when an invalid connection state transition is attempted."""
    pass


def user_denied_enable() -> AuthorizationError:
    return AuthorizationError(
        "User denied enabling the full provider.",
        ErrorCode.USER_DENIED_ENABLE,
    )


def user_denied_account_creation() -> AuthorizationError:
    return AuthorizationError(
        "User denied account creation.",
        ErrorCode.USER_DENIED_ACCOUNT_CREATION,
    )


def unauthorized(method: str) -> AuthorizationError:
    return AuthorizationError(
        f"The requested account has not been authorized by the user: {method}",
        ErrorCode.UNAUTHORIZED,
        data={"method": method},
    )
