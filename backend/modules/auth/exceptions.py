"""
Booth sign-in errors.

Token problems are 401s carrying a ``token_state`` detail the booth UI
uses to decide between "sign in" and "sign in again". Operator routes
raise OperatorRequiredError (403).
"""

from typing import Optional

from shared.exceptions import AuthenticationError, AuthorizationError


class SessionTokenError(AuthenticationError):
    """The booth session token is absent, stale or unusable."""

    token_state = "invalid"

    def __init__(self, message: str, code: str, reason: Optional[str] = None):
        details = {"token_state": self.token_state}
        if reason:
            details["reason"] = reason
        super().__init__(message, code=code, details=details)


class MissingTokenError(SessionTokenError):
    token_state = "missing"

    def __init__(self, reason: Optional[str] = None):
        super().__init__("Sign in to buy booth credits", code="MISSING_TOKEN", reason=reason)


class ExpiredTokenError(SessionTokenError):
    token_state = "expired"

    def __init__(self):
        super().__init__("Booth session expired, please sign in again", code="TOKEN_EXPIRED")


class InvalidTokenError(SessionTokenError):
    """Signature, audience or claims did not check out."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__("Booth session token is invalid", code="INVALID_TOKEN", reason=reason)


class OperatorRequiredError(AuthorizationError):
    """Raised when a non-operator calls a purchase review endpoint."""

    def __init__(self, user_role: str):
        super().__init__(
            "Booth operator access required",
            code="OPERATOR_REQUIRED",
            details={"user_role": user_role},
        )
