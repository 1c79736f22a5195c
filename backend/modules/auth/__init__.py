"""
Authentication module.

Resolves Supabase access tokens to the calling user account.

Public API:
- IAuthService: Interface for auth operations
- AuthService: PyJWT-backed implementation
- Auth exceptions: InvalidTokenError, ExpiredTokenError, etc.
"""

from .interfaces import IAuthService
from .models import JWTPayload
from .service import AuthService
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
    OperatorRequiredError,
    SessionTokenError,
)

__all__ = [
    # Interface
    "IAuthService",
    "AuthService",
    # Models
    "JWTPayload",
    # Exceptions
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "OperatorRequiredError",
    "SessionTokenError",
]
