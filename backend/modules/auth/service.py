"""
Authentication service implementation.

Validates Supabase JWT tokens locally with the project's JWT secret.
"""

from datetime import datetime, timezone
import jwt
from pydantic import ValidationError

from shared.models import AuthenticatedUser

from .interfaces import IAuthService
from .models import JWTPayload
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
)


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    Uses Supabase JWT tokens for authentication.
    """

    def __init__(self, jwt_secret: str):
        self._jwt_secret = jwt_secret

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate a JWT token and return the authenticated user.

        This implementation validates Supabase JWTs using the JWT secret.
        """
        if not token:
            raise MissingTokenError()

        if not self._jwt_secret:
            raise InvalidTokenError("Server authentication not configured")

        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                audience="authenticated",
            )
            jwt_payload = JWTPayload(**payload)
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(str(e))
        except ValidationError:
            raise InvalidTokenError("missing required claims")

        try:
            return AuthenticatedUser(
                id=jwt_payload.sub,
                email=jwt_payload.email or None,
                email_verified=jwt_payload.email_confirmed_at is not None,
                last_sign_in=datetime.fromtimestamp(jwt_payload.iat, tz=timezone.utc),
                role=jwt_payload.app_role,
            )
        except ValidationError:
            raise InvalidTokenError("malformed claims")
