"""Tests for booth sign-in errors."""

from modules.auth.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    MissingTokenError,
    OperatorRequiredError,
    SessionTokenError,
)
from shared.exceptions import AuthenticationError, AuthorizationError


class TestSessionTokenErrors:
    def test_all_are_authentication_errors(self):
        for exc in (MissingTokenError(), ExpiredTokenError(), InvalidTokenError()):
            assert isinstance(exc, SessionTokenError)
            assert isinstance(exc, AuthenticationError)
            assert exc.status_code == 401

    def test_token_state_detail(self):
        assert MissingTokenError().details == {"token_state": "missing"}
        assert ExpiredTokenError().details == {"token_state": "expired"}
        assert InvalidTokenError().details == {"token_state": "invalid"}

    def test_reason_kept_out_of_message(self):
        exc = InvalidTokenError("Signature verification failed")
        assert exc.message == "Booth session token is invalid"
        assert exc.code == "INVALID_TOKEN"
        assert exc.details["reason"] == "Signature verification failed"

    def test_missing_token_wording(self):
        exc = MissingTokenError("Missing authorization header")
        assert exc.message == "Sign in to buy booth credits"
        assert exc.code == "MISSING_TOKEN"


class TestOperatorRequiredError:
    def test_forbidden(self):
        exc = OperatorRequiredError(user_role="user")
        assert isinstance(exc, AuthorizationError)
        assert exc.status_code == 403
        assert exc.code == "OPERATOR_REQUIRED"
        assert exc.details == {"user_role": "user"}
