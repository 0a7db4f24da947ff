"""
auth/errors.py -- Typed failures raised by the auth flows, codec, and store.

Flow failures (AuthFlowError subclasses) carry a stable status-equivalent code
and a human message. They propagate unmodified to the boundary layer, which is
the only place they become HTTP responses (see api/main.py).

Codec failures (TokenError subclasses) and DuplicateKey are lower-level kinds.
Flows translate them: TokenInvalid/TokenExpired -> Unauthorized,
DuplicateKey -> Conflict.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthFlowError(Exception):
    """Base class for every failure a flow may surface to the boundary."""

    status_code: int = 500
    code: str = "auth_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(AuthFlowError):
    status_code = 404
    code = "not_found"


class InvalidCredential(AuthFlowError):
    status_code = 401
    code = "invalid_credential"


class Conflict(AuthFlowError):
    """A uniqueness violation, from the pre-insert check or the insert race."""

    status_code = 422
    code = "conflict"


class PasswordTooLong(AuthFlowError):
    """The password exceeds the 72 UTF-8 bytes bcrypt can hash."""

    status_code = 422
    code = "password_too_long"


class Unauthorized(AuthFlowError):
    """Token invalid, expired or stale, or the provider rejected the code."""

    status_code = 401
    code = "unauthorized"


class UpstreamFailure(AuthFlowError):
    """The identity provider failed (network error, timeout, 5xx)."""

    status_code = 502
    code = "upstream_failure"


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base for token verification failures."""


class TokenInvalid(TokenError):
    """Bad signature, malformed token, or missing claims."""


class TokenExpired(TokenError):
    """Signature is valid but the exp claim has elapsed."""


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class DuplicateKey(Exception):
    """An insert lost a race on a unique column.

    column is "email", "name" or "provider_id" when the driver message
    identifies it, otherwise None.
    """

    def __init__(self, column: str | None = None) -> None:
        super().__init__(f"duplicate value for unique column {column or '<unknown>'}")
        self.column = column
