"""
auth/refresh.py -- Access token renewal and token-version checks.

A token is fresh only while the token_version it carries equals the stored
one. increment_token_version() therefore invalidates every access and refresh
token issued before it, without any revocation list.

The refresh token itself is not rotated: refresh() returns a new access token
only, and the refresh token stays valid until it expires or the version is
bumped.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import TokenError, TokenExpired, Unauthorized
from auth.models import AccessTokenResult, PublicUser, TokenPayload, User
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("gatehouse.auth")


class RefreshFlow:
    def __init__(self, store: UserStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    def refresh(self, refresh_token: str) -> AccessTokenResult:
        try:
            payload = self.issuer.verify_refresh(refresh_token)
        except TokenError as exc:
            raise _unauthorized(exc, "Refresh token") from exc
        user = self._current_user(payload, "Refresh token is invalid.")
        return AccessTokenResult(access_token=self.issuer.issue_access(user))

    def authenticate(self, access_token: str) -> PublicUser:
        """Resolve a Bearer access token to its user, or raise Unauthorized."""
        try:
            payload = self.issuer.verify_access(access_token)
        except TokenError as exc:
            raise _unauthorized(exc, "Access token") from exc
        return PublicUser.from_user(self._current_user(payload, "Access token is invalid."))

    def revoke(self, user_id: int) -> None:
        """Invalidate every token issued to user_id so far."""
        if not self.store.increment_token_version(user_id):
            raise Unauthorized("User no longer exists.")
        logger.info("Token version bumped for user_id=%s", user_id)

    def _current_user(self, payload: TokenPayload, message: str) -> User:
        user = self.store.find_by_id_and_version(payload.user_id, payload.token_version)
        if user is None:
            logger.info("Stale or orphaned token for user_id=%s", payload.user_id)
            raise Unauthorized(message)
        return user


def _unauthorized(exc: TokenError, kind: str) -> Unauthorized:
    if isinstance(exc, TokenExpired):
        return Unauthorized(f"{kind} has expired.")
    return Unauthorized(f"{kind} is invalid.")
