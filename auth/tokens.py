"""
auth/tokens.py -- JWT signing and verification for the two token domains.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, token_version, iat and
       exp. No revocation state lives here -- freshness is enforced by the
       flows, which compare token_version against the store.

  Two trust domains: access tokens (short-lived, authorize one request) and
       refresh tokens (long-lived, only mint new access tokens) are signed with
       different secrets. Settings refuses identical secrets [S2], so a token
       from one domain never verifies in the other.

  Failure kinds: verify() raises TokenExpired when the signature is good but
       exp has passed, and TokenInvalid for everything else. python-jose
       checks the signature before the claims, so a forged expired token is
       reported as invalid, never as expired.

Layer rule: no imports from api/. Import from core/ is allowed for typing.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.models import TokenPayload

if TYPE_CHECKING:
    from auth.models import User
    from core.config import Settings

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Stateless HS256 sign/verify. The secret is supplied per call."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def sign(self, payload: TokenPayload, secret: str, ttl: int) -> str:
        """Encode payload with an exp claim ttl seconds from now."""
        now = self._clock()
        claims = {
            "user_id": payload.user_id,
            "token_version": payload.token_version,
            "iat": now,
            "exp": now + timedelta(seconds=ttl),
        }
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)

    def verify(self, token: str, secret: str) -> TokenPayload:
        """Decode and verify a token. Raises TokenExpired or TokenInvalid."""
        try:
            claims = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"require_exp": True})
        except ExpiredSignatureError as exc:
            raise TokenExpired(str(exc)) from exc
        except JWTError as exc:
            raise TokenInvalid(str(exc)) from exc

        user_id = claims.get("user_id")
        token_version = claims.get("token_version")
        # bool is an int subclass; a forged True/False must not pass as an id.
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (user_id, token_version)):
            raise TokenInvalid("token is missing user_id or token_version")
        return TokenPayload(user_id=user_id, token_version=token_version)


# ---------------------------------------------------------------------------
# Issuer -- the codec bound to both domains' secrets and lifetimes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenSettings:
    """Immutable secrets and lifetimes, built once at startup."""

    access_secret: str
    refresh_secret: str
    access_ttl: int
    refresh_ttl: int

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenSettings:
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=settings.access_token_expire_seconds,
            refresh_ttl=settings.refresh_token_expire_seconds,
        )


class TokenIssuer:
    """Mints and verifies access/refresh tokens for a user record.

    Usage:
        issuer = TokenIssuer(TokenSettings.from_settings(get_settings()))
        access, refresh = issuer.issue_pair(user)
        payload = issuer.verify_refresh(refresh)
    """

    def __init__(self, settings: TokenSettings, codec: TokenCodec | None = None) -> None:
        self.settings = settings
        self.codec = codec or TokenCodec()

    def issue_access(self, user: User) -> str:
        return self.codec.sign(_payload_for(user), self.settings.access_secret, self.settings.access_ttl)

    def issue_refresh(self, user: User) -> str:
        return self.codec.sign(_payload_for(user), self.settings.refresh_secret, self.settings.refresh_ttl)

    def issue_pair(self, user: User) -> tuple[str, str]:
        """Return (access_token, refresh_token) for the same payload snapshot."""
        return self.issue_access(user), self.issue_refresh(user)

    def verify_access(self, token: str) -> TokenPayload:
        return self.codec.verify(token, self.settings.access_secret)

    def verify_refresh(self, token: str) -> TokenPayload:
        return self.codec.verify(token, self.settings.refresh_secret)


def _payload_for(user: User) -> TokenPayload:
    return TokenPayload(user_id=user.id, token_version=user.token_version)
