"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores and flows
do the work; these classes only own the domain shape.

User carries the password hash and must never leave a flow. PublicUser is the
projection every flow returns: it structurally has no password field, so a
hash cannot leak through a forgotten del or an extra serializer field.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A stored identity record.

    password is None for federation-only accounts (created by the GitHub flow).
    provider_id is None for local-only accounts. At least one of them is set.
    token_version starts at 0 and only grows; it is echoed into every token
    and compared on refresh, so bumping it invalidates outstanding tokens.
    """

    name: str
    email: str
    id: int | None = None
    password: str | None = None  # bcrypt hash, None = federation-only
    provider_id: str | None = None  # GitHub's stable numeric user ID, as text
    token_version: int = 0
    created_at: str | None = None


@dataclass(frozen=True)
class PublicUser:
    """User without the password hash. The only user shape flows return."""

    id: int
    name: str
    email: str
    provider_id: str | None
    token_version: int
    created_at: str | None = None

    @classmethod
    def from_user(cls, user: User) -> PublicUser:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            provider_id=user.provider_id,
            token_version=user.token_version,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class TokenPayload:
    """Claims shared by access and refresh tokens."""

    user_id: int
    token_version: int


@dataclass(frozen=True)
class ProviderIdentity:
    """What the identity provider tells us about the account behind a token."""

    provider_id: str
    login: str
    email: str


@dataclass(frozen=True)
class AuthResult:
    user: PublicUser
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AccessTokenResult:
    access_token: str
