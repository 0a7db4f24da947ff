"""
API request and response models for Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format: JSON keys are camelCase (accessToken, confirmPassword, ...).
alias_generator handles the mapping; populate_by_name lets Python code build
models with snake_case keyword arguments.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import AccessTokenResult, AuthResult, PublicUser
from auth.passwords import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose. Deliverability is the mail system's problem; this only
# rejects strings that cannot be an address at all.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"

_REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)
# Credentials are taken verbatim: whitespace is part of a password.
_CREDENTIAL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_RESPONSE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# bcrypt only hashes the first 72 bytes. The limit is in UTF-8 bytes, not
# characters: 64 x "é" is 128 bytes.
def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8.")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = _CREDENTIAL_CONFIG

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    confirmPassword is checked here, at the boundary. The register flow
    trusts password alone.
    """

    model_config = _CREDENTIAL_CONFIG

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=MAX_PASSWORD_BYTES)
    confirm_password: str = Field(max_length=MAX_PASSWORD_BYTES)

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_identity(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match.")
        return self


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh."""

    model_config = _REQUEST_CONFIG

    refresh_token: str = Field(min_length=1, max_length=4096)


class GitHubCodeRequest(BaseModel):
    """Request body for POST /api/v1/auth/github."""

    model_config = _REQUEST_CONFIG

    code: str = Field(min_length=1, max_length=255)


class GitHubCompleteRequest(BaseModel):
    """Request body for POST /api/v1/auth/github/complete."""

    model_config = _REQUEST_CONFIG

    github_access_token: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """A user as the API shows it. There is no password field to leak."""

    model_config = _RESPONSE_CONFIG

    id: int
    name: str
    email: str
    provider_id: Optional[str]
    token_version: int
    created_at: Optional[str] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            provider_id=user.provider_id,
            token_version=user.token_version,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Response for login, register and GitHub completion."""

    model_config = _RESPONSE_CONFIG

    user: UserResponse
    access_token: str
    refresh_token: str

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            user=UserResponse.from_public(result.user),
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        )


class AccessTokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = _RESPONSE_CONFIG

    access_token: str

    @classmethod
    def from_result(cls, result: AccessTokenResult) -> "AccessTokenResponse":
        return cls(access_token=result.access_token)


class GitHubTokenResponse(BaseModel):
    """Response for the GitHub code exchange."""

    model_config = _RESPONSE_CONFIG

    github_access_token: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
