"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login            -- email/password login; user + both tokens
  POST /api/v1/auth/register         -- create local account; user + both tokens
  POST /api/v1/auth/refresh          -- refresh token -> new access token
  GET  /api/v1/auth/github?code=     -- GitHub code -> GitHub access token
  POST /api/v1/auth/github           -- same, code in the JSON body
  POST /api/v1/auth/github/complete  -- GitHub access token -> user + both tokens
  GET  /api/v1/auth/me               -- current user (Bearer access token)
  POST /api/v1/auth/revoke           -- invalidate all of the caller's tokens

Handlers are plain `def`: FastAPI runs them in its threadpool, which keeps
bcrypt, SQL and the GitHub calls off the event loop.

Flow failures (auth.errors.AuthFlowError) are not caught here. They propagate
to the exception handler in api/main.py, which owns the status mapping. The
one exception is the login enumeration policy below, which needs Settings.

Security:
  [M5] Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    AccessTokenResponse,
    AuthResponse,
    GitHubCodeRequest,
    GitHubCompleteRequest,
    GitHubTokenResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import get_current_user, get_federated_flow, get_local_flow, get_refresh_flow
from auth.errors import InvalidCredential, NotFound
from auth.federated import FederatedAuthFlow
from auth.local import LocalAuthFlow
from auth.models import PublicUser
from auth.refresh import RefreshFlow

# Auth policy:
# - login, register, refresh, github, github/complete: public
# - me, revoke: require a valid access token (get_current_user)
router = APIRouter()


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"  # [M5]


# ---------------------------------------------------------------------------
# Local accounts
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=AuthResponse)
def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    flow: LocalAuthFlow = Depends(get_local_flow),
) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email is 404 and wrong password is 401 unless
    CONCEAL_ACCOUNT_EXISTENCE is set, in which case both are the same 401.
    """
    try:
        result = flow.login(body.email, body.password)
    except NotFound as exc:
        if request.app.state.settings.conceal_account_existence:
            raise InvalidCredential("Invalid e-mail address or password.") from exc
        raise
    _no_store(response)
    return AuthResponse.from_result(result)


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    flow: LocalAuthFlow = Depends(get_local_flow),
) -> AuthResponse:
    """Create a local account. confirmPassword was already checked by RegisterRequest."""
    result = flow.register(body.name, body.email, body.password, body.confirm_password)
    _no_store(response)
    return AuthResponse.from_result(result)


@router.post("/auth/refresh", response_model=AccessTokenResponse)
def refresh(
    body: RefreshRequest,
    response: Response,
    flow: RefreshFlow = Depends(get_refresh_flow),
) -> AccessTokenResponse:
    result = flow.refresh(body.refresh_token)
    _no_store(response)
    return AccessTokenResponse.from_result(result)


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


@router.get("/auth/github", response_model=GitHubTokenResponse)
def github_exchange_query(
    code: str,
    response: Response,
    flow: FederatedAuthFlow = Depends(get_federated_flow),
) -> GitHubTokenResponse:
    """Exchange the ?code= GitHub appends to the OAuth callback URL."""
    _no_store(response)
    return GitHubTokenResponse(github_access_token=flow.exchange_code(code))


@router.post("/auth/github", response_model=GitHubTokenResponse)
def github_exchange(
    body: GitHubCodeRequest,
    response: Response,
    flow: FederatedAuthFlow = Depends(get_federated_flow),
) -> GitHubTokenResponse:
    _no_store(response)
    return GitHubTokenResponse(github_access_token=flow.exchange_code(body.code))


@router.post("/auth/github/complete", response_model=AuthResponse)
def github_complete(
    body: GitHubCompleteRequest,
    response: Response,
    flow: FederatedAuthFlow = Depends(get_federated_flow),
) -> AuthResponse:
    """Log in, or sign up on first contact, with a GitHub access token."""
    result = flow.complete_login(body.github_access_token)
    _no_store(response)
    return AuthResponse.from_result(result)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: PublicUser = Depends(get_current_user)) -> UserResponse:
    """Return the user behind the Bearer access token."""
    return UserResponse.from_public(current_user)


@router.post("/auth/revoke", status_code=204)
def revoke(
    current_user: PublicUser = Depends(get_current_user),
    flow: RefreshFlow = Depends(get_refresh_flow),
) -> Response:
    """Bump the caller's token version. Every token issued so far stops working."""
    flow.revoke(current_user.id)
    return Response(status_code=204)
