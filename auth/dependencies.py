"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and flow wiring.

Flows are built once in the api/main.py lifespan and kept on app.state. The
getters below hand them to route handlers so routes never construct stores,
hashers or issuers themselves.

get_current_user() reads "Authorization: Bearer <access token>", verifies it
against the access secret and the stored token_version, and raises HTTP 401
on any failure.

Layer rule: may import from fastapi because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import Unauthorized
from auth.federated import FederatedAuthFlow
from auth.local import LocalAuthFlow
from auth.models import PublicUser
from auth.refresh import RefreshFlow


def get_local_flow(request: Request) -> LocalAuthFlow:
    return request.app.state.local_flow


def get_refresh_flow(request: Request) -> RefreshFlow:
    return request.app.state.refresh_flow


def get_federated_flow(request: Request) -> FederatedAuthFlow:
    """Return the GitHub flow, or 404 when no GitHub credentials are configured."""
    flow = getattr(request.app.state, "federated_flow", None)
    if flow is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "provider_disabled", "message": "GitHub login is not configured."},
        )
    return flow


def get_current_user(request: Request) -> PublicUser:
    """Require a valid access token. Raises Unauthorized (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: PublicUser = Depends(get_current_user)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise Unauthorized("Authentication required.")
    return get_refresh_flow(request).authenticate(auth_header[7:])
