"""
auth/oauth.py -- Identity provider capability and its GitHub implementation.

The federated flow only needs two things from a provider, so it depends on the
narrow IdentityProvider protocol rather than on an HTTP client. Tests pass a
fake; production passes GitHubProvider.

GitHubProvider uses authlib's requests-based OAuth2Session:
  exchange_code  -- POST https://github.com/login/oauth/access_token
  fetch_identity -- GET  https://api.github.com/user
                    GET  https://api.github.com/user/emails

Security notes:
  [H1] Email verification is mandatory. Only the email entry where both
       primary=true AND verified=true is accepted. An unverified address could
       be a victim's email added by an attacker without confirming it.

  Timeouts: every outbound call carries Settings.provider_timeout_seconds.
       requests waits forever by default, and a hung provider would otherwise
       pin a worker thread per login attempt.

Failure mapping:
  OAuth error body (bad_verification_code, ...) -> Unauthorized
  401/403 from the API                          -> Unauthorized
  connection error, timeout, 5xx, bad JSON      -> UpstreamFailure

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Protocol

import requests
from authlib.integrations.requests_client import OAuth2Session, OAuthError

from auth.errors import Unauthorized, UpstreamFailure
from auth.models import ProviderIdentity

logger = logging.getLogger("gatehouse.auth.oauth")

GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"  # noqa: S105 -- URL, not a password
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


class IdentityProvider(Protocol):
    def exchange_code(self, code: str) -> str:
        """Trade an authorization code for a provider access token."""
        ...

    def fetch_identity(self, access_token: str) -> ProviderIdentity:
        """Return the account behind a provider access token."""
        ...


class GitHubProvider:
    """IdentityProvider backed by GitHub's OAuth app endpoints."""

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

    def _session(self, token: dict | None = None) -> OAuth2Session:
        # GitHub expects the client credentials in the form body.
        return OAuth2Session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_endpoint_auth_method="client_secret_post",
            token=token,
        )

    def exchange_code(self, code: str) -> str:
        with self._session() as session:
            try:
                token = session.fetch_token(GITHUB_TOKEN_URL, code=code, timeout=self.timeout)
            except OAuthError as exc:
                logger.info("GitHub rejected authorization code: %s", exc.error)
                raise Unauthorized("Invalid code.") from exc
            except (requests.RequestException, ValueError) as exc:
                logger.warning("GitHub token exchange failed: %s", exc)
                raise UpstreamFailure("GitHub is unavailable. Try again later.") from exc

        access_token = token.get("access_token")
        if not access_token:
            raise Unauthorized("Invalid code.")
        return access_token

    def fetch_identity(self, access_token: str) -> ProviderIdentity:
        """Fetch the numeric id, login and primary verified email.

        GitHub does not include the email in the profile reliably (it is null
        when the user keeps it private), so the email list is always read.
        """
        with self._session(token={"access_token": access_token, "token_type": "bearer"}) as session:
            profile = self._get_json(session, GITHUB_USER_URL)
            emails = self._get_json(session, GITHUB_EMAILS_URL)

        if not isinstance(emails, list):
            raise UpstreamFailure("GitHub returned an unexpected email list.")

        email: str | None = None
        for entry in emails:
            if not isinstance(entry, dict):
                raise UpstreamFailure("GitHub returned an unexpected email entry.")
            if entry.get("primary") and entry.get("verified"):
                email = entry.get("email")
                break
        if not email:
            raise Unauthorized(
                "GitHub account has no primary verified email. "
                "Verify your email address on GitHub before logging in."
            )

        try:
            return ProviderIdentity(provider_id=str(profile["id"]), login=profile["login"], email=email)
        except (KeyError, TypeError) as exc:
            raise UpstreamFailure("GitHub returned an incomplete user profile.") from exc

    def _get_json(self, session: OAuth2Session, url: str):
        try:
            resp = session.get(url, timeout=self.timeout, headers={"Accept": "application/vnd.github+json"})
            if resp.status_code in (401, 403):
                raise Unauthorized("GitHub access token is invalid or expired.")
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("GitHub API call to %s failed: %s", url, exc)
            raise UpstreamFailure("GitHub is unavailable. Try again later.") from exc
