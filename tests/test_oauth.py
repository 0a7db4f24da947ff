"""Unit tests for auth/oauth.py -- GitHubProvider with a mocked OAuth2Session.

No network: auth.oauth.OAuth2Session is patched, so these tests pin down how
provider responses and transport errors map onto Unauthorized/UpstreamFailure.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests
from authlib.integrations.requests_client import OAuthError

from auth.errors import Unauthorized, UpstreamFailure
from auth.models import ProviderIdentity
from auth.oauth import GITHUB_EMAILS_URL, GITHUB_TOKEN_URL, GITHUB_USER_URL, GitHubProvider

PROFILE = {"id": 583231, "login": "octocat"}
EMAILS = [
    {"email": "old@github.test", "primary": False, "verified": True},
    {"email": "octo@github.test", "primary": True, "verified": True},
]


def _response(payload, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


@pytest.fixture
def session():
    """Patch OAuth2Session; yield the object the `with` block receives."""
    with patch("auth.oauth.OAuth2Session") as session_cls:
        inner = MagicMock()
        session_cls.return_value.__enter__.return_value = inner
        inner.session_cls = session_cls
        yield inner


@pytest.fixture
def provider() -> GitHubProvider:
    return GitHubProvider("client-id", "client-secret", timeout=3.0)


def _route(profile=PROFILE, emails=EMAILS, profile_status=200, emails_status=200):
    responses = {
        GITHUB_USER_URL: _response(profile, profile_status),
        GITHUB_EMAILS_URL: _response(emails, emails_status),
    }
    return lambda url, **kwargs: responses[url]


class TestExchangeCode:
    def test_success(self, session, provider: GitHubProvider) -> None:
        session.fetch_token.return_value = {"access_token": "gho_abc", "token_type": "bearer"}

        assert provider.exchange_code("code-1") == "gho_abc"
        session.fetch_token.assert_called_once_with(GITHUB_TOKEN_URL, code="code-1", timeout=3.0)
        kwargs = session.session_cls.call_args.kwargs
        assert kwargs["client_id"] == "client-id"
        assert kwargs["token_endpoint_auth_method"] == "client_secret_post"

    def test_oauth_error_is_unauthorized(self, session, provider: GitHubProvider) -> None:
        session.fetch_token.side_effect = OAuthError(error="bad_verification_code", description="expired")
        with pytest.raises(Unauthorized):
            provider.exchange_code("stale")

    def test_missing_access_token_is_unauthorized(self, session, provider: GitHubProvider) -> None:
        session.fetch_token.return_value = {"scope": ""}
        with pytest.raises(Unauthorized):
            provider.exchange_code("code-1")

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), requests.Timeout("slow"), requests.HTTPError("503")],
    )
    def test_transport_failure_is_upstream(self, session, provider: GitHubProvider, error) -> None:
        session.fetch_token.side_effect = error
        with pytest.raises(UpstreamFailure):
            provider.exchange_code("code-1")


class TestFetchIdentity:
    def test_selects_primary_verified_email(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = _route()

        identity = provider.fetch_identity("gho_abc")

        assert identity == ProviderIdentity(provider_id="583231", login="octocat", email="octo@github.test")
        token = session.session_cls.call_args.kwargs["token"]
        assert token["access_token"] == "gho_abc"
        for call in session.get.call_args_list:
            assert call.kwargs["timeout"] == 3.0

    def test_unverified_primary_email_is_rejected(self, session, provider: GitHubProvider) -> None:
        emails = [{"email": "octo@github.test", "primary": True, "verified": False}]
        session.get.side_effect = _route(emails=emails)
        with pytest.raises(Unauthorized):
            provider.fetch_identity("gho_abc")

    def test_revoked_token_is_unauthorized(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = _route(profile={"message": "Bad credentials"}, profile_status=401)
        with pytest.raises(Unauthorized):
            provider.fetch_identity("gho_revoked")

    def test_server_error_is_upstream(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = _route(emails_status=502)
        with pytest.raises(UpstreamFailure):
            provider.fetch_identity("gho_abc")

    def test_timeout_is_upstream(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(UpstreamFailure):
            provider.fetch_identity("gho_abc")

    def test_non_object_email_entry_is_upstream(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = _route(emails=["octo@github.test"])
        with pytest.raises(UpstreamFailure):
            provider.fetch_identity("gho_abc")

    def test_incomplete_profile_is_upstream(self, session, provider: GitHubProvider) -> None:
        session.get.side_effect = _route(profile={"login": "octocat"})
        with pytest.raises(UpstreamFailure):
            provider.fetch_identity("gho_abc")
