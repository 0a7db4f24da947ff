"""
auth/federated.py -- Sign-in and sign-up through an external identity provider.

Reconciliation rules for a provider identity:
  1. Provider id already bound to a user -> log that user in.
  2. Otherwise create a federation-only user (no password), but only if the
     provider's email and login are both unused (email checked first).

Federated signup never adopts an existing local account that shares its
email. It fails closed with Conflict; linking accounts is a separate flow.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateKey
from auth.local import conflict_from_duplicate, ensure_available, issue_result
from auth.models import AuthResult
from auth.oauth import IdentityProvider
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("gatehouse.auth")


class FederatedAuthFlow:
    def __init__(self, store: UserStore, provider: IdentityProvider, issuer: TokenIssuer) -> None:
        self.store = store
        self.provider = provider
        self.issuer = issuer

    def exchange_code(self, code: str) -> str:
        """Return the provider access token for an authorization code."""
        return self.provider.exchange_code(code)

    def complete_login(self, provider_access_token: str) -> AuthResult:
        identity = self.provider.fetch_identity(provider_access_token)

        user = self.store.find_by_provider_id(identity.provider_id)
        if user is not None:
            logger.info("Federated login for user_id=%s", user.id)
            return issue_result(user, self.issuer)

        ensure_available(self.store, identity.email, identity.login)
        try:
            user = self.store.insert(name=identity.login, email=identity.email, provider_id=identity.provider_id)
        except DuplicateKey as exc:
            logger.info("Federated signup lost an insert race on %s", exc.column or "a unique column")
            raise conflict_from_duplicate(exc) from exc
        logger.info("Federated signup created user_id=%s (provider_id=%s)", user.id, identity.provider_id)
        return issue_result(user, self.issuer)
