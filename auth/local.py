"""
auth/local.py -- Email/password login and registration.

Error precedence: every flow that checks both uniqueness columns checks email
before name, so a request that collides on both always reports the email.

Timing: login always runs bcrypt once, whether the email is unknown, the
account is federation-only, or the password is wrong [C1]. The error codes
still differ (NotFound vs InvalidCredential); whether the boundary shows them
differently is a policy setting there, not here.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import Conflict, DuplicateKey, InvalidCredential, NotFound
from auth.models import AuthResult, PublicUser, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("gatehouse.auth")

EMAIL_TAKEN = "E-mail address is already taken."
NAME_TAKEN = "Name is already taken."


def issue_result(user: User, issuer: TokenIssuer) -> AuthResult:
    """Project the user and mint both tokens from the same payload snapshot."""
    access_token, refresh_token = issuer.issue_pair(user)
    return AuthResult(user=PublicUser.from_user(user), access_token=access_token, refresh_token=refresh_token)


def ensure_available(store: UserStore, email: str, name: str) -> None:
    """Raise Conflict if email, then name, already belongs to an account."""
    if store.find_by_email(email) is not None:
        raise Conflict(EMAIL_TAKEN)
    if store.find_by_name(name) is not None:
        raise Conflict(NAME_TAKEN)


def conflict_from_duplicate(exc: DuplicateKey) -> Conflict:
    """Translate a lost insert race into the pre-check's Conflict."""
    if exc.column == "name":
        return Conflict(NAME_TAKEN)
    if exc.column == "provider_id":
        return Conflict("This GitHub account is already linked.")
    # email, or a driver that did not name the column
    return Conflict(EMAIL_TAKEN)


class LocalAuthFlow:
    def __init__(self, store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer

    def login(self, email: str, password: str) -> AuthResult:
        user = self.store.find_by_email(email)
        if user is None:
            self.hasher.burn(password)
            raise NotFound("User with given e-mail address not found.")
        # verify() returns False for federation-only users (password is None)
        if not self.hasher.verify(password, user.password):
            logger.info("Failed password login for user_id=%s", user.id)
            raise InvalidCredential("Invalid password.")
        logger.info("Password login for user_id=%s", user.id)
        return issue_result(user, self.issuer)

    def register(self, name: str, email: str, password: str, confirm_password: str | None = None) -> AuthResult:
        """Create a local account and sign it in.

        confirm_password is accepted for contract symmetry only. The boundary
        validates it against password before this method is called.
        """
        ensure_available(self.store, email, name)
        hashed = self.hasher.hash(password)
        try:
            user = self.store.insert(name=name, email=email, password=hashed)
        except DuplicateKey as exc:
            logger.info("Registration lost an insert race on %s", exc.column or "a unique column")
            raise conflict_from_duplicate(exc) from exc
        logger.info("Registered user_id=%s", user.id)
        return issue_result(user, self.issuer)
