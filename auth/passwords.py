"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Length limit: bcrypt only sees the first 72 bytes, and bcrypt 5 raises
ValueError past that point. hash() refuses such passwords with
PasswordTooLong. verify() and burn() never raise: a password that could not
have been hashed cannot match, but still costs one checkpw.

Cost factor: fixed per process (Settings.bcrypt_rounds, default 12). Every
hash embeds its own random salt and its rounds, so changing the setting only
affects new hashes; verification of older hashes keeps working.

Blocking: bcrypt is CPU-bound and holds no event loop. Callers reach it from
sync route handlers, which FastAPI runs in its worker threadpool.

Nothing here logs -- neither cleartext nor hashes may appear in logs.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import bcrypt

from auth.errors import PasswordTooLong

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted one-way hashing with a verify operation that never raises."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Timing equalization dummy hash. Computed once per hasher so the first
        # login attempt is not measurably slower than subsequent ones.
        self._dummy_hash = self.hash("gatehouse_timing_dummy")

    def hash(self, password: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Raises PasswordTooLong above MAX_PASSWORD_BYTES UTF-8 bytes.
        """
        secret = password.encode("utf-8")
        if len(secret) > MAX_PASSWORD_BYTES:
            raise PasswordTooLong(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret, salt).decode("utf-8")

    def verify(self, password: str, hashed: str | None) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        hashed=None (federation-only account) still runs bcrypt against the
        dummy hash and returns False. So does an over-long password.
        """
        secret = password.encode("utf-8")
        if not hashed or len(secret) > MAX_PASSWORD_BYTES:
            self.burn(password)
            return False
        try:
            return bcrypt.checkpw(secret, hashed.encode("utf-8"))
        except ValueError:
            # Malformed hash in storage ("Invalid salt").
            return False

    def burn(self, password: str) -> None:
        """Spend one verification's worth of work without a real hash.

        Used on lookup misses so "unknown email" and "wrong password" take
        the same time.
        """
        # Capped so an over-long password still costs one checkpw.
        secret = password.encode("utf-8")[:MAX_PASSWORD_BYTES]
        bcrypt.checkpw(secret, self._dummy_hash.encode("utf-8"))
