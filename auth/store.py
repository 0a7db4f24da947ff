"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Flow and route code never touches SQL directly.

Uniqueness:
  name, email and provider_id each carry a UNIQUE constraint. The flows check
  existence before inserting, but two concurrent signups can both pass that
  check. The constraint is what actually serializes them: the loser's INSERT
  raises IntegrityError, which insert() converts to DuplicateKey so flows can
  answer with the same Conflict as the pre-check path.

  provider_id is NULL for local accounts. SQLite and PostgreSQL both treat
  NULLs as distinct under UNIQUE, so any number of local accounts can coexist
  while a bound provider id stays unique.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB URL: Settings.database_url (default gatehouse_auth.db at the repo root).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateKey
from auth.models import User

logger = logging.getLogger("gatehouse.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text),  # NULL for federation-only users
    Column("provider_id", String(64), unique=True),  # NULL for local-only users
    Column("token_version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

# Matches the column in driver messages such as
#   sqlite:   UNIQUE constraint failed: users.email
#   postgres: duplicate key value violates unique constraint "users_email_key"
_UNIQUE_COLUMN_RE = re.compile(r"users[._](email|name|provider_id)")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _duplicate_column(exc: IntegrityError) -> str | None:
    match = _UNIQUE_COLUMN_RE.search(str(exc.orig))
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.insert(name="ana", email="a@x.com", password=hasher.hash("..."))
        store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads -- every lookup hits a unique column, so zero or one row
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        return self._find_one(_users.c.email == email)

    def find_by_name(self, name: str) -> User | None:
        return self._find_one(_users.c.name == name)

    def find_by_provider_id(self, provider_id: str) -> User | None:
        return self._find_one(_users.c.provider_id == provider_id)

    def find_by_id_and_version(self, user_id: int, token_version: int) -> User | None:
        """Return the user only if its token_version still equals the given one.

        The refresh flow relies on this exact match: a bumped version makes
        every previously issued token look up nothing.
        """
        return self._find_one((_users.c.id == user_id) & (_users.c.token_version == token_version))

    def get_by_id(self, user_id: int) -> User | None:
        return self._find_one(_users.c.id == user_id)

    def _find_one(self, clause) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(clause)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(
        self,
        name: str,
        email: str,
        password: str | None = None,
        provider_id: str | None = None,
    ) -> User:
        """Insert a new user and return the stored record.

        Raises DuplicateKey if name, email or provider_id is already taken,
        including when a concurrent insert won the race after the caller's
        existence checks passed.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        name=name,
                        email=email,
                        password=password,
                        provider_id=provider_id,
                        token_version=0,
                        created_at=_now_iso(),
                    )
                )
                user_id = result.inserted_primary_key[0]
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except IntegrityError as exc:
            raise DuplicateKey(_duplicate_column(exc)) from exc
        return _row_to_user(row)

    def increment_token_version(self, user_id: int) -> bool:
        """Bump token_version, invalidating every token issued so far.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(token_version=_users.c.token_version + 1)
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password=row.password,
        provider_id=row.provider_id,
        token_version=row.token_version,
        created_at=row.created_at,
    )
