"""Unit tests for auth/store.py -- lookups, unique constraints, token versions.

Covers:
- insert() assigns id, created_at and token_version=0
- every unique column raises DuplicateKey naming the column
- NULL provider_id does not collide across local accounts
- find_by_id_and_version() matches only the current version
"""

from __future__ import annotations

import pytest

from auth.errors import DuplicateKey
from auth.store import UserStore


@pytest.fixture
def ana(store: UserStore):
    return store.insert(name="ana", email="a@x.com", password="$2b$04$hash")


class TestInsert:
    def test_insert_assigns_store_fields(self, ana) -> None:
        assert ana.id is not None
        assert ana.token_version == 0
        assert ana.created_at
        assert ana.provider_id is None
        assert ana.password == "$2b$04$hash"

    def test_federation_only_user_has_no_password(self, store: UserStore) -> None:
        user = store.insert(name="octo", email="o@x.com", provider_id="12345")
        assert user.password is None
        assert store.find_by_provider_id("12345").id == user.id

    def test_duplicate_email(self, store: UserStore, ana) -> None:
        with pytest.raises(DuplicateKey) as exc_info:
            store.insert(name="other", email="a@x.com", password="h")
        assert exc_info.value.column == "email"

    def test_duplicate_name(self, store: UserStore, ana) -> None:
        with pytest.raises(DuplicateKey) as exc_info:
            store.insert(name="ana", email="other@x.com", password="h")
        assert exc_info.value.column == "name"

    def test_duplicate_provider_id(self, store: UserStore) -> None:
        store.insert(name="octo", email="o@x.com", provider_id="42")
        with pytest.raises(DuplicateKey) as exc_info:
            store.insert(name="octo2", email="o2@x.com", provider_id="42")
        assert exc_info.value.column == "provider_id"

    def test_many_local_users_share_null_provider_id(self, store: UserStore, ana) -> None:
        second = store.insert(name="bo", email="b@x.com", password="h")
        assert second.id != ana.id

    def test_failed_insert_leaves_no_row(self, store: UserStore, ana) -> None:
        with pytest.raises(DuplicateKey):
            store.insert(name="ghost", email="a@x.com", password="h")
        assert store.find_by_name("ghost") is None


class TestLookups:
    def test_find_by_email_and_name(self, store: UserStore, ana) -> None:
        assert store.find_by_email("a@x.com").id == ana.id
        assert store.find_by_name("ana").id == ana.id

    def test_lookups_miss_return_none(self, store: UserStore) -> None:
        assert store.find_by_email("nobody@x.com") is None
        assert store.find_by_name("nobody") is None
        assert store.find_by_provider_id("0") is None
        assert store.get_by_id(999) is None

    def test_find_by_id_and_version(self, store: UserStore, ana) -> None:
        assert store.find_by_id_and_version(ana.id, 0).id == ana.id
        assert store.find_by_id_and_version(ana.id, 1) is None
        assert store.find_by_id_and_version(ana.id + 100, 0) is None


class TestTokenVersion:
    def test_increment_moves_the_matching_version(self, store: UserStore, ana) -> None:
        assert store.increment_token_version(ana.id) is True
        assert store.find_by_id_and_version(ana.id, 0) is None
        assert store.find_by_id_and_version(ana.id, 1).token_version == 1

    def test_increment_unknown_user(self, store: UserStore) -> None:
        assert store.increment_token_version(999) is False


def test_ping(store: UserStore) -> None:
    assert store.ping() is True
