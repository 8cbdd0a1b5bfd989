import sqlite3
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from logos.datastore.common import DatastoreError, NotFoundError, create_schema
from logos.datastore.users import UserRepository
from logos.records import User

BASE = datetime(2024, 3, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)


@pytest.fixture
def repo():
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    yield UserRepository(conn)
    conn.close()


def _user(email, created_at=BASE):
    return User(id=str(uuid.uuid4()), email=email, created_at=created_at)


def test_create_and_get_round_trip(repo):
    user = _user("alice@example.com")
    repo.create_user(user, "token")
    assert repo.get_user_by_id(user.id) == user


def test_get_missing_user_raises_not_found(repo):
    with pytest.raises(NotFoundError):
        repo.get_user_by_id(str(uuid.uuid4()))


def test_get_users_empty(repo):
    assert repo.get_users() == []


def test_get_users_newest_first(repo):
    older = _user("old@example.com", BASE)
    newer = _user("new@example.com", BASE + timedelta(hours=1))
    repo.create_user(older, "token")
    repo.create_user(newer, "token")
    assert [u.id for u in repo.get_users()] == [newer.id, older.id]


def test_duplicate_id_raises(repo):
    user = _user("bob@example.com")
    repo.create_user(user, "token")
    clash = User(id=user.id, email="carol@example.com", created_at=BASE)
    with pytest.raises(DatastoreError, match="failed to insert user"):
        repo.create_user(clash, "token")
    assert len(repo.get_users()) == 1


def test_naive_time_is_taken_as_utc(repo):
    naive = datetime(2024, 5, 6, 7, 8, 9)
    user = _user("dave@example.com", naive)
    repo.create_user(user, "token")
    assert repo.get_user_by_id(user.id).created_at == naive.replace(tzinfo=timezone.utc)