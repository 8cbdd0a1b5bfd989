import sqlite3
import uuid
from datetime import datetime, timezone

import pytest

from logos.datastore.common import NotFoundError, create_schema
from logos.datastore.edition_template_sources import EditionTemplateSourceRepository
from logos.datastore.edition_templates import EditionTemplateRepository
from logos.datastore.sources import SourceRepository
from logos.records import EditionTemplate, ReadingSource

CREATED = datetime(2024, 3, 4, 5, 6, 7, 890000, tzinfo=timezone.utc)
STAMP = "2024-03-04T05:06:07.000000Z"


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def repo(conn):
    return SourceRepository(conn)


def make_source(name="Newsletter", **changes):
    values = dict(
        id=str(uuid.uuid4()),
        name=name,
        type="email",
        identifier=f"{name.lower()}@example.com",
        created_at=CREATED,
    )
    values.update(changes)
    return ReadingSource(**values)


def link_reading(conn, source_id, user_id):
    reading_id = str(uuid.uuid4())
    with conn:
        conn.execute(
            "INSERT INTO readings (id, reading_source_id, created_at, content_hash, "
            "excerpt, format, storage_path, title) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (reading_id, source_id, STAMP, reading_id, "excerpt", "html", "path", "title"),
        )
        conn.execute(
            "INSERT INTO user_readings (user_id, reading_id, created_at, received_at) "
            "VALUES (?, ?, ?, ?)",
            (user_id, reading_id, STAMP, STAMP),
        )


def assign_to_template(conn, user_id, source_id):
    template = EditionTemplate(
        id=str(uuid.uuid4()),
        user_id=user_id,
        name="Template",
        created_at=CREATED,
        delivery_interval="daily",
        delivery_time="08:00:00",
    )
    EditionTemplateRepository(conn).create_edition_template(template)
    EditionTemplateSourceRepository(conn).add_source_to_template(
        template.id, source_id, CREATED
    )


def test_create_and_get_round_trip(repo):
    source = make_source()
    repo.create_reading_source(source)
    assert repo.get_reading_source_by_id(source.id) == source


@pytest.mark.parametrize(
    "changes", [{"name": ""}, {"identifier": ""}, {"id": "not-a-uuid"}]
)
def test_create_rejects_invalid_source(repo, changes):
    with pytest.raises(ValueError):
        repo.create_reading_source(make_source(**changes))


def test_get_missing_source_not_found(repo):
    with pytest.raises(NotFoundError):
        repo.get_reading_source_by_id(str(uuid.uuid4()))


def test_get_by_identifier_and_type(repo):
    source = make_source()
    repo.create_reading_source(source)
    found = repo.get_source_by_identifier_and_type(source.identifier, "email")
    assert found == source


def test_get_by_identifier_wrong_type_not_found(repo):
    source = make_source()
    repo.create_reading_source(source)
    with pytest.raises(NotFoundError, match="not found"):
        repo.get_source_by_identifier_and_type(source.identifier, "rss")


@pytest.mark.parametrize(
    "identifier, source_type", [("", "email"), ("a@example.com", "")]
)
def test_get_by_identifier_rejects_empty_arguments(repo, identifier, source_type):
    with pytest.raises(ValueError):
        repo.get_source_by_identifier_and_type(identifier, source_type)


def test_all_sources_sorted_by_name(repo):
    for name in ["Charlie", "Alpha", "Bravo"]:
        repo.create_reading_source(make_source(name))
    assert [s.name for s in repo.get_reading_sources()] == ["Alpha", "Bravo", "Charlie"]


def test_unassigned_sources(conn, repo):
    user_id = str(uuid.uuid4())
    other_user = str(uuid.uuid4())
    unassigned = make_source("Unassigned")
    assigned = make_source("Assigned")
    foreign = make_source("Foreign")
    assigned_elsewhere = make_source("Elsewhere")
    for source in (unassigned, assigned, foreign, assigned_elsewhere):
        repo.create_reading_source(source)

    link_reading(conn, unassigned.id, user_id)
    link_reading(conn, unassigned.id, user_id)
    link_reading(conn, assigned.id, user_id)
    link_reading(conn, foreign.id, other_user)
    link_reading(conn, assigned_elsewhere.id, user_id)
    assign_to_template(conn, user_id, assigned.id)
    assign_to_template(conn, other_user, assigned_elsewhere.id)

    result = repo.get_unassigned_sources_by_user_id(user_id)
    assert [s.id for s in result] == [assigned_elsewhere.id, unassigned.id]


def test_unassigned_sources_rejects_invalid_user(repo):
    with pytest.raises(ValueError):
        repo.get_unassigned_sources_by_user_id("user")