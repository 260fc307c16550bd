import sqlite3

import pytest

from contact_store import compile_filter
from tests.conftest import insert_contact


def test_compile_filter_nests_and_or():
    sql, params = compile_filter({"OR": [{"id": 3}, {"linkedId": 3}], "email": None})

    assert sql == "((id = ?) OR (linkedId = ?)) AND email IS NULL"
    assert params == [3, 3]


def test_compile_filter_rejects_unknown_fields():
    with pytest.raises(ValueError):
        compile_filter({"name": "Doc"})


def test_create_assigns_id_and_timestamps(store):
    first = store.create(phoneNumber="123456", email="doc@hillvalley.edu", linkPrecedence="primary")
    second = store.create(phoneNumber="654321", email="marty@hillvalley.edu", linkPrecedence="primary")

    assert second.id > first.id
    assert first.createdAt == first.updatedAt
    assert first.createdAt <= second.createdAt
    assert first.linkedId is None
    assert first.deletedAt is None


def test_create_rejects_unknown_columns(store):
    with pytest.raises(ValueError):
        store.create(id=5, phoneNumber="1", email="a@b.co", linkPrecedence="primary")


def test_find_one_returns_earliest_match(store):
    insert_contact(store, 8, "123", "late@x.com", created_at="2023-04-02T00:00:00.000000+00:00")
    insert_contact(store, 9, "123", "early@x.com", created_at="2023-04-01T00:00:00.000000+00:00")

    assert store.find_one({"phoneNumber": "123"}).id == 9
    assert store.find_one({"AND": [{"phoneNumber": "123"}, {"email": "late@x.com"}]}).id == 8
    assert store.find_one({"email": "nobody@x.com"}) is None


def test_find_many_orders_by_fields(store):
    insert_contact(store, 1, "1", "a@x.com", created_at="2023-04-03T00:00:00.000000+00:00")
    insert_contact(store, 2, "2", "a@x.com", precedence="secondary", linked_id=1,
                   created_at="2023-04-01T00:00:00.000000+00:00")
    insert_contact(store, 3, "3", "a@x.com", precedence="secondary", linked_id=1,
                   created_at="2023-04-02T00:00:00.000000+00:00")

    by_precedence = store.find_many({"email": "a@x.com"}, order_by=("linkPrecedence", "createdAt"))
    by_creation = store.find_many({"email": "a@x.com"})

    assert [c.id for c in by_precedence] == [1, 2, 3]
    assert [c.id for c in by_creation] == [2, 3, 1]


def test_update_many_matches_id_or_linked_id(store):
    insert_contact(store, 1, "1", "a@x.com")
    insert_contact(store, 2, "2", "b@x.com", created_at="2023-04-02T00:00:00.000000+00:00")
    insert_contact(store, 3, "3", "b@x.com", precedence="secondary", linked_id=2,
                   created_at="2023-04-03T00:00:00.000000+00:00")

    count = store.update_many({"OR": [{"id": 2}, {"linkedId": 2}]}, linkedId=1, linkPrecedence="secondary")

    assert count == 2
    moved = store.find_many({"linkedId": 1})
    assert [c.id for c in moved] == [2, 3]
    assert all(c.updatedAt > c.createdAt for c in moved)


def test_update_returns_fresh_row(store):
    insert_contact(store, 1, "1", "a@x.com")
    insert_contact(store, 2, "2", "b@x.com")

    updated = store.update(2, linkedId=1, linkPrecedence="secondary")

    assert updated.linkedId == 1
    assert not updated.is_primary
    assert updated.primary_id == 1


def test_delete_many_nulls_dangling_links(store):
    insert_contact(store, 1, "1", "a@x.com")
    insert_contact(store, 2, "2", "a@x.com", precedence="secondary", linked_id=1)

    assert store.delete_many({"id": 1}) == 1
    assert store.find_unique(2).linkedId is None
    assert store.delete_many() == 1


def test_check_constraint_on_precedence(store):
    with pytest.raises(sqlite3.IntegrityError):
        store.create(phoneNumber="1", email="a@x.com", linkPrecedence="tertiary")


def test_transaction_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.create(phoneNumber="1", email="a@x.com", linkPrecedence="primary")
            raise RuntimeError("boom")

    assert store.find_many() == []


def test_transaction_commits(store, db_path):
    from db_setup import get_db_connection

    with store.transaction():
        store.create(phoneNumber="1", email="a@x.com", linkPrecedence="primary")

    other = get_db_connection(db_path)
    try:
        assert other.execute("SELECT COUNT(*) FROM Contact").fetchone()[0] == 1
    finally:
        other.close()
