import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from fastapi.testclient import TestClient

from config import get_settings
from contact_store import ContactStore
from db_setup import get_db_connection, init_db


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "contacts.db")
    monkeypatch.setenv("CONTACTS_DB", path)
    get_settings.cache_clear()
    init_db(path)
    yield path
    get_settings.cache_clear()


@pytest.fixture
def store(db_path):
    conn = get_db_connection(db_path)
    yield ContactStore(conn)
    conn.close()


@pytest.fixture
def client(db_path):
    from main import app

    with TestClient(app) as test_client:
        yield test_client


def insert_contact(store, contact_id, phone, email, precedence="primary", linked_id=None,
                   created_at="2023-04-01T00:00:00.000000+00:00"):
    """Seed a row with a fixed id and creation time."""
    store.conn.execute(
        """
        INSERT INTO Contact (id, phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (contact_id, phone, email, linked_id, precedence, created_at, created_at),
    )
    return store.find_unique(contact_id)
