import sqlite3

from config import get_settings


def init_db(db_name=None):
    conn = get_db_connection(db_name)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT NOT NULL CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updatedAt DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id) ON DELETE SET NULL ON UPDATE CASCADE
        )
    ''')
    cursor.execute("CREATE INDEX IF NOT EXISTS Contact_phoneNumber_idx ON Contact (phoneNumber)")
    cursor.execute("CREATE INDEX IF NOT EXISTS Contact_email_idx ON Contact (email)")
    cursor.execute("CREATE INDEX IF NOT EXISTS Contact_linkedId_idx ON Contact (linkedId)")

    conn.close()


def get_db_connection(db_name=None):
    """Open a connection in autocommit mode; transactions are begun explicitly."""
    conn = sqlite3.connect(
        db_name or get_settings().database_path,
        isolation_level=None,
        check_same_thread=False,
        timeout=30,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
