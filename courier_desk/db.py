import os
import sqlite3
from typing import Iterable

import psycopg2
import psycopg2.extras
from flask import current_app, g


TABLES_WITH_UPDATED_AT = ("users", "items", "quotes", "deliveries")


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def executescript(self, sql: str):
        return self._conn.executescript(sql)

    def commit(self):
        self._conn.commit()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    create_schema(db)


def create_schema(db: Database) -> None:
    pk = "SERIAL PRIMARY KEY" if db.backend == "postgres" else "INTEGER PRIMARY KEY AUTOINCREMENT"

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS users (
            id {pk},
            user_type TEXT NOT NULL CHECK (user_type IN ('CUSTOMER','WAREHOUSE')),
            name TEXT NOT NULL,
            address TEXT NOT NULL,
            phone_number TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS items (
            id {pk},
            name TEXT NOT NULL,
            price REAL NOT NULL,
            qty REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS quotes (
            id {pk},
            provider_quote_id TEXT,
            customer_id INTEGER NOT NULL,
            warehouse_id INTEGER NOT NULL,
            pickup_address TEXT,
            dropoff_address TEXT,
            items TEXT NOT NULL DEFAULT '[]',
            subtotal REAL NOT NULL DEFAULT 0,
            fee REAL,
            currency TEXT,
            estimated_times TEXT,
            raw TEXT,
            status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','quoted')),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS deliveries (
            id {pk},
            provider_delivery_id TEXT NOT NULL,
            external_id TEXT NOT NULL,
            quote_db_id INTEGER NOT NULL,
            provider_quote_id TEXT,
            status TEXT,
            raw TEXT,
            last_event_at TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS webhook_events (
            id {pk},
            delivery_id TEXT,
            event_type TEXT,
            status TEXT,
            payload TEXT NOT NULL,
            received_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_deliveries_provider_delivery_id
        ON deliveries (provider_delivery_id)
        """
    )
    db.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_webhook_events_delivery_id
        ON webhook_events (delivery_id)
        """
    )

    if db.backend == "postgres":
        _create_postgres_updated_at_triggers(db)
    else:
        _create_sqlite_updated_at_triggers(db)

    db.commit()


def _create_sqlite_updated_at_triggers(db: Database) -> None:
    statements = []
    for table in TABLES_WITH_UPDATED_AT:
        statements.append(
            f"""
            CREATE TRIGGER IF NOT EXISTS trg_{table}_updated_at
            AFTER UPDATE ON {table}
            FOR EACH ROW
            WHEN NEW.updated_at = OLD.updated_at
            BEGIN
                UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
            END;
            """
        )
    db.executescript("\n".join(statements))


def _create_postgres_updated_at_triggers(db: Database) -> None:
    db.execute(
        """
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    for table in TABLES_WITH_UPDATED_AT:
        db.execute(
            f"""
            DROP TRIGGER IF EXISTS trg_{table}_updated_at ON {table};
            CREATE TRIGGER trg_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION set_updated_at();
            """
        )


def table_exists(db: Database, table: str) -> bool:
    if db.backend == "postgres":
        row = db.execute(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_schema = 'public' AND table_name = ?
            """,
            (table,),
        ).fetchone()
        return row is not None

    row = db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None
