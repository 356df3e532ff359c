from __future__ import annotations

import click
from flask import Flask

from courier_desk.db import TABLES_WITH_UPDATED_AT, close_db, get_db, init_db, table_exists


ALL_TABLES = (*TABLES_WITH_UPDATED_AT, "webhook_events")


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Schema commands for the local database."""

    @db_group.command("init")
    def db_init() -> None:
        init_db()
        close_db()
        click.echo("Schema ready.")

    @db_group.command("status")
    def db_status() -> None:
        db = get_db()
        for table in ALL_TABLES:
            if not table_exists(db, table):
                click.echo(f"{table}: missing")
                continue
            row = db.execute(f"SELECT COUNT(*) AS total FROM {table}").fetchone()
            click.echo(f"{table}: {int(row['total'])} rows")
        close_db()
