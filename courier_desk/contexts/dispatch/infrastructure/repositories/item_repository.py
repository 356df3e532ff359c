from __future__ import annotations

from typing import Iterable

from courier_desk.infrastructure.repositories.base import BaseRepository


class ItemRepository(BaseRepository):
    def create(self, db, *, name: str, price: float, qty: float = 0) -> int:
        cursor = db.execute(
            """
            INSERT INTO items (name, price, qty)
            VALUES (?, ?, ?)
            RETURNING id
            """,
            (name, price, qty),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, item_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM items
            WHERE id = ?
            LIMIT 1
            """,
            (item_id,),
        ).fetchone()
        return self.decode(row)

    def list(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT *
            FROM items
            ORDER BY created_at DESC, id DESC
            """
        ).fetchall()
        return self.rows_to_dicts(rows)

    def get_many(self, db, item_ids: Iterable[int]) -> list[dict]:
        ids = sorted({int(item_id) for item_id in item_ids})
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = db.execute(
            f"""
            SELECT *
            FROM items
            WHERE id IN ({placeholders})
            """,
            ids,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def update(self, db, item_id: int, changes: dict) -> None:
        sql, params = self.build_update("items", changes)
        db.execute(sql, (*params, item_id))

    def delete(self, db, item_id: int) -> bool:
        cursor = db.execute("DELETE FROM items WHERE id = ?", (item_id,))
        return bool(cursor.rowcount)
