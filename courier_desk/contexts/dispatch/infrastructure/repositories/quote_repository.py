from __future__ import annotations

from typing import Any

from courier_desk.infrastructure.repositories.base import BaseRepository


class QuoteRepository(BaseRepository):
    json_columns = ("pickup_address", "dropoff_address", "items", "estimated_times", "raw")

    def create(
        self,
        db,
        *,
        customer_id: int,
        warehouse_id: int,
        pickup_address: Any,
        dropoff_address: Any,
        items: list[dict],
        subtotal: float,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO quotes (customer_id, warehouse_id, pickup_address, dropoff_address, items, subtotal, status)
            VALUES (?, ?, ?, ?, ?, ?, 'draft')
            RETURNING id
            """,
            (
                customer_id,
                warehouse_id,
                self.dump_json(pickup_address),
                self.dump_json(dropoff_address),
                self.dump_json(items),
                subtotal,
            ),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, quote_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM quotes
            WHERE id = ?
            LIMIT 1
            """,
            (quote_id,),
        ).fetchone()
        return self.decode(row)

    def list(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT *
            FROM quotes
            ORDER BY created_at DESC, id DESC
            """
        ).fetchall()
        return self.rows_to_dicts(rows)

    def mark_quoted(
        self,
        db,
        quote_id: int,
        *,
        provider_quote_id: str,
        fee: float | None,
        currency: str | None,
        estimated_times: Any,
        raw: Any,
    ) -> None:
        db.execute(
            """
            UPDATE quotes
            SET provider_quote_id = ?,
                fee = ?,
                currency = ?,
                estimated_times = ?,
                raw = ?,
                status = 'quoted',
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (
                provider_quote_id,
                fee,
                currency,
                self.dump_json(estimated_times),
                self.dump_json(raw),
                quote_id,
            ),
        )

    def update(self, db, quote_id: int, changes: dict) -> None:
        sql, params = self.build_update("quotes", changes)
        db.execute(sql, (*params, quote_id))

    def delete(self, db, quote_id: int) -> bool:
        cursor = db.execute("DELETE FROM quotes WHERE id = ?", (quote_id,))
        return bool(cursor.rowcount)
