from __future__ import annotations

from typing import Any

from courier_desk.infrastructure.repositories.base import BaseRepository


class DeliveryRepository(BaseRepository):
    json_columns = ("raw",)

    def create(
        self,
        db,
        *,
        provider_delivery_id: str,
        external_id: str,
        quote_db_id: int,
        provider_quote_id: str | None,
        status: str | None,
        raw: Any,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO deliveries (provider_delivery_id, external_id, quote_db_id, provider_quote_id, status, raw)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (provider_delivery_id, external_id, quote_db_id, provider_quote_id, status, self.dump_json(raw)),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, delivery_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM deliveries
            WHERE id = ?
            LIMIT 1
            """,
            (delivery_id,),
        ).fetchone()
        return self.decode(row)

    def get_by_provider_id(self, db, provider_delivery_id: str) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM deliveries
            WHERE provider_delivery_id = ?
            LIMIT 1
            """,
            (provider_delivery_id,),
        ).fetchone()
        return self.decode(row)

    def list(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT *
            FROM deliveries
            ORDER BY created_at DESC, id DESC
            """
        ).fetchall()
        return self.rows_to_dicts(rows)

    def update_status(self, db, delivery_id: int, *, status: str | None, raw: Any, observed_at: str) -> None:
        """Store a state read from the provider and move ``last_event_at`` forward to ``observed_at``."""
        db.execute(
            """
            UPDATE deliveries
            SET status = ?,
                raw = ?,
                last_event_at = CASE
                    WHEN last_event_at IS NULL OR last_event_at < ? THEN ?
                    ELSE last_event_at
                END,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (status, self.dump_json(raw), observed_at, observed_at, delivery_id),
        )

    def apply_webhook_status(
        self,
        db,
        provider_delivery_id: str,
        *,
        status: str,
        raw: Any,
        event_at: str | None,
    ) -> str:
        """Overwrite status/raw for a provider delivery id.

        Returns ``applied``, ``no_match`` or ``stale``. With ``event_at`` the
        update only lands when the stored ``last_event_at`` is not newer, so a
        late replay of an older event cannot regress the status.
        """
        if event_at:
            cursor = db.execute(
                """
                UPDATE deliveries
                SET status = ?, raw = ?, last_event_at = ?, updated_at = CURRENT_TIMESTAMP
                WHERE provider_delivery_id = ?
                  AND (last_event_at IS NULL OR last_event_at <= ?)
                """,
                (status, self.dump_json(raw), event_at, provider_delivery_id, event_at),
            )
        else:
            cursor = db.execute(
                """
                UPDATE deliveries
                SET status = ?, raw = ?, updated_at = CURRENT_TIMESTAMP
                WHERE provider_delivery_id = ?
                """,
                (status, self.dump_json(raw), provider_delivery_id),
            )
        if cursor.rowcount:
            return "applied"
        if event_at and self.get_by_provider_id(db, provider_delivery_id) is not None:
            return "stale"
        return "no_match"

    def delete(self, db, delivery_id: int) -> bool:
        cursor = db.execute("DELETE FROM deliveries WHERE id = ?", (delivery_id,))
        return bool(cursor.rowcount)
