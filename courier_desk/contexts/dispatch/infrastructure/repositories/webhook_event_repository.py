from __future__ import annotations

from typing import Any

from courier_desk.infrastructure.repositories.base import BaseRepository, utc_now_iso


class WebhookEventRepository(BaseRepository):
    json_columns = ("payload",)

    def append(
        self,
        db,
        *,
        delivery_id: str | None,
        event_type: str | None,
        status: str | None,
        payload: Any,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO webhook_events (delivery_id, event_type, status, payload, received_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (delivery_id, event_type, status, self.dump_json(payload), utc_now_iso()),
        )
        return self.inserted_id(cursor)

    def list(self, db, *, delivery_id: str | None = None, limit: int = 200) -> list[dict]:
        if delivery_id:
            rows = db.execute(
                """
                SELECT *
                FROM webhook_events
                WHERE delivery_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (delivery_id, int(limit)),
            ).fetchall()
        else:
            rows = db.execute(
                """
                SELECT *
                FROM webhook_events
                ORDER BY id DESC
                LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
        return self.rows_to_dicts(rows)
