from __future__ import annotations

from courier_desk.infrastructure.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    json_columns = ("address",)

    def create(self, db, *, user_type: str, name: str, address: dict, phone_number: str) -> int:
        cursor = db.execute(
            """
            INSERT INTO users (user_type, name, address, phone_number)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            (user_type, name, self.dump_json(address), phone_number),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, user_id: int) -> dict | None:
        row = db.execute(
            """
            SELECT *
            FROM users
            WHERE id = ?
            LIMIT 1
            """,
            (user_id,),
        ).fetchone()
        return self.decode(row)

    def list(self, db, *, user_type: str | None = None) -> list[dict]:
        if user_type:
            rows = db.execute(
                """
                SELECT *
                FROM users
                WHERE user_type = ?
                ORDER BY created_at DESC, id DESC
                """,
                (user_type,),
            ).fetchall()
        else:
            rows = db.execute(
                """
                SELECT *
                FROM users
                ORDER BY created_at DESC, id DESC
                """
            ).fetchall()
        return self.rows_to_dicts(rows)

    def update(self, db, user_id: int, changes: dict) -> None:
        sql, params = self.build_update("users", changes)
        db.execute(sql, (*params, user_id))

    def delete(self, db, user_id: int) -> bool:
        cursor = db.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return bool(cursor.rowcount)
