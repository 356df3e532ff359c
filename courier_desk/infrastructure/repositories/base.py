from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence


def utc_now_iso() -> str:
    return normalize_timestamp(datetime.now(timezone.utc))


def normalize_timestamp(value: Any) -> str | None:
    """Return a fixed-width ISO-8601 UTC string for epoch seconds/ms, datetimes or ISO text.

    Fixed width keeps stored values comparable as plain text.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        resolved = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        try:
            resolved = resolved.astimezone(timezone.utc)
        except OverflowError:
            return None
        return resolved.isoformat(timespec="microseconds").replace("+00:00", "Z")
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            seconds = float(value)
            # Epoch values above this are milliseconds.
            if seconds > 1e11:
                seconds = seconds / 1000.0
            moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
        return normalize_timestamp(moment)
    raw = str(value).strip()
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    return normalize_timestamp(parsed)


class BaseRepository:
    json_columns: Sequence[str] = ()

    @staticmethod
    def inserted_id(cursor) -> int:
        row = cursor.fetchone()
        return int(row["id"] if isinstance(row, dict) else row[0])

    @staticmethod
    def dump_json(value: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False, default=str)

    @staticmethod
    def load_json(value: Any) -> Any:
        if value is None or isinstance(value, (dict, list)):
            return value
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value

    def decode(self, row: Any) -> dict | None:
        if row is None:
            return None
        record = dict(row)
        for column in self.json_columns:
            if column in record:
                record[column] = self.load_json(record[column])
        return record

    def rows_to_dicts(self, rows: Iterable[Any]) -> list[dict]:
        return [self.decode(row) for row in rows]

    def build_update(self, table: str, changes: dict) -> tuple[str, list[Any]]:
        assignments = []
        params: list[Any] = []
        for column, value in changes.items():
            assignments.append(f"{column} = ?")
            params.append(self.dump_json(value) if column in self.json_columns else value)
        assignments.append("updated_at = CURRENT_TIMESTAMP")
        return f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?", params
