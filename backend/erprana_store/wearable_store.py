from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from .database import WEARABLE_BOOLEAN_COLUMNS, WEARABLE_METRIC_COLUMNS, SQLiteHealthDB
from .time_utils import to_iso, utc_now


def _reading_row(row: sqlite3.Row) -> dict[str, Any]:
    item = dict(row)
    for column in WEARABLE_BOOLEAN_COLUMNS:
        if item.get(column) is not None:
            item[column] = bool(item[column])
    return item


class WearableReadingStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def add(self, *, user_id: str, metrics: dict[str, Any], recorded_at: datetime | None = None) -> dict[str, Any]:
        values = {column: metrics[column] for column in WEARABLE_METRIC_COLUMNS if metrics.get(column) is not None}
        for column in WEARABLE_BOOLEAN_COLUMNS & values.keys():
            values[column] = int(bool(values[column]))
        now = utc_now()
        columns = ["user_id", "recorded_at", *values.keys(), "created_at"]
        params = [user_id, to_iso(recorded_at or now), *values.values(), to_iso(now)]
        placeholders = ", ".join("?" for _ in columns)
        with self._db.connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO wearable_readings ({', '.join(columns)}) VALUES ({placeholders})",
                params,
            )
            row = conn.execute("SELECT * FROM wearable_readings WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return _reading_row(row)

    def list_for_user(self, *, user_id: str, limit: int, since: datetime | None = None) -> list[dict[str, Any]]:
        query = "SELECT * FROM wearable_readings WHERE user_id = ?"
        params: list[Any] = [user_id]
        if since is not None:
            query += " AND recorded_at >= ?"
            params.append(to_iso(since))
        query += " ORDER BY recorded_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_reading_row(row) for row in rows]
