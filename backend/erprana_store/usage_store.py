from __future__ import annotations

import sqlite3
from typing import Any

from .catalog_store import CatalogStore
from .database import SQLiteHealthDB
from .record_guard import RecordConflictError, RecordNotFoundError
from .time_utils import to_iso, utc_now

_USAGE_COLUMNS = """
  u.id AS id,
  u.user_id AS user_id,
  u.condition_id AS condition_id,
  c.name AS condition_name,
  u.medicine_id AS medicine_id,
  m.name AS medicine_name,
  m.type AS medicine_type,
  u.is_helping AS is_helping,
  u.dosage AS dosage,
  u.frequency AS frequency,
  u.notes AS notes,
  u.started_at AS started_at,
  u.created_at AS created_at
"""

_UPDATABLE_FIELDS = ("is_helping", "dosage", "frequency", "notes")


def _usage_row(row: sqlite3.Row) -> dict[str, Any]:
    item = dict(row)
    item["is_helping"] = bool(item["is_helping"])
    return item


class UsageStore:
    """Per-user record of which alternative medicines are tried for which condition."""

    def __init__(self, db: SQLiteHealthDB, catalog: CatalogStore) -> None:
        self._db = db
        self._catalog = catalog

    def _fetch(self, conn: sqlite3.Connection, user_id: str, usage_id: int) -> dict[str, Any]:
        row = conn.execute(
            f"""
            SELECT {_USAGE_COLUMNS}
            FROM user_alternative_medicine_usage u
            JOIN chronic_conditions c ON c.id = u.condition_id
            JOIN alternative_medicines m ON m.id = u.medicine_id
            WHERE u.id = ? AND u.user_id = ?
            """,
            (usage_id, user_id),
        ).fetchone()
        if row is None:
            raise RecordNotFoundError("Medicine usage not found")
        return _usage_row(row)

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_USAGE_COLUMNS}
                FROM user_alternative_medicine_usage u
                JOIN chronic_conditions c ON c.id = u.condition_id
                JOIN alternative_medicines m ON m.id = u.medicine_id
                WHERE u.user_id = ?
                ORDER BY u.created_at DESC, u.id DESC
                """,
                (user_id,),
            ).fetchall()
        return [_usage_row(row) for row in rows]

    def add(
        self,
        *,
        user_id: str,
        condition_id: int,
        medicine_id: int,
        is_helping: bool = False,
        dosage: str | None = None,
        frequency: str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        if not self._catalog.condition_exists(condition_id):
            raise RecordNotFoundError("Condition not found")
        if not self._catalog.medicine_exists(medicine_id):
            raise RecordNotFoundError("Medicine not found")
        now = to_iso(utc_now())
        with self._db.connection() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO user_alternative_medicine_usage (
                      user_id, condition_id, medicine_id, is_helping, dosage, frequency, notes,
                      started_at, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, condition_id, medicine_id, int(bool(is_helping)), dosage, frequency, notes, now, now),
                )
            except sqlite3.IntegrityError:
                raise RecordConflictError("Medicine already tracked for this condition") from None
            return self._fetch(conn, user_id, int(cursor.lastrowid))

    def update(self, *, user_id: str, usage_id: int, changes: dict[str, Any]) -> dict[str, Any]:
        updates = {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS}
        if "is_helping" in updates:
            updates["is_helping"] = int(bool(updates["is_helping"]))
        with self._db.connection() as conn:
            self._fetch(conn, user_id, usage_id)
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                conn.execute(
                    f"UPDATE user_alternative_medicine_usage SET {assignments} WHERE id = ? AND user_id = ?",
                    (*updates.values(), usage_id, user_id),
                )
            return self._fetch(conn, user_id, usage_id)

    def delete(self, *, user_id: str, usage_id: int) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM user_alternative_medicine_usage WHERE id = ? AND user_id = ?",
                (usage_id, user_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError("Medicine usage not found")
