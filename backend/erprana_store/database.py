from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

WEARABLE_METRIC_COLUMNS: dict[str, str] = {
    "heart_rate": "INTEGER",
    "heart_rate_variability": "INTEGER",
    "resting_heart_rate": "INTEGER",
    "blood_oxygen_saturation": "REAL",
    "blood_pressure_systolic": "INTEGER",
    "blood_pressure_diastolic": "INTEGER",
    "respiratory_rate": "INTEGER",
    "body_temperature": "REAL",
    "skin_temperature": "REAL",
    "steps": "INTEGER",
    "distance": "REAL",
    "calories_burned": "INTEGER",
    "active_minutes": "INTEGER",
    "flights_climbed": "INTEGER",
    "sleep_duration": "INTEGER",
    "sleep_quality": "INTEGER",
    "deep_sleep": "INTEGER",
    "light_sleep": "INTEGER",
    "rem_sleep": "INTEGER",
    "sleep_latency": "INTEGER",
    "stress_level": "INTEGER",
    "vo2_max": "REAL",
    "recovery_score": "INTEGER",
    "ambient_temperature": "REAL",
    "humidity": "REAL",
    "uv_exposure": "REAL",
    "altitude": "REAL",
    "noise_level": "REAL",
    "ecg_reading": "TEXT",
    "afib_detected": "INTEGER",
    "fall_detected": "INTEGER",
    "notes": "TEXT",
    "device_type": "TEXT",
}

WEARABLE_BOOLEAN_COLUMNS = {"afib_detected", "fall_detected"}


class SQLiteHealthDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        metric_columns = ",\n".join(
            f"                  {name} {sql_type}" for name, sql_type in WEARABLE_METRIC_COLUMNS.items()
        )
        with self._lock, self.connection() as conn:
            conn.executescript(
                f"""
                CREATE TABLE IF NOT EXISTS chronic_conditions (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  name TEXT UNIQUE NOT NULL,
                  category TEXT NOT NULL,
                  description TEXT
                );

                CREATE TABLE IF NOT EXISTS alternative_medicines (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  name TEXT UNIQUE NOT NULL,
                  type TEXT NOT NULL,
                  description TEXT
                );

                CREATE TABLE IF NOT EXISTS user_alternative_medicine_usage (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  user_id TEXT NOT NULL,
                  condition_id INTEGER NOT NULL REFERENCES chronic_conditions(id),
                  medicine_id INTEGER NOT NULL REFERENCES alternative_medicines(id),
                  is_helping INTEGER NOT NULL DEFAULT 0,
                  dosage TEXT,
                  frequency TEXT,
                  notes TEXT,
                  started_at TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  UNIQUE (user_id, condition_id, medicine_id)
                );

                CREATE INDEX IF NOT EXISTS idx_usage_user_created
                  ON user_alternative_medicine_usage(user_id, created_at);

                CREATE TABLE IF NOT EXISTS wearable_readings (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  user_id TEXT NOT NULL,
                  recorded_at TEXT NOT NULL,
{metric_columns},
                  created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_readings_user_recorded
                  ON wearable_readings(user_id, recorded_at);
                """
            )
