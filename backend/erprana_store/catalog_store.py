from __future__ import annotations

from typing import Any

from .database import SQLiteHealthDB

SEED_CONDITIONS = [
    ("Diabetes Type 2", "Metabolic", "Chronic condition affecting blood sugar regulation"),
    ("Hypertension", "Cardiovascular", "Chronic high blood pressure"),
    ("Arthritis", "Musculoskeletal", "Joint inflammation and pain"),
    ("Asthma", "Respiratory", "Chronic respiratory condition"),
    ("Migraine", "Neurological", "Recurring severe headaches"),
    ("Chronic Pain", "Pain Management", "Persistent pain lasting over 3 months"),
    ("Anxiety", "Mental Health", "Persistent anxiety disorder"),
    ("Depression", "Mental Health", "Major depressive disorder"),
    ("Insomnia", "Sleep", "Chronic difficulty sleeping"),
    ("IBS", "Digestive", "Irritable bowel syndrome"),
]

SEED_MEDICINES = [
    ("Turmeric (Curcumin)", "Herbal", "Anti-inflammatory spice extract"),
    ("Ashwagandha", "Ayurvedic", "Adaptogenic herb for stress and vitality"),
    ("Cinnamon", "Herbal", "Helps regulate blood sugar levels"),
    ("Omega-3 Fish Oil", "Supplement", "Essential fatty acids for heart and brain health"),
    ("Ginger", "Herbal", "Anti-nausea and anti-inflammatory"),
    ("Magnesium", "Supplement", "Essential mineral for muscle and nerve function"),
    ("Probiotics", "Supplement", "Beneficial gut bacteria"),
    ("Valerian Root", "Herbal", "Natural sleep aid"),
    ("CBD Oil", "Cannabinoid", "Non-psychoactive cannabis extract for pain and anxiety"),
    ("Acupuncture", "Traditional Medicine", "Chinese medicine needle therapy"),
    ("Yoga", "Mind-Body", "Physical and mental practice for wellness"),
    ("Meditation", "Mind-Body", "Mental practice for stress reduction"),
    ("Glucosamine", "Supplement", "Joint health supplement"),
    ("Feverfew", "Herbal", "Traditional migraine prevention herb"),
    ("Berberine", "Herbal", "Plant compound for blood sugar and cholesterol"),
]


class CatalogStore:
    def __init__(self, db: SQLiteHealthDB) -> None:
        self._db = db

    def seed(self) -> bool:
        with self._db.connection() as conn:
            existing = conn.execute("SELECT id FROM chronic_conditions LIMIT 1").fetchone()
            if existing:
                return False
            conn.executemany(
                "INSERT INTO chronic_conditions (name, category, description) VALUES (?, ?, ?)",
                SEED_CONDITIONS,
            )
            conn.executemany(
                "INSERT OR IGNORE INTO alternative_medicines (name, type, description) VALUES (?, ?, ?)",
                SEED_MEDICINES,
            )
        return True

    def list_conditions(self) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT id, name, category, description FROM chronic_conditions ORDER BY name"
            ).fetchall()
        return [dict(row) for row in rows]

    def list_medicines(self) -> list[dict[str, Any]]:
        with self._db.connection() as conn:
            rows = conn.execute(
                "SELECT id, name, type, description FROM alternative_medicines ORDER BY name"
            ).fetchall()
        return [dict(row) for row in rows]

    def condition_exists(self, condition_id: int) -> bool:
        with self._db.connection() as conn:
            row = conn.execute("SELECT 1 FROM chronic_conditions WHERE id = ?", (condition_id,)).fetchone()
        return row is not None

    def medicine_exists(self, medicine_id: int) -> bool:
        with self._db.connection() as conn:
            row = conn.execute("SELECT 1 FROM alternative_medicines WHERE id = ?", (medicine_id,)).fetchone()
        return row is not None

    def recommendations(self, condition_id: int) -> list[dict[str, Any]]:
        """Medicines people report using for a condition, most used first."""
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT
                  u.medicine_id AS medicine_id,
                  m.name AS medicine_name,
                  m.type AS medicine_type,
                  m.description AS medicine_description,
                  COUNT(*) AS total_users,
                  SUM(CASE WHEN u.is_helping THEN 1 ELSE 0 END) AS helping_count
                FROM user_alternative_medicine_usage u
                JOIN alternative_medicines m ON m.id = u.medicine_id
                WHERE u.condition_id = ?
                GROUP BY u.medicine_id, m.name, m.type, m.description
                ORDER BY total_users DESC, m.name ASC
                """,
                (condition_id,),
            ).fetchall()
        ranked: list[dict[str, Any]] = []
        for index, row in enumerate(rows):
            item = dict(row)
            total = int(item["total_users"] or 0)
            helping = int(item["helping_count"] or 0)
            item["helping_count"] = helping
            item["rank"] = index + 1
            item["helpful_percentage"] = round(helping / total * 100) if total > 0 else 0
            ranked.append(item)
        return ranked
