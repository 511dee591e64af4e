from .catalog_store import CatalogStore
from .database import WEARABLE_METRIC_COLUMNS, SQLiteHealthDB
from .record_guard import RecordConflictError, RecordGuard, RecordNotFoundError, RecordPolicyError
from .usage_store import UsageStore
from .wearable_store import WearableReadingStore

__all__ = [
    "WEARABLE_METRIC_COLUMNS",
    "CatalogStore",
    "RecordConflictError",
    "RecordGuard",
    "RecordNotFoundError",
    "RecordPolicyError",
    "SQLiteHealthDB",
    "UsageStore",
    "WearableReadingStore",
]
