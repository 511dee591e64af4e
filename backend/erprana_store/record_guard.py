from __future__ import annotations

import re


class RecordPolicyError(Exception):
    pass


class RecordNotFoundError(Exception):
    pass


class RecordConflictError(Exception):
    pass


class RecordGuard:
    _USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:@-]{1,63}$")
    _PERIODS = {"day", "week", "month", "quarter", "year"}
    MAX_LIMIT = 500

    def ensure_user_id(self, user_id: str) -> str:
        candidate = (user_id or "").strip()
        if not self._USER_ID_RE.fullmatch(candidate):
            raise RecordPolicyError("Invalid user id")
        return candidate

    def normalize_period(self, period: str | None) -> str | None:
        if period is None:
            return None
        cleaned = period.strip().lower()
        if not cleaned:
            return None
        if cleaned not in self._PERIODS:
            raise RecordPolicyError(f"Unsupported period: {period}")
        return cleaned

    def normalize_limit(self, limit: int) -> int:
        if not (1 <= limit <= self.MAX_LIMIT):
            raise RecordPolicyError(f"Limit must be between 1 and {self.MAX_LIMIT}")
        return limit
