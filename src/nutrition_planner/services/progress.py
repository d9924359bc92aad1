"""Daily progress logging and rolling statistics."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from nutrition_planner.domain.errors import NotFoundError, ValidationError
from nutrition_planner.domain.models import WEIGHT_RANGE_LBS, UserProfile
from nutrition_planner.domain.progress import (
    EMPTY_STATS,
    ProgressInsights,
    ProgressLog,
    ProgressReport,
    ProgressStats,
)
from nutrition_planner.services.recommendations import Ok, RecommendationEngine
from nutrition_planner.services.users import UserRepository

_logger = logging.getLogger(__name__)

MIN_LOGS_FOR_INSIGHTS = 3
MAX_WINDOW_DAYS = 365
LOG_FIELDS = frozenset({"weight", "food_consumed", "adherence_score", "notes"})
REQUIRED_ON_CREATE = ("weight", "adherence_score")


class ProgressRepository(Protocol):
    """Persistence interface for progress logs."""

    def get_log_by_date(self, user_id: UUID, log_date: date) -> ProgressLog | None:
        """Return the user's log for a day, if present."""

    def get_log(self, log_id: UUID) -> ProgressLog | None:
        """Return a log by id, if present."""

    def upsert_log(
        self, user_id: UUID, log_date: date, fields: dict[str, object]
    ) -> ProgressLog:
        """Insert or partially update the (user, day) log atomically."""

    def update_log(self, log_id: UUID, fields: dict[str, object]) -> ProgressLog:
        """Partially update a log by id."""

    def list_logs_in_range(
        self, user_id: UUID, start: date, end: date
    ) -> list[ProgressLog]:
        """Return logs with start <= log_date <= end."""


def _utc_today() -> date:
    return datetime.now(tz=UTC).date()


@dataclass
class ProgressAggregator:
    """Upserts daily logs and computes coaching statistics."""

    users: UserRepository
    repository: ProgressRepository
    engine: RecommendationEngine
    clock: Callable[[], date] = field(default=_utc_today)

    def upsert_log(
        self,
        user_id: UUID,
        fields: dict[str, object],
        log_date: date | None = None,
    ) -> ProgressLog:
        """Create or partially update the log for a day (default today)."""
        self._require_user(user_id)
        day = log_date or self.clock()
        supplied = _validate_fields(fields)
        existing = self.repository.get_log_by_date(user_id, day)
        if existing is None:
            for name in REQUIRED_ON_CREATE:
                if name not in supplied:
                    raise ValidationError(
                        f"{name} is required for a new log", field=name
                    )
            supplied.setdefault("food_consumed", [])
        elif not supplied:
            return existing
        return self.repository.upsert_log(user_id, day, supplied)

    def update_log(self, log_id: UUID, fields: dict[str, object]) -> ProgressLog:
        """Partially update an existing log by id."""
        if self.repository.get_log(log_id) is None:
            raise NotFoundError("Progress log", log_id)
        supplied = _validate_fields(fields)
        if not supplied:
            raise ValidationError("No fields to update")
        return self.repository.update_log(log_id, supplied)

    def compute_stats(self, user_id: UUID, window_days: int = 30) -> ProgressStats:
        """Return stats over [today - window_days, today]."""
        _validate_window(window_days)
        today = self.clock()
        logs = self.repository.list_logs_in_range(
            user_id, today - timedelta(days=window_days), today
        )
        return summarize(logs, today, window_days)

    async def generate_insights(
        self, profile: UserProfile, logs: list[ProgressLog]
    ) -> ProgressInsights | None:
        """Return coaching insights, or None with too little data or on failure."""
        if len(logs) < MIN_LOGS_FOR_INSIGHTS:
            return None
        result = await self.engine.analyze_progress(profile, logs)
        if isinstance(result, Ok):
            return result.value
        _logger.warning(
            "Progress insights unavailable for user %s: %s",
            profile.id,
            result.detail,
        )
        return None

    async def get_progress(
        self,
        user_id: UUID,
        window_days: int = 30,
        start: date | None = None,
        end: date | None = None,
    ) -> ProgressReport:
        """Return logs (newest first), stats and optional insights."""
        profile = self._require_user(user_id)
        _validate_window(window_days)
        today = self.clock()
        range_start = start or today - timedelta(days=window_days)
        range_end = end or today
        if range_start > range_end:
            raise ValidationError("start must not be after end", field="start")
        logs = self.repository.list_logs_in_range(user_id, range_start, range_end)
        logs = sorted(logs, key=lambda log: log.log_date, reverse=True)
        stats = self.compute_stats(user_id, window_days)
        insights = await self.generate_insights(profile, logs)
        return ProgressReport(logs=logs, stats=stats, insights=insights)

    def _require_user(self, user_id: UUID) -> UserProfile:
        profile = self.users.get_by_id(user_id)
        if profile is None:
            raise NotFoundError("User", user_id)
        return profile


def summarize(logs: list[ProgressLog], today: date, window_days: int) -> ProgressStats:
    """Aggregate a window of logs into rolling statistics."""
    if not logs:
        return EMPTY_STATS
    total = len(logs)
    ordered = sorted(logs, key=lambda log: log.log_date)
    average_weight = sum(log.weight for log in logs) / total
    average_adherence = sum(log.adherence_score for log in logs) / total
    weight_change = ordered[-1].weight - ordered[0].weight
    return ProgressStats(
        total_logs=total,
        average_weight=_round(average_weight, 1),
        average_adherence=int(_round(average_adherence, 0)),
        weight_change=_round(weight_change, 1),
        streak_days=streak(logs, today, window_days),
    )


def streak(logs: list[ProgressLog], today: date, window_days: int) -> int:
    """Count consecutive logged days walking back from today.

    A missing log for today yields zero.
    """
    logged = {log.log_date for log in logs}
    days = 0
    for offset in range(window_days + 1):
        if today - timedelta(days=offset) not in logged:
            break
        days += 1
    return days


def _validate_fields(fields: dict[str, object]) -> dict[str, object]:
    supplied = {
        key: value
        for key, value in fields.items()
        if key in LOG_FIELDS and value is not None
    }
    weight = supplied.get("weight")
    if weight is not None:
        low, high = WEIGHT_RANGE_LBS
        if (
            isinstance(weight, bool)
            or not isinstance(weight, int | float)
            or not low <= weight <= high
        ):
            raise ValidationError(
                f"weight must be between {low:g} and {high:g}", field="weight"
            )
    adherence = supplied.get("adherence_score")
    if adherence is not None:
        if not _is_whole_number(adherence) or not 0 <= adherence <= 100:  # noqa: PLR2004
            raise ValidationError(
                "adherence_score must be a whole number between 0 and 100",
                field="adherence_score",
            )
        supplied["adherence_score"] = int(adherence)
    food = supplied.get("food_consumed")
    if food is not None and (
        not isinstance(food, list) or not all(isinstance(item, str) for item in food)
    ):
        raise ValidationError(
            "food_consumed must be a list of strings", field="food_consumed"
        )
    return supplied


def _is_whole_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, int)


def _validate_window(window_days: int) -> None:
    if not 1 <= window_days <= MAX_WINDOW_DAYS:
        raise ValidationError(
            f"days must be between 1 and {MAX_WINDOW_DAYS}", field="days"
        )


def _round(value: float, digits: int) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
