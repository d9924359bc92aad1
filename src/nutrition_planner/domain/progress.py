"""Domain models for daily progress tracking."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID


@dataclass(frozen=True)
class ProgressLog:
    """One day of progress for a user."""

    id: UUID
    user_id: UUID
    log_date: date
    weight: float
    food_consumed: list[str]
    adherence_score: int
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ProgressStats:
    """Rolling statistics over a window of logs."""

    total_logs: int
    average_weight: float
    average_adherence: int
    weight_change: float
    streak_days: int


EMPTY_STATS = ProgressStats(
    total_logs=0,
    average_weight=0,
    average_adherence=0,
    weight_change=0,
    streak_days=0,
)


@dataclass(frozen=True)
class ProgressInsights:
    """Coaching narrative derived from recent logs."""

    insights: list[str]
    recommendations: list[str]
    motivation: str


@dataclass(frozen=True)
class ProgressReport:
    """Logs, stats and optional insights for a window."""

    logs: list[ProgressLog]
    stats: ProgressStats
    insights: ProgressInsights | None
