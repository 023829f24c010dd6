from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..core.constants import ALL
from ..core.enums import EnrollmentStatus
from ..roster.model import BimesterConfig, Student


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar-date window; ``None`` on either side means unbounded."""

    start: Optional[date] = None
    end: Optional[date] = None

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    @classmethod
    def for_bimester(cls, bimester: BimesterConfig) -> "DateWindow":
        return cls(start=bimester.start, end=bimester.end)


@dataclass(frozen=True)
class AnalyticsFilters:
    subject_id: str = ALL
    class_id: str = ALL
    window: Optional[DateWindow] = None
    enrollment_status: Optional[EnrollmentStatus] = None
    name_query: str = ""


@dataclass(frozen=True)
class LessonCounts:
    """Explicit-status tallies; UNDEFINED slots are never counted."""

    present: int = 0
    absent: int = 0
    excused: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.excused

    @property
    def attended(self) -> int:
        return self.present + self.excused

    def __add__(self, other: "LessonCounts") -> "LessonCounts":
        return LessonCounts(
            present=self.present + other.present,
            absent=self.absent + other.absent,
            excused=self.excused + other.excused,
        )

    def rate(self, *, empty: float) -> float:
        if self.total == 0:
            return empty
        return self.attended / self.total * 100


@dataclass(frozen=True)
class StudentStats:
    total_lessons: int
    present: int
    absent: int
    excused: int
    percentage: float

    @classmethod
    def from_counts(cls, counts: LessonCounts) -> "StudentStats":
        # A student with nothing recorded is not treated as missing lessons.
        return cls(
            total_lessons=counts.total,
            present=counts.present,
            absent=counts.absent,
            excused=counts.excused,
            percentage=counts.rate(empty=100.0),
        )


@dataclass(frozen=True)
class SubjectRisk:
    subject_id: str
    name: str
    percentage: float
    absent: int


@dataclass(frozen=True)
class AtRiskEntry:
    student: Student
    stats: StudentStats
    subject_risks: tuple[SubjectRisk, ...] = ()

    @property
    def lowest_percentage(self) -> float:
        if self.subject_risks:
            return min(r.percentage for r in self.subject_risks)
        return self.stats.percentage


@dataclass(frozen=True)
class ChartRow:
    key: str
    name: str
    percentage: float
    present: int = 0
    absent: int = 0
    excused: int = 0
    total: int = 0


@dataclass(frozen=True)
class ScopeSummary:
    present: int
    absent: int
    excused: int
    total_lessons: int
    percentage: float
    student_count: int
    status_counts: dict[EnrollmentStatus, int] = field(default_factory=dict)
    global_risk_count: int = 0
    global_risk_rate: float = 0.0


@dataclass(frozen=True)
class GridRowStats:
    """Totals shown at the end of a student's row in the month grid."""

    total_lessons: int
    present: int
    absent: int
    excused: int
    percentage: float
    is_low: bool

    @property
    def display_percentage(self) -> str:
        if self.total_lessons == 0:
            return "-"
        return f"{self.percentage:.0f}%"


@dataclass(frozen=True)
class Dashboard:
    summary: ScopeSummary
    at_risk: list[AtRiskEntry]
    global_at_risk: list[AtRiskEntry]
    bimesters: list[ChartRow]
    classes: list[ChartRow]
