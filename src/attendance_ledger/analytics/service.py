from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from ..common.datetime_utils import parse_iso_date
from ..core.constants import ALL, DEFAULT_LESSON_COUNT, DEFAULT_RISK_THRESHOLD
from ..core.enums import AttendanceStatus, EnrollmentStatus
from ..attendance.model import AttendanceLedger, StudentRecord
from ..roster.model import BimesterConfig, ClassGroup, Student, Subject
from .model import (
    AnalyticsFilters,
    AtRiskEntry,
    ChartRow,
    Dashboard,
    DateWindow,
    GridRowStats,
    LessonCounts,
    ScopeSummary,
    StudentStats,
    SubjectRisk,
)

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Attendance statistics over (students x subjects x date window) slices.

    Stateless: every call works only on the data passed in, and nothing is
    cached between calls. Roll-ups always sum lesson counts before dividing,
    so scopes with more recorded lessons weigh more than an average of
    per-student percentages would give them.
    """

    def __init__(self, *, risk_threshold: float = DEFAULT_RISK_THRESHOLD):
        self._threshold = float(risk_threshold)

    @property
    def risk_threshold(self) -> float:
        return self._threshold

    # --- scoping ---

    def filter_students(self, students: Iterable[Student], filters: AnalyticsFilters) -> list[Student]:
        needle = filters.name_query.strip().lower()
        return [
            s
            for s in students
            if (filters.class_id == ALL or s.class_id == filters.class_id)
            and (filters.enrollment_status is None or s.status == filters.enrollment_status)
            and (not needle or needle in s.name.lower())
        ]

    @staticmethod
    def subject_ids_in_scope(attendance: AttendanceLedger, subject_id: str = ALL) -> list[str]:
        if subject_id == ALL:
            return list(attendance.keys())
        return [subject_id] if subject_id in attendance else []

    # --- counting ---

    def count_record(self, record: StudentRecord, window: Optional[DateWindow] = None) -> LessonCounts:
        present = absent = excused = 0
        for day, statuses in record.items():
            if window is not None and not _day_in_window(day, window):
                continue
            for status in statuses:
                if status is AttendanceStatus.PRESENT:
                    present += 1
                elif status is AttendanceStatus.ABSENT:
                    absent += 1
                elif status is AttendanceStatus.EXCUSED:
                    excused += 1
        return LessonCounts(present=present, absent=absent, excused=excused)

    def count_student(
        self,
        student_id: str,
        attendance: AttendanceLedger,
        *,
        subject_ids: Optional[Sequence[str]] = None,
        window: Optional[DateWindow] = None,
    ) -> LessonCounts:
        ids = list(attendance.keys()) if subject_ids is None else subject_ids
        total = LessonCounts()
        for subject_id in ids:
            record = attendance.get(subject_id, {}).get(student_id)
            if record:
                total = total + self.count_record(record, window)
        return total

    def student_stats(
        self,
        student_id: str,
        attendance: AttendanceLedger,
        *,
        subject_ids: Optional[Sequence[str]] = None,
        window: Optional[DateWindow] = None,
    ) -> StudentStats:
        return StudentStats.from_counts(
            self.count_student(student_id, attendance, subject_ids=subject_ids, window=window)
        )

    def student_bimester_stats(
        self,
        student_id: str,
        attendance: AttendanceLedger,
        bimesters: Iterable[BimesterConfig],
        *,
        subject_id: str = ALL,
    ) -> list[tuple[BimesterConfig, StudentStats]]:
        """Per-bimester stats for one student, whatever window is selected elsewhere."""
        subject_ids = self.subject_ids_in_scope(attendance, subject_id)
        return [
            (b, self.student_stats(student_id, attendance, subject_ids=subject_ids, window=DateWindow.for_bimester(b)))
            for b in bimesters
        ]

    def is_at_risk(self, student: Student, stats: StudentStats) -> bool:
        return (
            student.status == EnrollmentStatus.ACTIVE
            and stats.total_lessons > 0
            and stats.percentage < self._threshold
        )

    # --- risk lists ---

    def subject_risks(
        self,
        student: Student,
        attendance: AttendanceLedger,
        subjects: Iterable[Subject],
        *,
        subject_id: str = ALL,
        window: Optional[DateWindow] = None,
    ) -> list[SubjectRisk]:
        names = {s.subject_id: s.name for s in subjects}
        risks: list[SubjectRisk] = []
        for sid in self.subject_ids_in_scope(attendance, subject_id):
            stats = self.student_stats(student.student_id, attendance, subject_ids=[sid], window=window)
            if self.is_at_risk(student, stats):
                risks.append(
                    SubjectRisk(subject_id=sid, name=names.get(sid, "Unknown"), percentage=stats.percentage, absent=stats.absent)
                )
        return risks

    def at_risk_students(
        self,
        students: Iterable[Student],
        attendance: AttendanceLedger,
        subjects: Iterable[Subject],
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> list[AtRiskEntry]:
        """Students below the threshold in at least one subject, worst subject first."""
        subjects = list(subjects)
        subject_ids = self.subject_ids_in_scope(attendance, filters.subject_id)
        entries: list[AtRiskEntry] = []
        for student in self.filter_students(students, filters):
            risks = self.subject_risks(
                student, attendance, subjects, subject_id=filters.subject_id, window=filters.window
            )
            if not risks:
                continue
            stats = self.student_stats(student.student_id, attendance, subject_ids=subject_ids, window=filters.window)
            entries.append(AtRiskEntry(student=student, stats=stats, subject_risks=tuple(risks)))
        # list.sort is stable: ties keep the input order of the students.
        entries.sort(key=lambda e: e.lowest_percentage)
        return entries

    def global_at_risk(
        self,
        students: Iterable[Student],
        attendance: AttendanceLedger,
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> list[AtRiskEntry]:
        """Students below the threshold across all subjects in scope combined."""
        subject_ids = self.subject_ids_in_scope(attendance, filters.subject_id)
        entries = []
        for student in self.filter_students(students, filters):
            stats = self.student_stats(student.student_id, attendance, subject_ids=subject_ids, window=filters.window)
            if self.is_at_risk(student, stats):
                entries.append(AtRiskEntry(student=student, stats=stats))
        entries.sort(key=lambda e: e.stats.percentage)
        return entries

    # --- roll-ups ---

    def summarize(
        self,
        students: Iterable[Student],
        attendance: AttendanceLedger,
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> ScopeSummary:
        scoped = self.filter_students(students, filters)
        subject_ids = self.subject_ids_in_scope(attendance, filters.subject_id)

        counts = LessonCounts()
        status_counts = {status: 0 for status in EnrollmentStatus}
        for student in scoped:
            status_counts[student.status] += 1
            counts = counts + self.count_student(
                student.student_id, attendance, subject_ids=subject_ids, window=filters.window
            )

        at_risk = self.global_at_risk(scoped, attendance, AnalyticsFilters(subject_id=filters.subject_id, window=filters.window))
        active = status_counts[EnrollmentStatus.ACTIVE]
        return ScopeSummary(
            present=counts.present,
            absent=counts.absent,
            excused=counts.excused,
            total_lessons=counts.total,
            percentage=counts.rate(empty=0.0),
            student_count=len(scoped),
            status_counts=status_counts,
            global_risk_count=len(at_risk),
            global_risk_rate=(len(at_risk) / active * 100) if active else 0.0,
        )

    def bimester_breakdown(
        self,
        students: Iterable[Student],
        attendance: AttendanceLedger,
        bimesters: Iterable[BimesterConfig],
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> list[ChartRow]:
        """One chart row per bimester; ``filters.window`` is ignored here on purpose."""
        scoped = self.filter_students(students, filters)
        subject_ids = self.subject_ids_in_scope(attendance, filters.subject_id)
        rows = []
        for bimester in bimesters:
            window = DateWindow.for_bimester(bimester)
            counts = LessonCounts()
            for student in scoped:
                counts = counts + self.count_student(student.student_id, attendance, subject_ids=subject_ids, window=window)
            rows.append(_chart_row(str(bimester.bimester_id), bimester.name, counts))
        return rows

    def class_breakdown(
        self,
        students: Iterable[Student],
        classes: Iterable[ClassGroup],
        attendance: AttendanceLedger,
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> list[ChartRow]:
        students = list(students)
        subject_ids = self.subject_ids_in_scope(attendance, filters.subject_id)
        rows = []
        for class_group in classes:
            if filters.class_id != ALL and class_group.class_id != filters.class_id:
                continue
            counts = LessonCounts()
            for student in students:
                if student.class_id == class_group.class_id:
                    counts = counts + self.count_student(
                        student.student_id, attendance, subject_ids=subject_ids, window=filters.window
                    )
            rows.append(_chart_row(class_group.class_id, class_group.name, counts))
        return rows

    def grid_row_stats(
        self,
        student_id: str,
        subject_id: str,
        dates: Iterable[date],
        attendance: AttendanceLedger,
        lesson_counts: Mapping[str, int],
    ) -> GridRowStats:
        """Row totals for the month grid.

        Only the first ``lesson_count(day)`` slots of each shown day count, and a
        row with nothing recorded shows a dash instead of a percentage.
        """

        record = attendance.get(subject_id, {}).get(student_id, {})
        present = absent = excused = 0
        for day in dates:
            key = day.isoformat()
            statuses = record.get(key, ())
            for idx in range(lesson_counts.get(key, DEFAULT_LESSON_COUNT)):
                status = statuses[idx] if idx < len(statuses) else AttendanceStatus.UNDEFINED
                if status is AttendanceStatus.PRESENT:
                    present += 1
                elif status is AttendanceStatus.ABSENT:
                    absent += 1
                elif status is AttendanceStatus.EXCUSED:
                    excused += 1

        total = present + absent + excused
        percentage = (present + excused) / (total or 1) * 100
        return GridRowStats(
            total_lessons=total,
            present=present,
            absent=absent,
            excused=excused,
            percentage=percentage,
            is_low=total > 0 and percentage < self._threshold,
        )

    def dashboard(
        self,
        *,
        students: Sequence[Student],
        classes: Sequence[ClassGroup],
        subjects: Sequence[Subject],
        bimesters: Sequence[BimesterConfig],
        attendance: AttendanceLedger,
        filters: AnalyticsFilters = AnalyticsFilters(),
    ) -> Dashboard:
        return Dashboard(
            summary=self.summarize(students, attendance, filters),
            at_risk=self.at_risk_students(students, attendance, subjects, filters),
            global_at_risk=self.global_at_risk(students, attendance, filters),
            bimesters=self.bimester_breakdown(students, attendance, bimesters, filters),
            classes=self.class_breakdown(students, classes, attendance, filters),
        )


def _day_in_window(day: str, window: DateWindow) -> bool:
    try:
        return window.contains(parse_iso_date(day))
    except ValueError:
        logger.debug("Skipping ledger entry with malformed date key %r", day)
        return False


def _chart_row(key: str, name: str, counts: LessonCounts) -> ChartRow:
    return ChartRow(
        key=key,
        name=name,
        percentage=counts.rate(empty=0.0),
        present=counts.present,
        absent=counts.absent,
        excused=counts.excused,
        total=counts.total,
    )
