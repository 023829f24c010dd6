from __future__ import annotations

import logging
from datetime import date
from typing import Mapping, Optional

from ..common.datetime_utils import is_weekend
from ..common.validators import require_min_int
from ..core.constants import DEFAULT_LESSON_COUNT
from ..core.enums import AttendanceStatus, EnrollmentStatus
from ..core.exceptions import ValidationError
from .model import AttendanceLedger, DayStatuses, StudentRecord, next_status

logger = logging.getLogger(__name__)


class LedgerStore:
    """Owns the attendance ledger and the per-day lesson-count configuration.

    Every write builds new containers along the touched path
    (subject -> student -> date) instead of mutating in place, so snapshots
    returned by :attr:`attendance` stay valid for whoever holds them.
    """

    def __init__(
        self,
        attendance: Optional[AttendanceLedger] = None,
        lesson_counts: Optional[Mapping[str, int]] = None,
    ):
        self._attendance: AttendanceLedger = dict(attendance or {})
        self._lesson_counts: dict[str, int] = dict(lesson_counts or {})

    @property
    def attendance(self) -> AttendanceLedger:
        return self._attendance

    @property
    def lesson_counts(self) -> dict[str, int]:
        return self._lesson_counts

    def replace(self, attendance: AttendanceLedger, lesson_counts: Mapping[str, int]) -> None:
        self._attendance = dict(attendance)
        self._lesson_counts = dict(lesson_counts)

    # --- reads with explicit defaults ---

    def lesson_count(self, work_date: date) -> int:
        return self._lesson_counts.get(work_date.isoformat(), DEFAULT_LESSON_COUNT)

    def record_for(self, subject_id: str, student_id: str) -> StudentRecord:
        return self._attendance.get(subject_id, {}).get(student_id, {})

    def statuses_for(self, subject_id: str, student_id: str, work_date: date) -> DayStatuses:
        """Stored statuses for a cell day; empty tuple when nothing was written."""
        return self.record_for(subject_id, student_id).get(work_date.isoformat(), ())

    def status_at(self, subject_id: str, student_id: str, work_date: date, lesson_index: int) -> AttendanceStatus:
        statuses = self.statuses_for(subject_id, student_id, work_date)
        if 0 <= lesson_index < len(statuses):
            return statuses[lesson_index]
        return AttendanceStatus.UNDEFINED

    # --- writes ---

    def toggle_status(
        self,
        subject_id: str,
        student_id: str,
        work_date: date,
        lesson_index: int,
        *,
        enrollment: EnrollmentStatus = EnrollmentStatus.ACTIVE,
    ) -> Optional[AttendanceStatus]:
        """Advance one lesson cell through the status cycle.

        Returns the new status, or ``None`` when the write is refused
        (weekend date or frozen student); refusals leave the ledger untouched.
        """

        if is_weekend(work_date):
            logger.debug("Ignoring toggle on weekend date %s", work_date)
            return None
        if enrollment.is_frozen:
            logger.debug("Ignoring toggle for frozen student %s (%s)", student_id, enrollment.name)
            return None

        key = work_date.isoformat()
        stored = self.statuses_for(subject_id, student_id, work_date)
        configured = self.lesson_count(work_date)
        if lesson_index < 0 or lesson_index >= max(configured, len(stored)):
            raise ValidationError(f"Lesson {lesson_index} does not exist on {key} ({configured} configured)")

        if key in self.record_for(subject_id, student_id):
            statuses = list(stored)
        else:
            statuses = [AttendanceStatus.UNDEFINED] * configured
        while len(statuses) <= lesson_index:
            statuses.append(AttendanceStatus.UNDEFINED)

        new_status = next_status(statuses[lesson_index])
        statuses[lesson_index] = new_status

        subject = dict(self._attendance.get(subject_id, {}))
        record = dict(subject.get(student_id, {}))
        record[key] = tuple(statuses)
        subject[student_id] = record
        attendance = dict(self._attendance)
        attendance[subject_id] = subject
        self._attendance = attendance
        return new_status

    def update_lesson_count(self, work_date: date, count: int) -> int:
        """Set the number of lesson slots for a day; stored days are widened lazily on toggle."""
        count = require_min_int(count, "Lesson count", 1)
        counts = dict(self._lesson_counts)
        counts[work_date.isoformat()] = count
        self._lesson_counts = counts
        return count

    def remove_student(self, student_id: str) -> None:
        if not any(student_id in subject for subject in self._attendance.values()):
            return
        self._attendance = {
            subject_id: {k: v for k, v in students.items() if k != student_id}
            for subject_id, students in self._attendance.items()
        }

    def remove_subject(self, subject_id: str) -> None:
        if subject_id in self._attendance:
            self._attendance = {k: v for k, v in self._attendance.items() if k != subject_id}
