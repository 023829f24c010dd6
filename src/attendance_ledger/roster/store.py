from __future__ import annotations

import time
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional, Sequence

from ..common.validators import require_non_empty
from ..core.constants import ALL
from ..core.enums import EnrollmentStatus
from ..core.exceptions import ValidationError
from .model import BimesterConfig, ClassGroup, Student, Subject


class RosterStore:
    """Keyed collections of classes, subjects, students and bimesters.

    Collections are held as tuples and replaced on every change, so a caller
    holding a previous view never sees it mutate. Persistence and remote
    mirroring are the data service's job, not this store's.
    """

    def __init__(
        self,
        *,
        classes: Iterable[ClassGroup] = (),
        students: Iterable[Student] = (),
        subjects: Iterable[Subject] = (),
        bimesters: Iterable[BimesterConfig] = (),
    ):
        self._classes: tuple[ClassGroup, ...] = tuple(classes)
        self._students: tuple[Student, ...] = tuple(students)
        self._subjects: tuple[Subject, ...] = tuple(subjects)
        self._bimesters: tuple[BimesterConfig, ...] = tuple(bimesters)

    @property
    def classes(self) -> tuple[ClassGroup, ...]:
        return self._classes

    @property
    def students(self) -> tuple[Student, ...]:
        return self._students

    @property
    def subjects(self) -> tuple[Subject, ...]:
        return self._subjects

    @property
    def bimesters(self) -> tuple[BimesterConfig, ...]:
        return self._bimesters

    def get_student(self, student_id: str) -> Optional[Student]:
        return next((s for s in self._students if s.student_id == student_id), None)

    def get_class(self, class_id: str) -> Optional[ClassGroup]:
        return next((c for c in self._classes if c.class_id == class_id), None)

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self._subjects if s.subject_id == subject_id), None)

    def members_of(self, class_id: str) -> list[Student]:
        return [s for s in self._students if s.class_id == class_id]

    def search(
        self,
        *,
        name_query: str = "",
        class_id: str = ALL,
        status: Optional[EnrollmentStatus] = None,
    ) -> list[Student]:
        needle = (name_query or "").strip().lower()
        return [
            s
            for s in self._students
            if (not needle or needle in s.name.lower())
            and (class_id == ALL or s.class_id == class_id)
            and (status is None or s.status == status)
        ]

    # --- students ---

    def add_student(self, student: Student) -> Student:
        require_non_empty(student.student_id, "Student id")
        require_non_empty(student.name, "Student name")
        if self.get_student(student.student_id):
            raise ValidationError(f"Student {student.student_id} already exists")
        self._students = self._students + (student,)
        return student

    def update_student(self, student: Student) -> Student:
        """Replace a student by id; unknown ids leave the roster unchanged."""
        require_non_empty(student.name, "Student name")
        self._students = tuple(student if s.student_id == student.student_id else s for s in self._students)
        return student

    def delete_student(self, student_id: str) -> bool:
        before = len(self._students)
        self._students = tuple(s for s in self._students if s.student_id != student_id)
        return len(self._students) != before

    def batch_add(
        self,
        names: Sequence[str],
        *,
        class_id: Optional[str],
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
        now_ms: Optional[int] = None,
    ) -> list[Student]:
        stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
        cleaned = [n.strip() for n in names if n and n.strip()]
        created = [
            Student(student_id=f"s-{stamp}-{idx}", name=name, status=status, class_id=class_id)
            for idx, name in enumerate(cleaned)
        ]
        self._students = self._students + tuple(created)
        return created

    # --- classes ---

    def upsert_class(self, class_group: ClassGroup) -> ClassGroup:
        require_non_empty(class_group.name, "Class name")
        if self.get_class(class_group.class_id):
            self._classes = tuple(class_group if c.class_id == class_group.class_id else c for c in self._classes)
        else:
            self._classes = self._classes + (class_group,)
        return class_group

    def delete_class(self, class_id: str) -> bool:
        """Remove a class and detach its members (students are kept)."""
        before = len(self._classes)
        self._classes = tuple(c for c in self._classes if c.class_id != class_id)
        self._students = tuple(s.without_class() if s.class_id == class_id else s for s in self._students)
        return len(self._classes) != before

    # --- subjects ---

    def upsert_subject(self, subject: Subject) -> Subject:
        require_non_empty(subject.name, "Subject name")
        if self.get_subject(subject.subject_id):
            self._subjects = tuple(subject if s.subject_id == subject.subject_id else s for s in self._subjects)
        else:
            self._subjects = self._subjects + (subject,)
        return subject

    def delete_subject(self, subject_id: str) -> bool:
        before = len(self._subjects)
        self._subjects = tuple(s for s in self._subjects if s.subject_id != subject_id)
        return len(self._subjects) != before

    # --- bimesters ---

    def replace_bimesters(self, bimesters: Iterable[BimesterConfig]) -> tuple[BimesterConfig, ...]:
        items = tuple(bimesters)
        for b in items:
            if b.end < b.start:
                raise ValidationError(f"{b.name}: end date is before start date")
        self._bimesters = items
        return items

    def update_bimester_dates(self, bimester_id: int, *, start: date, end: date) -> tuple[BimesterConfig, ...]:
        if not any(b.bimester_id == bimester_id for b in self._bimesters):
            raise ValidationError(f"Bimester {bimester_id} does not exist")
        return self.replace_bimesters(
            replace(b, start=start, end=end) if b.bimester_id == bimester_id else b for b in self._bimesters
        )
