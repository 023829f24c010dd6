from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Optional

from ..common.datetime_utils import parse_iso_date
from ..core.enums import EnrollmentStatus


@dataclass(frozen=True)
class Student:
    """Domain entity: a student enrolled (or formerly enrolled) in a class.

    Note: Membership lives on the student (``class_id``); classes keep no list.
    """

    student_id: str
    name: str
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    class_id: Optional[str] = None

    @property
    def is_frozen(self) -> bool:
        return self.status.is_frozen

    def without_class(self) -> "Student":
        return replace(self, class_id=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.student_id, "name": self.name, "status": self.status.value}
        if self.class_id is not None:
            data["classId"] = self.class_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Student":
        class_id = data.get("classId")
        return cls(
            student_id=str(data["id"]),
            name=str(data.get("name", "")),
            # Records created without a status are enrolled; unknown labels map to OTHER.
            status=EnrollmentStatus.parse(data.get("status") or EnrollmentStatus.ACTIVE),
            class_id=str(class_id) if class_id not in (None, "") else None,
        )


@dataclass(frozen=True)
class ClassGroup:
    class_id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.class_id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassGroup":
        return cls(class_id=str(data["id"]), name=str(data.get("name", "")))


@dataclass(frozen=True)
class Subject:
    subject_id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.subject_id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subject":
        return cls(subject_id=str(data["id"]), name=str(data.get("name", "")))


@dataclass(frozen=True)
class BimesterConfig:
    """Reporting window (grading period); both ends inclusive."""

    bimester_id: int
    name: str
    start: date
    end: date

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.bimester_id,
            "name": self.name,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BimesterConfig":
        return cls(
            bimester_id=int(data["id"]),
            name=str(data.get("name", "")),
            start=_as_date(data["start"]),
            end=_as_date(data["end"]),
        )


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    # The record store may hand back full timestamps ("2024-02-01T03:00:00.000Z").
    return parse_iso_date(str(value)[:10])


def default_bimesters(year: int) -> list[BimesterConfig]:
    return [
        BimesterConfig(1, "1º Bimestre", date(year, 2, 1), date(year, 4, 30)),
        BimesterConfig(2, "2º Bimestre", date(year, 5, 1), date(year, 7, 15)),
        BimesterConfig(3, "3º Bimestre", date(year, 8, 1), date(year, 9, 30)),
        BimesterConfig(4, "4º Bimestre", date(year, 10, 1), date(year, 12, 20)),
    ]
