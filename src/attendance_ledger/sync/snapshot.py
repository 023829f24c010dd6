from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ..attendance.model import AttendanceLedger, ledger_from_dict, ledger_to_dict
from ..core.constants import LESSON_COUNT_SETTING_PREFIX
from ..core.exceptions import ValidationError
from ..roster.model import BimesterConfig, ClassGroup, Student, Subject


@dataclass(frozen=True)
class SchoolSnapshot:
    """Everything the app knows at one point in time.

    This is the unit written to the local cache and the unit swapped in
    wholesale when a remote refresh lands.
    """

    classes: tuple[ClassGroup, ...] = ()
    students: tuple[Student, ...] = ()
    subjects: tuple[Subject, ...] = ()
    bimesters: tuple[BimesterConfig, ...] = ()
    attendance: AttendanceLedger = field(default_factory=dict)
    lesson_counts: Mapping[str, int] = field(default_factory=dict)

    def to_cache_blob(self) -> dict[str, Any]:
        return {
            "classes": [c.to_dict() for c in self.classes],
            "allStudents": [s.to_dict() for s in self.students],
            "subjects": [s.to_dict() for s in self.subjects],
            "attendance": ledger_to_dict(self.attendance),
            "bimesters": [b.to_dict() for b in self.bimesters],
            "dailyLessonCounts": dict(self.lesson_counts),
        }

    @classmethod
    def from_cache_blob(cls, blob: Mapping[str, Any], *, fallback: "SchoolSnapshot") -> "SchoolSnapshot":
        """Hydrate from the cache; keys missing from the blob keep the fallback's values."""
        try:
            return cls(
                classes=_items(blob, "classes", ClassGroup.from_dict, fallback.classes),
                students=_items(blob, "allStudents", Student.from_dict, fallback.students),
                subjects=_items(blob, "subjects", Subject.from_dict, fallback.subjects),
                bimesters=_items(blob, "bimesters", BimesterConfig.from_dict, fallback.bimesters),
                attendance=ledger_from_dict(blob["attendance"]) if blob.get("attendance") is not None else fallback.attendance,
                lesson_counts=_counts(blob["dailyLessonCounts"]) if blob.get("dailyLessonCounts") is not None else fallback.lesson_counts,
            )
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
            raise ValidationError(f"Malformed cache blob: {e}") from e

    @classmethod
    def from_remote_payload(
        cls, payload: Any, *, default_bimesters: Sequence[BimesterConfig] = ()
    ) -> "SchoolSnapshot":
        """Build a snapshot from a ``fetchAll`` payload.

        Empty collections replace local ones (the remote is authoritative),
        except bimesters, which fall back to the defaults when none are stored.
        """

        if not isinstance(payload, Mapping):
            raise ValidationError(f"Remote payload is not an object: {type(payload).__name__}")
        try:
            bimesters = tuple(BimesterConfig.from_dict(b) for b in payload.get("bimesters") or ())
            attendance = payload.get("attendance", payload.get("attendanceLedger"))
            return cls(
                classes=tuple(ClassGroup.from_dict(c) for c in payload.get("classes") or ()),
                students=tuple(Student.from_dict(s) for s in payload.get("students") or ()),
                subjects=tuple(Subject.from_dict(s) for s in payload.get("subjects") or ()),
                bimesters=bimesters or tuple(default_bimesters),
                attendance=ledger_from_dict(attendance),
                lesson_counts=parse_lesson_counts(payload.get("settings")),
            )
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as e:
            raise ValidationError(f"Malformed remote payload: {e}") from e


def parse_lesson_counts(settings: Optional[Mapping[str, Any]]) -> dict[str, int]:
    """Pick ``lessonCount_<date>`` entries out of the flat settings map."""
    counts: dict[str, int] = {}
    for key, value in (settings or {}).items():
        if not str(key).startswith(LESSON_COUNT_SETTING_PREFIX):
            continue
        count = _lesson_count(value)
        if count is not None:
            counts[str(key)[len(LESSON_COUNT_SETTING_PREFIX):]] = count
    return counts


def _lesson_count(value: Any) -> Optional[int]:
    """Whole lesson count, or ``None`` unless the value is a finite number >= 1."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 1:
        return None
    return int(number)


def lesson_count_setting_key(iso_date: str) -> str:
    return f"{LESSON_COUNT_SETTING_PREFIX}{iso_date}"


def _items(blob: Mapping[str, Any], key: str, parse, fallback: tuple) -> tuple:
    values = blob.get(key)
    if values is None:
        return fallback
    return tuple(parse(v) for v in values)


def _counts(values: Mapping[str, Any]) -> dict[str, int]:
    counts = {str(k): _lesson_count(v) for k, v in values.items()}
    return {k: v for k, v in counts.items() if v is not None}
