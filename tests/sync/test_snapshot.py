from __future__ import annotations

import pytest

from attendance_ledger.core.enums import AttendanceStatus as S
from attendance_ledger.core.exceptions import ValidationError
from attendance_ledger.roster.model import ClassGroup
from attendance_ledger.sync.snapshot import SchoolSnapshot, lesson_count_setting_key, parse_lesson_counts


def test_parse_lesson_counts_strips_prefix_and_coerces():
    settings = {
        "lessonCount_2024-03-04": "3",
        "lessonCount_2024-03-05": 2.0,
        "lessonCount_2024-03-06": "abc",
        "lessonCount_2024-03-07": 0,
        "schoolName": "EE Central",
    }
    assert parse_lesson_counts(settings) == {"2024-03-04": 3, "2024-03-05": 2}
    assert parse_lesson_counts(None) == {}


@pytest.mark.parametrize("value", ["Infinity", float("inf"), "NaN", -1, 0, "", None])
def test_parse_lesson_counts_skips_non_finite_and_non_positive(value):
    assert parse_lesson_counts({"lessonCount_2024-03-04": value, "lessonCount_2024-03-05": 2.7}) == {"2024-03-05": 2}
    assert lesson_count_setting_key("2024-03-04") == "lessonCount_2024-03-04"


def test_remote_payload_replaces_everything(bimesters):
    payload = {
        "classes": [{"id": "c1", "name": "A"}],
        "students": [{"id": "s1", "name": "Ana", "status": "Evasão", "classId": "c1"}],
        "subjects": [],
        "bimesters": [],
        "attendance": {"math": {"s1": {"2024-03-04": ["P"]}}},
        "settings": {"lessonCount_2024-03-04": 2},
    }

    snapshot = SchoolSnapshot.from_remote_payload(payload, default_bimesters=bimesters)

    assert snapshot.classes == (ClassGroup("c1", "A"),)
    assert snapshot.students[0].is_frozen
    assert snapshot.subjects == ()
    assert snapshot.bimesters == tuple(bimesters)
    assert snapshot.attendance == {"math": {"s1": {"2024-03-04": (S.PRESENT,)}}}
    assert snapshot.lesson_counts == {"2024-03-04": 2}


def test_remote_payload_accepts_attendance_ledger_key():
    snapshot = SchoolSnapshot.from_remote_payload({"attendanceLedger": {"math": {"s1": {"2024-03-04": ["F"]}}}})
    assert snapshot.attendance["math"]["s1"]["2024-03-04"] == (S.ABSENT,)


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        "error page",
        {"students": [{"name": "no id"}]},
        {"bimesters": [{"id": 1, "name": "B1", "start": "soon", "end": "later"}]},
        {"settings": ["lessonCount_2024-03-04"]},
        {"bimesters": [{"id": float("inf"), "name": "B1", "start": "2024-02-01", "end": "2024-04-30"}]},
    ],
)
def test_malformed_remote_payload_raises_validation_error(payload):
    with pytest.raises(ValidationError):
        SchoolSnapshot.from_remote_payload(payload)


def test_cache_blob_missing_keys_keep_fallback(roster_data):
    classes, students, subjects = roster_data
    fallback = SchoolSnapshot(classes=tuple(classes), students=tuple(students))

    restored = SchoolSnapshot.from_cache_blob({"subjects": [s.to_dict() for s in subjects]}, fallback=fallback)

    assert restored.classes == tuple(classes)
    assert restored.students == tuple(students)
    assert restored.subjects == tuple(subjects)


def test_cache_blob_drops_unusable_lesson_counts():
    blob = {"dailyLessonCounts": {"2024-03-04": float("inf"), "2024-03-05": 0, "2024-03-06": -2, "2024-03-07": 3}}
    restored = SchoolSnapshot.from_cache_blob(blob, fallback=SchoolSnapshot())
    assert restored.lesson_counts == {"2024-03-07": 3}


def test_malformed_cache_blob_raises_validation_error():
    with pytest.raises(ValidationError):
        SchoolSnapshot.from_cache_blob({"allStudents": [{"name": "no id"}]}, fallback=SchoolSnapshot())
