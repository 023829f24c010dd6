from __future__ import annotations

from datetime import date, timedelta

import pytest

from attendance_ledger.analytics.model import AnalyticsFilters, DateWindow
from attendance_ledger.analytics.service import AnalyticsService
from attendance_ledger.core.enums import AttendanceStatus as S
from attendance_ledger.core.enums import EnrollmentStatus
from attendance_ledger.roster.model import ClassGroup, Student, Subject

P, F, J, U = S.PRESENT, S.ABSENT, S.EXCUSED, S.UNDEFINED


def _days(start: date, statuses):
    """One stored day per status, on consecutive calendar dates."""
    return {(start + timedelta(days=i)).isoformat(): (s,) for i, s in enumerate(statuses)}


def test_bimester_window_scenario(bimesters):
    b1 = bimesters[0]
    attendance = {"math": {"s1": {"2024-02-10": (P,), "2024-05-05": (F,)}}}
    svc = AnalyticsService()

    scoped = svc.student_stats("s1", attendance, window=DateWindow.for_bimester(b1))
    all_time = svc.student_stats("s1", attendance)

    assert (scoped.total_lessons, scoped.percentage) == (1, 100.0)
    assert (all_time.total_lessons, all_time.percentage) == (2, 50.0)

    per_bimester = svc.student_bimester_stats("s1", attendance, bimesters)
    assert [(b.name, s.total_lessons) for b, s in per_bimester] == [("B1", 1), ("B2", 1)]
    assert per_bimester[1][1].percentage == 0.0


def test_window_bounds_are_inclusive():
    attendance = {"math": {"s1": {"2024-02-01": (P,), "2024-04-30": (F,), "2024-05-01": (F,)}}}
    stats = AnalyticsService().student_stats(
        "s1", attendance, window=DateWindow(start=date(2024, 2, 1), end=date(2024, 4, 30))
    )
    assert stats.total_lessons == 2


def test_undefined_slots_are_not_counted_and_empty_means_full_attendance():
    svc = AnalyticsService()
    student = Student("s1", "Ana", EnrollmentStatus.ACTIVE, "c1")
    attendance = {"math": {"s1": {"2024-03-04": (U, U, U)}}}

    stats = svc.student_stats("s1", attendance)

    assert stats.total_lessons == 0
    assert stats.percentage == 100.0
    assert svc.at_risk_students([student], attendance, []) == []
    assert svc.global_at_risk([student], attendance) == []


def test_excused_counts_towards_attendance_but_is_tracked_apart():
    attendance = {"math": {"s1": _days(date(2024, 3, 4), [P, F, J, J])}}

    stats = AnalyticsService().student_stats("s1", attendance)

    assert (stats.present, stats.absent, stats.excused, stats.total_lessons) == (1, 1, 2, 4)
    assert stats.percentage == 75.0


def test_threshold_is_strict():
    svc = AnalyticsService()
    student = Student("s1", "Ana")
    attendance = {"math": {"s1": _days(date(2024, 3, 4), [P, P, P, F])}}
    assert svc.at_risk_students([student], attendance, []) == []


def test_weighted_roll_up_across_classes():
    classes = [ClassGroup("a", "A"), ClassGroup("b", "B")]
    students = [Student("s1", "Ana", class_id="a"), Student("s2", "Bia", class_id="b")]
    attendance = {
        "math": {
            "s1": _days(date(2024, 3, 1), [P] * 10),
            "s2": {"2024-03-04": (F,)},
        }
    }
    svc = AnalyticsService()

    summary = svc.summarize(students, attendance)
    assert summary.total_lessons == 11
    assert summary.percentage == pytest.approx(10 / 11 * 100)

    rows = svc.class_breakdown(students, classes, attendance)
    assert [(r.key, r.percentage, r.total) for r in rows] == [("a", 100.0, 10), ("b", 0.0, 1)]


def test_subject_and_global_risk_are_independent():
    svc = AnalyticsService()
    subjects = [Subject("math", "Matemática"), Subject("hist", "História")]
    student = Student("s1", "Ana")
    attendance = {
        "math": {"s1": _days(date(2024, 3, 4), [P, F, F, F])},
        "hist": {"s1": _days(date(2024, 3, 4), [P] * 10)},
    }

    at_risk = svc.at_risk_students([student], attendance, subjects)
    assert len(at_risk) == 1
    assert [(r.subject_id, r.name, r.percentage, r.absent) for r in at_risk[0].subject_risks] == [
        ("math", "Matemática", 25.0, 3)
    ]
    assert at_risk[0].stats.percentage == pytest.approx(11 / 14 * 100)

    assert svc.global_at_risk([student], attendance) == []


def test_risk_list_is_sorted_and_stable_and_skips_frozen_students():
    svc = AnalyticsService()
    students = [
        Student("s1", "Ana"),
        Student("s2", "Bia"),
        Student("s3", "Caio"),
        Student("s4", "Davi", EnrollmentStatus.DROPOUT),
    ]
    attendance = {
        "math": {
            "s1": _days(date(2024, 3, 4), [P, F]),
            "s2": _days(date(2024, 3, 4), [P, F, F, F]),
            "s3": _days(date(2024, 3, 4), [F, P]),
            "s4": _days(date(2024, 3, 4), [F, F]),
        }
    }

    ranked = svc.at_risk_students(students, attendance, [])
    assert [e.student.student_id for e in ranked] == ["s2", "s1", "s3"]
    assert ranked[0].subject_risks[0].name == "Unknown"

    global_ranked = svc.global_at_risk(students, attendance)
    assert [e.student.student_id for e in global_ranked] == ["s2", "s1", "s3"]


def test_frozen_history_still_counts_in_roll_ups():
    students = [Student("s1", "Ana"), Student("s2", "Bia", EnrollmentStatus.TRANSFERRED)]
    attendance = {"math": {"s1": {"2024-03-04": (P,)}, "s2": {"2024-03-04": (F,)}}}

    summary = AnalyticsService().summarize(students, attendance)

    assert summary.total_lessons == 2
    assert summary.percentage == 50.0
    assert summary.status_counts[EnrollmentStatus.TRANSFERRED] == 1
    assert summary.global_risk_count == 0


def test_summary_filters_and_global_risk_rate(roster_data):
    classes, students, subjects = roster_data
    attendance = {
        "math": {"s1": {"2024-03-04": (F,)}, "s2": {"2024-03-04": (P,)}},
        "hist": {"s1": {"2024-03-04": (P,)}},
    }
    svc = AnalyticsService()

    only_math = svc.summarize(students, attendance, AnalyticsFilters(subject_id="math", class_id="c1"))
    assert (only_math.present, only_math.absent, only_math.student_count) == (1, 1, 2)
    assert only_math.global_risk_count == 1
    assert only_math.global_risk_rate == 50.0

    by_name = svc.summarize(students, attendance, AnalyticsFilters(name_query="ana"))
    assert by_name.student_count == 1
    assert by_name.total_lessons == 2

    dropouts = svc.summarize(students, attendance, AnalyticsFilters(enrollment_status=EnrollmentStatus.DROPOUT))
    assert dropouts.student_count == 1
    assert dropouts.percentage == 0.0
    assert dropouts.global_risk_rate == 0.0


def test_unknown_subject_filter_yields_empty_scope():
    svc = AnalyticsService()
    attendance = {"math": {"s1": {"2024-03-04": (P,)}}}
    assert svc.subject_ids_in_scope(attendance, "bio") == []
    assert svc.summarize([Student("s1", "Ana")], attendance, AnalyticsFilters(subject_id="bio")).total_lessons == 0


def test_bimester_breakdown_ignores_selected_window(bimesters):
    students = [Student("s1", "Ana")]
    attendance = {"math": {"s1": {"2024-03-04": (P,), "2024-03-05": (J,), "2024-05-06": (F,)}}}
    filters = AnalyticsFilters(window=DateWindow(start=date(2024, 5, 1), end=date(2024, 5, 31)))

    rows = AnalyticsService().bimester_breakdown(students, attendance, bimesters, filters)

    assert [(r.name, r.present, r.excused, r.absent, r.percentage) for r in rows] == [
        ("B1", 1, 1, 0, 100.0),
        ("B2", 0, 0, 1, 0.0),
    ]


def test_malformed_date_keys_are_skipped_inside_windows():
    attendance = {"math": {"s1": {"not-a-date": (F,), "2024-03-04": (P,)}}}
    svc = AnalyticsService()
    assert svc.student_stats("s1", attendance, window=DateWindow(start=date(2024, 1, 1))).total_lessons == 1
    assert svc.student_stats("s1", attendance).total_lessons == 2


def test_grid_row_stats_uses_configured_count_and_shows_dash_when_empty():
    svc = AnalyticsService()
    monday, tuesday = date(2024, 3, 4), date(2024, 3, 5)
    attendance = {"math": {"s1": {monday.isoformat(): (P, F), tuesday.isoformat(): (F,)}}}

    only_first_slot = svc.grid_row_stats("s1", "math", [monday], attendance, {})
    assert (only_first_slot.total_lessons, only_first_slot.display_percentage) == (1, "100%")

    both = svc.grid_row_stats("s1", "math", [monday, tuesday], attendance, {monday.isoformat(): 2})
    assert (both.present, both.absent) == (1, 2)
    assert both.display_percentage == "33%"
    assert both.is_low

    empty = svc.grid_row_stats("s2", "math", [monday, tuesday], attendance, {})
    assert empty.display_percentage == "-"
    assert empty.percentage == 0.0
    assert not empty.is_low


def test_dashboard_bundles_every_view(roster_data, bimesters):
    classes, students, subjects = roster_data
    attendance = {"math": {"s1": {"2024-03-04": (F,)}, "s2": {"2024-03-04": (P,)}}}

    dashboard = AnalyticsService(risk_threshold=60).dashboard(
        students=students,
        classes=classes,
        subjects=subjects,
        bimesters=bimesters,
        attendance=attendance,
    )

    assert [e.student.student_id for e in dashboard.at_risk] == ["s1"]
    assert [e.student.student_id for e in dashboard.global_at_risk] == ["s1"]
    assert [r.percentage for r in dashboard.bimesters] == [50.0, 0.0]
    assert [r.percentage for r in dashboard.classes] == [50.0, 0.0]
    assert all(0.0 <= r.percentage <= 100.0 for r in dashboard.classes + dashboard.bimesters)
