from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

from ..core.enums import AttendanceStatus

# date (ISO) -> one status per lesson slot
DayStatuses = Tuple[AttendanceStatus, ...]
StudentRecord = Dict[str, DayStatuses]
SubjectAttendance = Dict[str, StudentRecord]
# subject_id -> student_id -> date -> statuses
AttendanceLedger = Dict[str, SubjectAttendance]

_CYCLE = {
    AttendanceStatus.UNDEFINED: AttendanceStatus.PRESENT,
    AttendanceStatus.PRESENT: AttendanceStatus.ABSENT,
    AttendanceStatus.ABSENT: AttendanceStatus.EXCUSED,
    AttendanceStatus.EXCUSED: AttendanceStatus.UNDEFINED,
}


def next_status(current: AttendanceStatus) -> AttendanceStatus:
    """Fixed click cycle: UNDEFINED -> PRESENT -> ABSENT -> EXCUSED -> UNDEFINED."""
    return _CYCLE[current]


def parse_status(value: Any) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(value)
    except ValueError:
        # Blank cells coming back from the record store mean "not recorded".
        return AttendanceStatus.UNDEFINED


def ledger_from_dict(data: Mapping[str, Any] | None) -> AttendanceLedger:
    ledger: AttendanceLedger = {}
    for subject_id, students in (data or {}).items():
        if not isinstance(students, Mapping):
            continue
        subject: SubjectAttendance = {}
        for student_id, days in students.items():
            if not isinstance(days, Mapping):
                continue
            subject[str(student_id)] = {
                # Sheets may hand dates back as full timestamps.
                str(day)[:10]: tuple(parse_status(s) for s in statuses)
                for day, statuses in days.items()
                if isinstance(statuses, (list, tuple))
            }
        ledger[str(subject_id)] = subject
    return ledger


def ledger_to_dict(ledger: Mapping[str, Mapping[str, Mapping[str, DayStatuses]]]) -> dict[str, Any]:
    return {
        subject_id: {
            student_id: {day: [s.value for s in statuses] for day, statuses in days.items()}
            for student_id, days in students.items()
        }
        for subject_id, students in ledger.items()
    }
