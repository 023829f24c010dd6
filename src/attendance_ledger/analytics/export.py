from __future__ import annotations

import io
from typing import Iterable, Optional

import pandas as pd

from ..attendance.model import AttendanceLedger
from ..roster.model import ClassGroup, Student
from .model import AnalyticsFilters, ChartRow
from .service import AnalyticsService

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def student_report_frame(
    analytics: AnalyticsService,
    *,
    students: Iterable[Student],
    classes: Iterable[ClassGroup],
    attendance: AttendanceLedger,
    filters: AnalyticsFilters = AnalyticsFilters(),
) -> pd.DataFrame:
    """One row per student in scope with lesson tallies and risk flag."""
    class_names = {c.class_id: c.name for c in classes}
    subject_ids = analytics.subject_ids_in_scope(attendance, filters.subject_id)

    data = []
    for student in analytics.filter_students(students, filters):
        stats = analytics.student_stats(student.student_id, attendance, subject_ids=subject_ids, window=filters.window)
        data.append(
            {
                "Student": student.name,
                "Class": class_names.get(student.class_id or "", "-"),
                "Status": student.status.value,
                "Lessons": stats.total_lessons,
                "Present": stats.present,
                "Absent": stats.absent,
                "Excused": stats.excused,
                "Attendance %": round(stats.percentage, 1),
                "At risk": analytics.is_at_risk(student, stats),
            }
        )

    columns = ["Student", "Class", "Status", "Lessons", "Present", "Absent", "Excused", "Attendance %", "At risk"]
    return pd.DataFrame(data, columns=columns)


def chart_frame(rows: Iterable[ChartRow]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Name": r.name, "Present": r.present, "Absent": r.absent, "Excused": r.excused, "Lessons": r.total, "Rate %": round(r.percentage, 1)}
            for r in rows
        ],
        columns=["Name", "Present", "Absent", "Excused", "Lessons", "Rate %"],
    )


def to_excel_bytes(sheets: dict[str, pd.DataFrame], *, output: Optional[io.BytesIO] = None) -> io.BytesIO:
    """Write DataFrames into an in-memory workbook (nothing touches the disk)."""
    output = output or io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, index=False, sheet_name=name[:31])
    output.seek(0)
    return output
