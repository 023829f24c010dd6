from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request

from ..common.datetime_utils import is_weekend, month_dates, parse_iso_date, today_local
from ..common.validators import require_non_empty
from ..core.constants import ALL, DEFAULT_LESSON_COUNT
from ..core.enums import AttendanceStatus, EnrollmentStatus
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.data_service
    analytics = container.analytics_service

    def _parse_date(value) -> date:
        try:
            return parse_iso_date(str(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid date: {value!r}") from None

    @app.route("/api/attendance/toggle", methods=["POST"], endpoint="api_attendance_toggle")
    def api_attendance_toggle():
        data = request.get_json(silent=True) or {}
        try:
            subject_id = require_non_empty(data.get("subjectId"), "subjectId")
            student_id = require_non_empty(data.get("studentId"), "studentId")
            work_date = _parse_date(data.get("date"))
            lesson_index = int(data.get("lessonIndex", 0))
            status = service.toggle_status(subject_id, student_id, work_date, lesson_index)
        except (ValidationError, TypeError, ValueError) as e:
            return jsonify({"success": False, "message": str(e)}), 400

        statuses = service.ledger.statuses_for(subject_id, student_id, work_date)
        return jsonify(
            {
                "success": True,
                "applied": status is not None,
                "status": status.value if status else None,
                "statusArray": [s.value for s in statuses],
            }
        )

    @app.route("/api/lesson-counts", methods=["POST"], endpoint="api_lesson_counts")
    def api_lesson_counts():
        data = request.get_json(silent=True) or {}
        try:
            count = service.update_lesson_count(_parse_date(data.get("date")), data.get("count"))
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400
        return jsonify({"success": True, "date": data.get("date"), "count": count})

    @app.route("/api/attendance/grid", methods=["GET"], endpoint="api_attendance_grid")
    def api_attendance_grid():
        """Month grid for one class and subject: cells plus row totals."""
        today = today_local()
        subject_id = request.args.get("subjectId", "")
        class_id = request.args.get("classId", ALL)
        status_s = request.args.get("status")
        try:
            year = int(request.args.get("year") or today.year)
            month = int(request.args.get("month") or today.month)
            dates = month_dates(year, month)
        except ValueError:
            return jsonify({"success": False, "message": "Invalid year/month"}), 400

        snap = service.snapshot()
        students = [s for s in snap.students if class_id == ALL or s.class_id == class_id]
        if status_s and status_s != ALL:
            wanted = EnrollmentStatus.parse(status_s)
            students = [s for s in students if s.status == wanted]

        days = [
            {
                "date": d.isoformat(),
                "weekend": is_weekend(d),
                "lessonCount": snap.lesson_counts.get(d.isoformat(), DEFAULT_LESSON_COUNT),
            }
            for d in dates
        ]

        rows = []
        for student in students:
            stats = analytics.grid_row_stats(student.student_id, subject_id, dates, snap.attendance, snap.lesson_counts)
            record = snap.attendance.get(subject_id, {}).get(student.student_id, {})
            cells = {}
            for day in days:
                stored = record.get(day["date"], ())
                cells[day["date"]] = [
                    stored[idx].value if idx < len(stored) else AttendanceStatus.UNDEFINED.value
                    for idx in range(day["lessonCount"])
                ]
            rows.append(
                {
                    "student": student.to_dict(),
                    "locked": student.is_frozen,
                    "cells": cells,
                    "absent": stats.absent,
                    "present": stats.present,
                    "percentage": stats.display_percentage,
                    "low": stats.is_low,
                }
            )

        return jsonify({"success": True, "days": days, "rows": rows})
