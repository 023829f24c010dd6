from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import parse_iso_date
from ..core.constants import ALL
from ..core.enums import EnrollmentStatus
from ..core.exceptions import ValidationError
from ..container import Container
from .export import XLSX_MIMETYPE, chart_frame, student_report_frame, to_excel_bytes
from .model import AnalyticsFilters, AtRiskEntry, ChartRow, DateWindow, ScopeSummary, StudentStats


def register(app: Flask, container: Container) -> None:
    service = container.data_service
    analytics = container.analytics_service

    def _optional_date(name: str) -> date | None:
        value = request.args.get(name)
        if not value:
            return None
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"Invalid {name} date: {value!r}") from None

    def _filters(bimesters) -> AnalyticsFilters:
        window = None
        bimester_s = request.args.get("bimesterId")
        if bimester_s and bimester_s != ALL:
            match = next((b for b in bimesters if str(b.bimester_id) == bimester_s), None)
            if match is None:
                raise ValidationError(f"Unknown bimester {bimester_s}")
            window = DateWindow.for_bimester(match)
        else:
            start, end = _optional_date("start"), _optional_date("end")
            if start or end:
                window = DateWindow(start=start, end=end)

        status_s = request.args.get("status")
        return AnalyticsFilters(
            subject_id=request.args.get("subjectId", ALL),
            class_id=request.args.get("classId", ALL),
            window=window,
            enrollment_status=EnrollmentStatus.parse(status_s) if status_s and status_s != ALL else None,
            name_query=request.args.get("q", ""),
        )

    def _stats(stats: StudentStats) -> dict:
        return {
            "totalLessons": stats.total_lessons,
            "present": stats.present,
            "absent": stats.absent,
            "excused": stats.excused,
            "percentage": round(stats.percentage, 1),
        }

    def _risk(entry: AtRiskEntry) -> dict:
        return {
            "student": entry.student.to_dict(),
            "stats": _stats(entry.stats),
            "risks": [
                {"subjectId": r.subject_id, "name": r.name, "percentage": round(r.percentage, 1), "absent": r.absent}
                for r in entry.subject_risks
            ],
        }

    def _chart(row: ChartRow) -> dict:
        return {
            "key": row.key,
            "name": row.name,
            "present": row.present,
            "absent": row.absent,
            "excused": row.excused,
            "total": row.total,
            "percentage": round(row.percentage, 1),
        }

    def _summary(summary: ScopeSummary) -> dict:
        return {
            "present": summary.present,
            "absent": summary.absent,
            "excused": summary.excused,
            "totalLessons": summary.total_lessons,
            "percentage": round(summary.percentage, 1),
            "studentCount": summary.student_count,
            "statusCounts": {status.value: count for status, count in summary.status_counts.items()},
            "globalRiskCount": summary.global_risk_count,
            "globalRiskRate": round(summary.global_risk_rate, 1),
        }

    @app.route("/api/analytics/dashboard", methods=["GET"], endpoint="api_analytics_dashboard")
    def api_analytics_dashboard():
        snap = service.snapshot()
        try:
            filters = _filters(snap.bimesters)
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400

        dashboard = analytics.dashboard(
            students=snap.students,
            classes=snap.classes,
            subjects=snap.subjects,
            bimesters=snap.bimesters,
            attendance=snap.attendance,
            filters=filters,
        )
        return jsonify(
            {
                "success": True,
                "stale": service.is_stale,
                "summary": _summary(dashboard.summary),
                "atRisk": [_risk(e) for e in dashboard.at_risk],
                "globalAtRisk": [_risk(e) for e in dashboard.global_at_risk],
                "bimesters": [_chart(r) for r in dashboard.bimesters],
                "classes": [_chart(r) for r in dashboard.classes],
            }
        )

    @app.route("/api/analytics/students/<student_id>", methods=["GET"], endpoint="api_analytics_student")
    def api_analytics_student(student_id: str):
        snap = service.snapshot()
        student = next((s for s in snap.students if s.student_id == student_id), None)
        if student is None:
            return jsonify({"success": False, "message": "Student not found"}), 404

        subject_id = request.args.get("subjectId", ALL)
        subject_ids = analytics.subject_ids_in_scope(snap.attendance, subject_id)
        overall = analytics.student_stats(student_id, snap.attendance, subject_ids=subject_ids)
        per_bimester = analytics.student_bimester_stats(student_id, snap.attendance, snap.bimesters, subject_id=subject_id)
        return jsonify(
            {
                "success": True,
                "student": student.to_dict(),
                "overall": _stats(overall),
                "atRisk": analytics.is_at_risk(student, overall),
                "bimesters": [{"id": b.bimester_id, "name": b.name, **_stats(s)} for b, s in per_bimester],
            }
        )

    @app.route("/api/analytics/export", methods=["GET"], endpoint="api_analytics_export")
    def api_analytics_export():
        snap = service.snapshot()
        try:
            filters = _filters(snap.bimesters)
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e)}), 400

        output = to_excel_bytes(
            {
                "Students": student_report_frame(
                    analytics, students=snap.students, classes=snap.classes, attendance=snap.attendance, filters=filters
                ),
                "Bimesters": chart_frame(analytics.bimester_breakdown(snap.students, snap.attendance, snap.bimesters, filters)),
                "Classes": chart_frame(analytics.class_breakdown(snap.students, snap.classes, snap.attendance, filters)),
            }
        )
        return send_file(output, download_name="attendance_report.xlsx", as_attachment=True, mimetype=XLSX_MIMETYPE)
