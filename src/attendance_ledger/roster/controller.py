from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..core.constants import ALL
from ..core.enums import EnrollmentStatus
from ..core.exceptions import ValidationError
from ..container import Container
from .model import BimesterConfig, ClassGroup, Student, Subject


def register(app: Flask, container: Container) -> None:
    service = container.data_service

    def _bad_request(e: Exception):
        return jsonify({"success": False, "message": str(e)}), 400

    def _student_from(data: dict, *, student_id: str | None = None) -> Student:
        sid = student_id or data.get("id")
        if not sid:
            raise ValidationError("Student id is required")
        return Student.from_dict({**data, "id": sid})

    @app.route("/api/students", methods=["GET"], endpoint="api_students")
    def api_students():
        status_s = request.args.get("status")
        students = service.roster.search(
            name_query=request.args.get("q", ""),
            class_id=request.args.get("classId", ALL),
            status=EnrollmentStatus.parse(status_s) if status_s and status_s != ALL else None,
        )
        return jsonify({"success": True, "students": [s.to_dict() for s in students]})

    @app.route("/api/students", methods=["POST"], endpoint="api_students_add")
    def api_students_add():
        try:
            student = service.add_student(_student_from(request.get_json(silent=True) or {}))
        except ValidationError as e:
            return _bad_request(e)
        return jsonify({"success": True, "student": student.to_dict()}), 201

    @app.route("/api/students/<student_id>", methods=["PUT"], endpoint="api_students_update")
    def api_students_update(student_id: str):
        try:
            student = service.update_student(_student_from(request.get_json(silent=True) or {}, student_id=student_id))
        except ValidationError as e:
            return _bad_request(e)
        return jsonify({"success": True, "student": student.to_dict()})

    @app.route("/api/students/<student_id>", methods=["DELETE"], endpoint="api_students_delete")
    def api_students_delete(student_id: str):
        service.delete_student(student_id)
        return jsonify({"success": True})

    @app.route("/api/students/batch", methods=["POST"], endpoint="api_students_batch")
    def api_students_batch():
        """Add many students at once; ``names`` is a list or newline-separated text."""
        data = request.get_json(silent=True) or {}
        names = data.get("names") or []
        if isinstance(names, str):
            names = names.splitlines()
        created = service.batch_add_students(
            names,
            class_id=data.get("classId") or None,
            status=EnrollmentStatus.parse(data.get("status") or EnrollmentStatus.ACTIVE),
        )
        return jsonify({"success": True, "students": [s.to_dict() for s in created]}), 201

    @app.route("/api/classes", methods=["POST"], endpoint="api_classes_upsert")
    def api_classes_upsert():
        data = request.get_json(silent=True) or {}
        try:
            if not data.get("id"):
                raise ValidationError("Class id is required")
            class_group = service.upsert_class(ClassGroup.from_dict(data))
        except ValidationError as e:
            return _bad_request(e)
        return jsonify({"success": True, "class": class_group.to_dict()})

    @app.route("/api/classes/<class_id>", methods=["DELETE"], endpoint="api_classes_delete")
    def api_classes_delete(class_id: str):
        service.delete_class(class_id)
        return jsonify({"success": True})

    @app.route("/api/subjects", methods=["POST"], endpoint="api_subjects_upsert")
    def api_subjects_upsert():
        data = request.get_json(silent=True) or {}
        try:
            if not data.get("id"):
                raise ValidationError("Subject id is required")
            subject = service.upsert_subject(Subject.from_dict(data))
        except ValidationError as e:
            return _bad_request(e)
        return jsonify({"success": True, "subject": subject.to_dict()})

    @app.route("/api/subjects/<subject_id>", methods=["DELETE"], endpoint="api_subjects_delete")
    def api_subjects_delete(subject_id: str):
        service.delete_subject(subject_id)
        return jsonify({"success": True})

    @app.route("/api/bimesters", methods=["PUT"], endpoint="api_bimesters_replace")
    def api_bimesters_replace():
        data = request.get_json(silent=True)
        try:
            if not isinstance(data, list):
                raise ValidationError("Expected a list of bimesters")
            bimesters = service.update_bimesters(BimesterConfig.from_dict(b) for b in data)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            return _bad_request(e)
        return jsonify({"success": True, "bimesters": [b.to_dict() for b in bimesters]})

    @app.route("/api/bimesters/<int:bimester_id>", methods=["PATCH"], endpoint="api_bimesters_dates")
    def api_bimesters_dates(bimester_id: int):
        data = request.get_json(silent=True) or {}
        try:
            bimesters = service.update_bimester_dates(
                bimester_id,
                start=parse_iso_date(str(data.get("start"))),
                end=parse_iso_date(str(data.get("end"))),
            )
        except (ValidationError, ValueError) as e:
            return _bad_request(e)
        return jsonify({"success": True, "bimesters": [b.to_dict() for b in bimesters]})
