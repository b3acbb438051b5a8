from __future__ import annotations

from flask import Flask

from ..common.http import current_user, json_body, login_required, ok, query_args, send_export
from ..common.validators import parse_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.examination_service

    @app.route("/api/examinations", methods=["GET"], endpoint="exams_list")
    @login_required
    def exams_list():
        args = query_args()
        subject_id = args.get("subject_id")
        class_id = args.get("class_id")
        return ok(service.list_examinations(
            current_user=current_user(),
            subject_id=parse_int(subject_id, "Subject") if subject_id else None,
            class_id=parse_int(class_id, "Class") if class_id else None,
        ))

    @app.route("/api/examinations", methods=["POST"], endpoint="exams_create")
    @login_required
    def exams_create():
        body = json_body()
        exam_id = service.create_examination(
            current_user=current_user(),
            exam_name=body.get("exam_name", ""),
            subject_id=body.get("subject_id"),
            exam_date=body.get("exam_date"),
            max_marks=body.get("max_marks", 100),
            class_id=body.get("class_id"),
            tenant_id=body.get("tenant_id"),
        )
        return ok(service.get_examination(current_user=current_user(), exam_id=exam_id), 201,
                  message="Examination created successfully")

    @app.route("/api/examinations/<int:exam_id>", methods=["GET"], endpoint="exams_get")
    @login_required
    def exams_get(exam_id: int):
        return ok(service.get_examination(current_user=current_user(), exam_id=exam_id))

    @app.route("/api/examinations/<int:exam_id>/status", methods=["PATCH"], endpoint="exams_status")
    @login_required
    def exams_status(exam_id: int):
        service.update_status(current_user=current_user(), exam_id=exam_id, status=json_body().get("status", ""))
        return ok(message="Examination status updated")

    @app.route("/api/examinations/<int:exam_id>/results", methods=["GET"], endpoint="exams_results")
    @login_required
    def exams_results(exam_id: int):
        return ok(service.list_results(current_user=current_user(), exam_id=exam_id))

    @app.route("/api/examinations/<int:exam_id>/results", methods=["POST"], endpoint="exams_record_result")
    @login_required
    def exams_record_result(exam_id: int):
        body = json_body()
        result = service.record_result(
            current_user=current_user(),
            exam_id=exam_id,
            student_user_id=body.get("student_user_id"),
            marks=body.get("marks"),
            remarks=body.get("remarks"),
        )
        return ok(result, 201, message="Result recorded")

    @app.route("/api/examinations/<int:exam_id>/results/export", methods=["GET"], endpoint="exams_export")
    @login_required
    def exams_export(exam_id: int):
        fmt = query_args().get("format", "csv")
        return send_export(service.export_results(current_user=current_user(), exam_id=exam_id, fmt=fmt))
