from __future__ import annotations

from flask import Flask

from ..common.http import current_user, json_body, login_required, ok, ok_page, query_args
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.student_service

    @app.route("/api/students", methods=["GET"], endpoint="students_list")
    @login_required
    def students_list():
        return ok_page(service.list_students(current_user=current_user(), params=query_args()))

    @app.route("/api/students", methods=["POST"], endpoint="students_create")
    @login_required
    def students_create():
        return ok(service.create_student(current_user=current_user(), data=json_body()), 201,
                  message="Student created successfully")

    @app.route("/api/students/<int:student_id>", methods=["GET"], endpoint="students_get")
    @login_required
    def students_get(student_id: int):
        return ok(service.get_student(current_user=current_user(), student_id=student_id))

    @app.route("/api/students/<int:student_id>", methods=["PUT"], endpoint="students_update")
    @login_required
    def students_update(student_id: int):
        return ok(service.update_student(current_user=current_user(), student_id=student_id, changes=json_body()),
                  message="Student updated successfully")

    @app.route("/api/students/<int:student_id>", methods=["DELETE"], endpoint="students_delete")
    @login_required
    def students_delete(student_id: int):
        service.delete_student(current_user=current_user(), student_id=student_id)
        return ok(message="Student deleted successfully")

    # enrollments
    @app.route("/api/students/<int:student_id>/enrollments", methods=["GET"], endpoint="students_enrollments")
    @login_required
    def students_enrollments(student_id: int):
        return ok(service.list_enrollments(current_user=current_user(), student_id=student_id))

    @app.route("/api/students/<int:student_id>/enrollments", methods=["POST"], endpoint="students_enroll")
    @login_required
    def students_enroll(student_id: int):
        return ok(service.create_enrollment(current_user=current_user(), student_id=student_id, data=json_body()),
                  201, message="Student enrolled successfully")

    @app.route("/api/students/<int:student_id>/enrollments/<int:enrollment_id>", methods=["PUT"],
               endpoint="students_enrollments_update")
    @login_required
    def students_enrollments_update(student_id: int, enrollment_id: int):
        updated = service.update_enrollment(
            current_user=current_user(), student_id=student_id, enrollment_id=enrollment_id, changes=json_body()
        )
        return ok(updated, message="Enrollment updated successfully")

    @app.route("/api/students/<int:student_id>/enrollments/<int:enrollment_id>", methods=["DELETE"],
               endpoint="students_enrollments_delete")
    @login_required
    def students_enrollments_delete(student_id: int, enrollment_id: int):
        service.delete_enrollment(current_user=current_user(), student_id=student_id, enrollment_id=enrollment_id)
        return ok(message="Enrollment deleted successfully")
