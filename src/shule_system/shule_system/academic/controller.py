from __future__ import annotations

from typing import Any, Dict, Iterable

from flask import Flask

from ..common.http import current_user, json_body, login_required, ok, query_args
from ..container import Container
from .filters import AcademicFilters, ClassFilters, CourseFilters, SubjectFilters
from .service import build_filters


def _pick(body: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    return {k: body[k] for k in keys if k in body}


def register(app: Flask, container: Container) -> None:
    service = container.academic_service

    @app.route("/api/academic/filters/<resource>", methods=["GET"], endpoint="academic_filters")
    @login_required
    def academic_filters(resource: str):
        return ok(service.describe_filters(current_user=current_user(), resource=resource))

    @app.route("/api/academic/stats", methods=["GET"], endpoint="academic_stats")
    @login_required
    def academic_stats():
        filters = build_filters(AcademicFilters, query_args())
        return ok(service.get_stats(current_user=current_user(), filters=filters))

    # ---- subjects --------------------------------------------------------

    @app.route("/api/academic/subjects", methods=["GET"], endpoint="academic_subjects_list")
    @login_required
    def academic_subjects_list():
        filters = build_filters(SubjectFilters, query_args())
        return ok(service.list_subjects(current_user=current_user(), filters=filters))

    @app.route("/api/academic/subjects", methods=["POST"], endpoint="academic_subjects_create")
    @login_required
    def academic_subjects_create():
        body = json_body()
        subject_id = service.create_subject(
            current_user=current_user(),
            subject_name=body.get("subject_name", ""),
            subject_code=body.get("subject_code", ""),
            subject_level=body.get("subject_level", ""),
            subject_type=body.get("subject_type", ""),
            description=body.get("description"),
            tenant_id=body.get("tenant_id"),
        )
        return ok(service.get_subject(current_user=current_user(), subject_id=subject_id), 201,
                  message="Subject created successfully")

    @app.route("/api/academic/subjects/<int:subject_id>", methods=["GET"], endpoint="academic_subjects_get")
    @login_required
    def academic_subjects_get(subject_id: int):
        return ok(service.get_subject(current_user=current_user(), subject_id=subject_id))

    @app.route("/api/academic/subjects/<int:subject_id>", methods=["PUT"], endpoint="academic_subjects_update")
    @login_required
    def academic_subjects_update(subject_id: int):
        return ok(service.update_subject(current_user=current_user(), subject_id=subject_id, changes=json_body()),
                  message="Subject updated successfully")

    @app.route("/api/academic/subjects/<int:subject_id>", methods=["DELETE"], endpoint="academic_subjects_delete")
    @login_required
    def academic_subjects_delete(subject_id: int):
        service.delete_subject(current_user=current_user(), subject_id=subject_id)
        return ok(message="Subject deleted successfully")

    # ---- courses ---------------------------------------------------------

    @app.route("/api/academic/courses", methods=["GET"], endpoint="academic_courses_list")
    @login_required
    def academic_courses_list():
        filters = build_filters(CourseFilters, query_args())
        return ok(service.list_courses(current_user=current_user(), filters=filters))

    @app.route("/api/academic/courses", methods=["POST"], endpoint="academic_courses_create")
    @login_required
    def academic_courses_create():
        body = json_body()
        course_id = service.create_course(
            current_user=current_user(),
            course_name=body.get("course_name", ""),
            course_code=body.get("course_code", ""),
            **_pick(body, ("credits", "description", "subject_ids", "tenant_id")),
        )
        return ok(service.get_course(current_user=current_user(), course_id=course_id), 201,
                  message="Course created successfully")

    @app.route("/api/academic/courses/<int:course_id>", methods=["GET"], endpoint="academic_courses_get")
    @login_required
    def academic_courses_get(course_id: int):
        return ok(service.get_course(current_user=current_user(), course_id=course_id))

    @app.route("/api/academic/courses/<int:course_id>", methods=["PUT"], endpoint="academic_courses_update")
    @login_required
    def academic_courses_update(course_id: int):
        return ok(service.update_course(current_user=current_user(), course_id=course_id, changes=json_body()),
                  message="Course updated successfully")

    @app.route("/api/academic/courses/<int:course_id>", methods=["DELETE"], endpoint="academic_courses_delete")
    @login_required
    def academic_courses_delete(course_id: int):
        service.delete_course(current_user=current_user(), course_id=course_id)
        return ok(message="Course deleted successfully")

    # ---- classes ---------------------------------------------------------

    @app.route("/api/academic/classes", methods=["GET"], endpoint="academic_classes_list")
    @login_required
    def academic_classes_list():
        filters = build_filters(ClassFilters, query_args())
        return ok(service.list_classes(current_user=current_user(), filters=filters))

    @app.route("/api/academic/classes", methods=["POST"], endpoint="academic_classes_create")
    @login_required
    def academic_classes_create():
        body = json_body()
        class_id = service.create_class(
            current_user=current_user(),
            class_name=body.get("class_name", ""),
            capacity=body.get("capacity"),
            **_pick(body, ("grade", "section", "teacher_id", "academic_year", "tenant_id")),
        )
        return ok(service.get_class(current_user=current_user(), class_id=class_id), 201,
                  message="Class created successfully")

    @app.route("/api/academic/classes/<int:class_id>", methods=["GET"], endpoint="academic_classes_get")
    @login_required
    def academic_classes_get(class_id: int):
        return ok(service.get_class(current_user=current_user(), class_id=class_id))

    @app.route("/api/academic/classes/<int:class_id>", methods=["PUT"], endpoint="academic_classes_update")
    @login_required
    def academic_classes_update(class_id: int):
        return ok(service.update_class(current_user=current_user(), class_id=class_id, changes=json_body()),
                  message="Class updated successfully")

    @app.route("/api/academic/classes/<int:class_id>", methods=["DELETE"], endpoint="academic_classes_delete")
    @login_required
    def academic_classes_delete(class_id: int):
        service.delete_class(current_user=current_user(), class_id=class_id)
        return ok(message="Class deleted successfully")

    @app.route("/api/academic/classes/<int:class_id>/students", methods=["POST"], endpoint="academic_classes_enroll")
    @login_required
    def academic_classes_enroll(class_id: int):
        service.enroll_student(
            current_user=current_user(), class_id=class_id, student_user_id=json_body().get("student_user_id")
        )
        return ok(message="Student enrolled", status=201)

    @app.route("/api/academic/classes/<int:class_id>/students/<int:student_user_id>", methods=["DELETE"],
               endpoint="academic_classes_unenroll")
    @login_required
    def academic_classes_unenroll(class_id: int, student_user_id: int):
        service.unenroll_student(current_user=current_user(), class_id=class_id, student_user_id=student_user_id)
        return ok(message="Student removed from class")

    # ---- teacher assignments ---------------------------------------------

    @app.route("/api/academic/teacher-assignments", methods=["GET"], endpoint="academic_assignments_list")
    @login_required
    def academic_assignments_list():
        filters = build_filters(AcademicFilters, query_args())
        return ok(service.list_teacher_assignments(current_user=current_user(), filters=filters))

    @app.route("/api/academic/teacher-assignments", methods=["POST"], endpoint="academic_assignments_create")
    @login_required
    def academic_assignments_create():
        body = json_body()
        assignment_id = service.assign_teacher(
            current_user=current_user(),
            teacher_user_id=body.get("teacher_user_id"),
            subject_id=body.get("subject_id"),
            **_pick(body, ("class_id", "tenant_id")),
        )
        return ok({"assignment_id": assignment_id}, 201, message="Teacher assigned successfully")

    @app.route("/api/academic/teacher-assignments/<int:assignment_id>", methods=["DELETE"],
               endpoint="academic_assignments_delete")
    @login_required
    def academic_assignments_delete(assignment_id: int):
        service.remove_teacher_assignment(current_user=current_user(), assignment_id=assignment_id)
        return ok(message="Teacher assignment removed")
