from __future__ import annotations

from flask import Flask, request

from ..common.http import current_user, json_body, login_required, ok, ok_page, query_args, send_export
from ..container import Container
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    service = container.teacher_service

    @app.route("/api/teachers", methods=["GET"], endpoint="teachers_list")
    @login_required
    def teachers_list():
        return ok_page(service.list_teachers(current_user=current_user(), params=query_args()))

    @app.route("/api/teachers", methods=["POST"], endpoint="teachers_create")
    @login_required
    def teachers_create():
        return ok(service.create_teacher(current_user=current_user(), data=json_body()), 201,
                  message="Teacher created successfully")

    @app.route("/api/teachers/<int:teacher_id>", methods=["GET"], endpoint="teachers_get")
    @login_required
    def teachers_get(teacher_id: int):
        return ok(service.get_teacher(current_user=current_user(), teacher_id=teacher_id))

    @app.route("/api/teachers/<int:teacher_id>", methods=["PUT"], endpoint="teachers_update")
    @login_required
    def teachers_update(teacher_id: int):
        return ok(service.update_teacher(current_user=current_user(), teacher_id=teacher_id, changes=json_body()),
                  message="Teacher updated successfully")

    @app.route("/api/teachers/<int:teacher_id>", methods=["DELETE"], endpoint="teachers_delete")
    @login_required
    def teachers_delete(teacher_id: int):
        service.delete_teacher(current_user=current_user(), teacher_id=teacher_id)
        return ok(message="Teacher deleted successfully")

    # subjects
    @app.route("/api/teachers/<int:teacher_id>/subjects", methods=["GET"], endpoint="teachers_subjects")
    @login_required
    def teachers_subjects(teacher_id: int):
        return ok(service.list_subjects(current_user=current_user(), teacher_id=teacher_id))

    @app.route("/api/teachers/<int:teacher_id>/subjects", methods=["POST"], endpoint="teachers_subjects_assign")
    @login_required
    def teachers_subjects_assign(teacher_id: int):
        subject_id = json_body().get("subject_id")
        return ok(service.assign_subject(current_user=current_user(), teacher_id=teacher_id, subject_id=subject_id),
                  201, message="Subject assigned to teacher successfully")

    @app.route("/api/teachers/<int:teacher_id>/subjects/<int:subject_id>", methods=["DELETE"],
               endpoint="teachers_subjects_remove")
    @login_required
    def teachers_subjects_remove(teacher_id: int, subject_id: int):
        service.remove_subject(current_user=current_user(), teacher_id=teacher_id, subject_id=subject_id)
        return ok(message="Subject removed from teacher successfully")

    @app.route("/api/teachers/subjects/bulk-assign", methods=["POST"], endpoint="teachers_subjects_bulk")
    @login_required
    def teachers_subjects_bulk():
        result = service.bulk_assign_subjects(
            current_user=current_user(), assignments=json_body().get("assignments") or []
        )
        return ok(result, 201, message="Subjects assigned successfully")

    # classes
    @app.route("/api/teachers/<int:teacher_id>/classes", methods=["GET"], endpoint="teachers_classes")
    @login_required
    def teachers_classes(teacher_id: int):
        return ok(service.list_classes(current_user=current_user(), teacher_id=teacher_id))

    @app.route("/api/teachers/<int:teacher_id>/classes", methods=["POST"], endpoint="teachers_classes_assign")
    @login_required
    def teachers_classes_assign(teacher_id: int):
        body = json_body()
        link = service.assign_class(
            current_user=current_user(), teacher_id=teacher_id, class_id=body.get("class_id"), role=body.get("role")
        )
        return ok(link, 201, message="Class assigned to teacher successfully")

    @app.route("/api/teachers/<int:teacher_id>/classes/<int:class_id>", methods=["DELETE"],
               endpoint="teachers_classes_remove")
    @login_required
    def teachers_classes_remove(teacher_id: int, class_id: int):
        service.remove_class(current_user=current_user(), teacher_id=teacher_id, class_id=class_id)
        return ok(message="Class removed from teacher successfully")

    # qualifications
    @app.route("/api/teachers/<int:teacher_id>/qualifications", methods=["GET"], endpoint="teachers_qualifications")
    @login_required
    def teachers_qualifications(teacher_id: int):
        return ok(service.list_qualifications(current_user=current_user(), teacher_id=teacher_id))

    @app.route("/api/teachers/<int:teacher_id>/qualifications", methods=["POST"],
               endpoint="teachers_qualifications_add")
    @login_required
    def teachers_qualifications_add(teacher_id: int):
        return ok(service.add_qualification(current_user=current_user(), teacher_id=teacher_id, data=json_body()),
                  201, message="Qualification added successfully")

    @app.route("/api/teachers/<int:teacher_id>/qualifications/<int:qualification_id>", methods=["PUT"],
               endpoint="teachers_qualifications_update")
    @login_required
    def teachers_qualifications_update(teacher_id: int, qualification_id: int):
        updated = service.update_qualification(
            current_user=current_user(), teacher_id=teacher_id, qualification_id=qualification_id,
            changes=json_body(),
        )
        return ok(updated, message="Qualification updated successfully")

    @app.route("/api/teachers/<int:teacher_id>/qualifications/<int:qualification_id>", methods=["DELETE"],
               endpoint="teachers_qualifications_delete")
    @login_required
    def teachers_qualifications_delete(teacher_id: int, qualification_id: int):
        service.delete_qualification(
            current_user=current_user(), teacher_id=teacher_id, qualification_id=qualification_id
        )
        return ok(message="Qualification deleted successfully")

    @app.route("/api/teachers/<int:teacher_id>/workload", methods=["GET"], endpoint="teachers_workload")
    @login_required
    def teachers_workload(teacher_id: int):
        return ok(service.get_workload(current_user=current_user(), teacher_id=teacher_id))

    @app.route("/api/teachers/export", methods=["GET"], endpoint="teachers_export")
    @login_required
    def teachers_export():
        fmt = request.args.get("format", "csv")
        return send_export(service.export_teachers(current_user=current_user(), fmt=fmt))

    @app.route("/api/teachers/import", methods=["POST"], endpoint="teachers_import")
    @login_required
    def teachers_import():
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("A CSV file is required")
        tenant_id = request.form.get("tenant_id") or None
        result = service.import_teachers(current_user=current_user(), stream=upload.stream, tenant_id=tenant_id)
        return ok(result, message=f"{result['created']} teacher(s) imported")
