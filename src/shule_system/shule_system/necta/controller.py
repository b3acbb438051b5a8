from __future__ import annotations

from flask import Flask

from ..common.http import current_user, login_required, ok, query_args
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.necta_service

    @app.route("/api/necta/compliance", methods=["GET"], endpoint="necta_compliance")
    @login_required
    def necta_compliance():
        tenant_id = query_args().get("tenant_id")
        report = service.tenant_report(
            current_user=current_user(), tenant_id=int(tenant_id) if tenant_id else None
        )
        return ok(report)

    @app.route("/api/necta/subjects/<int:subject_id>", methods=["GET"], endpoint="necta_subject")
    @login_required
    def necta_subject(subject_id: int):
        return ok(service.subject_report(current_user=current_user(), subject_id=subject_id))

    @app.route("/api/necta/courses/<int:course_id>", methods=["GET"], endpoint="necta_course")
    @login_required
    def necta_course(course_id: int):
        return ok(service.course_report(current_user=current_user(), course_id=course_id))
