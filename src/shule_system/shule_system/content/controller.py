from __future__ import annotations

from flask import Flask, request, send_file

from ..common.http import current_user, json_body, login_required, ok, ok_page, query_args, send_export
from ..container import Container


def _payload():
    """JSON body, or form fields for multipart uploads."""
    if request.files or request.form:
        return request.form.to_dict()
    return json_body()


def _client():
    return {
        "device_info": request.headers.get("User-Agent"),
        "ip_address": request.remote_addr,
    }


def register(app: Flask, container: Container) -> None:
    service = container.content_service

    @app.route("/api/content", methods=["GET"], endpoint="content_list")
    @login_required
    def content_list():
        return ok_page(service.list_content(current_user=current_user(), params=query_args()))

    @app.route("/api/content", methods=["POST"], endpoint="content_create")
    @login_required
    def content_create():
        created = service.create_content(
            current_user=current_user(), data=_payload(), upload=request.files.get("file")
        )
        return ok(created, 201, message="Content created successfully")

    @app.route("/api/content/<int:content_id>", methods=["GET"], endpoint="content_get")
    @login_required
    def content_get(content_id: int):
        return ok(service.get_content(current_user=current_user(), content_id=content_id, **_client()))

    @app.route("/api/content/<int:content_id>", methods=["PUT"], endpoint="content_update")
    @login_required
    def content_update(content_id: int):
        updated = service.update_content(
            current_user=current_user(), content_id=content_id, changes=_payload(),
            upload=request.files.get("file"),
        )
        return ok(updated, message="Content updated successfully")

    @app.route("/api/content/<int:content_id>", methods=["DELETE"], endpoint="content_delete")
    @login_required
    def content_delete(content_id: int):
        service.delete_content(current_user=current_user(), content_id=content_id)
        return ok(message="Content deleted successfully")

    @app.route("/api/content/<int:content_id>/approve", methods=["POST"], endpoint="content_approve")
    @login_required
    def content_approve(content_id: int):
        notes = json_body().get("review_notes")
        return ok(service.approve_content(current_user=current_user(), content_id=content_id, notes=notes),
                  message="Content approved")

    @app.route("/api/content/<int:content_id>/reject", methods=["POST"], endpoint="content_reject")
    @login_required
    def content_reject(content_id: int):
        notes = json_body().get("review_notes")
        return ok(service.reject_content(current_user=current_user(), content_id=content_id, notes=notes),
                  message="Content rejected")

    @app.route("/api/content/<int:content_id>/versions", methods=["GET"], endpoint="content_versions")
    @login_required
    def content_versions(content_id: int):
        return ok(service.list_versions(current_user=current_user(), content_id=content_id))

    @app.route("/api/content/<int:content_id>/assignments", methods=["GET"], endpoint="content_assignments_list")
    @login_required
    def content_assignments_list(content_id: int):
        return ok(service.list_assignments(current_user=current_user(), content_id=content_id))

    @app.route("/api/content/<int:content_id>/assign", methods=["POST"], endpoint="content_assign")
    @login_required
    def content_assign(content_id: int):
        created = service.assign_content(current_user=current_user(), content_id=content_id, data=json_body())
        return ok(created, 201, message="Content assigned successfully")

    @app.route("/api/content/<int:content_id>/usage", methods=["POST"], endpoint="content_usage")
    @login_required
    def content_usage(content_id: int):
        service.record_usage(
            current_user=current_user(), content_id=content_id, action=json_body().get("action"), **_client()
        )
        return ok(message="Usage recorded")

    @app.route("/api/content/<int:content_id>/download", methods=["GET"], endpoint="content_download")
    @login_required
    def content_download(content_id: int):
        path, mime_type = service.download_path(current_user=current_user(), content_id=content_id, **_client())
        return send_file(str(path), mimetype=mime_type, as_attachment=True)

    @app.route("/api/content/<int:content_id>/analytics", methods=["GET"], endpoint="content_analytics")
    @login_required
    def content_analytics(content_id: int):
        period = request.args.get("period")
        return ok(service.get_analytics(current_user=current_user(), content_id=content_id, period=period))

    @app.route("/api/content/reports/export", methods=["GET"], endpoint="content_export")
    @login_required
    def content_export():
        fmt = request.args.get("format", "csv")
        result = service.export_report(current_user=current_user(), fmt=fmt, params=query_args())
        if isinstance(result, dict):
            return ok(result)
        return send_export(result)
