from __future__ import annotations

from flask import Flask, request

from ..common.http import current_user, json_body, login_required, ok, send_export
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.hostel_service

    # ---- hostels ---------------------------------------------------------

    @app.route("/api/hostels", methods=["GET"], endpoint="hostels_list")
    @login_required
    def hostels_list():
        return ok(service.list_hostels(
            current_user=current_user(),
            status=request.args.get("status"),
            search=request.args.get("search"),
        ))

    @app.route("/api/hostels", methods=["POST"], endpoint="hostels_create")
    @login_required
    def hostels_create():
        return ok(service.create_hostel(current_user=current_user(), data=json_body()), 201)

    @app.route("/api/hostels/<int:hostel_id>", methods=["GET"], endpoint="hostels_get")
    @login_required
    def hostels_get(hostel_id: int):
        return ok(service.get_hostel(current_user=current_user(), hostel_id=hostel_id))

    @app.route("/api/hostels/<int:hostel_id>", methods=["PUT"], endpoint="hostels_update")
    @login_required
    def hostels_update(hostel_id: int):
        return ok(service.update_hostel(current_user=current_user(), hostel_id=hostel_id, changes=json_body()))

    @app.route("/api/hostels/<int:hostel_id>", methods=["DELETE"], endpoint="hostels_delete")
    @login_required
    def hostels_delete(hostel_id: int):
        service.delete_hostel(current_user=current_user(), hostel_id=hostel_id)
        return ok(message="Hostel deleted successfully")

    # ---- rooms -----------------------------------------------------------

    @app.route("/api/hostels/rooms", methods=["GET"], endpoint="hostel_rooms_list")
    @login_required
    def hostel_rooms_list():
        return ok(service.list_rooms(
            current_user=current_user(),
            hostel_id=request.args.get("hostel_id"),
            status=request.args.get("status"),
            search=request.args.get("search"),
        ))

    @app.route("/api/hostels/rooms", methods=["POST"], endpoint="hostel_rooms_create")
    @login_required
    def hostel_rooms_create():
        return ok(service.create_room(current_user=current_user(), data=json_body()), 201)

    @app.route("/api/hostels/rooms/<int:room_id>", methods=["PUT"], endpoint="hostel_rooms_update")
    @login_required
    def hostel_rooms_update(room_id: int):
        return ok(service.update_room(current_user=current_user(), room_id=room_id, changes=json_body()))

    @app.route("/api/hostels/rooms/<int:room_id>", methods=["DELETE"], endpoint="hostel_rooms_delete")
    @login_required
    def hostel_rooms_delete(room_id: int):
        service.delete_room(current_user=current_user(), room_id=room_id)
        return ok(message="Hostel room deleted successfully")

    # ---- assignments -----------------------------------------------------

    @app.route("/api/hostels/assignments", methods=["GET"], endpoint="hostel_assignments_list")
    @login_required
    def hostel_assignments_list():
        return ok(service.list_assignments(
            current_user=current_user(),
            status=request.args.get("status"),
            student_id=request.args.get("student_id"),
            hostel_id=request.args.get("hostel_id"),
            room_id=request.args.get("room_id"),
        ))

    @app.route("/api/hostels/assignments", methods=["POST"], endpoint="hostel_assignments_create")
    @login_required
    def hostel_assignments_create():
        return ok(service.create_assignment(current_user=current_user(), data=json_body()), 201)

    @app.route("/api/hostels/assignments/<int:assignment_id>", methods=["PUT"], endpoint="hostel_assignments_update")
    @login_required
    def hostel_assignments_update(assignment_id: int):
        return ok(service.update_assignment(
            current_user=current_user(), assignment_id=assignment_id, changes=json_body()
        ))

    @app.route("/api/hostels/assignments/<int:assignment_id>", methods=["DELETE"], endpoint="hostel_assignments_delete")
    @login_required
    def hostel_assignments_delete(assignment_id: int):
        service.delete_assignment(current_user=current_user(), assignment_id=assignment_id)
        return ok(message="Hostel assignment deleted successfully")

    # ---- maintenance -----------------------------------------------------

    @app.route("/api/hostels/maintenance", methods=["GET"], endpoint="hostel_maintenance_list")
    @login_required
    def hostel_maintenance_list():
        return ok(service.list_maintenance(
            current_user=current_user(),
            status=request.args.get("status"),
            hostel_id=request.args.get("hostel_id"),
            room_id=request.args.get("room_id"),
            maintenance_type=request.args.get("maintenance_type"),
        ))

    @app.route("/api/hostels/maintenance", methods=["POST"], endpoint="hostel_maintenance_create")
    @login_required
    def hostel_maintenance_create():
        return ok(service.create_maintenance(current_user=current_user(), data=json_body()), 201)

    @app.route("/api/hostels/maintenance/<int:maintenance_id>", methods=["PUT"], endpoint="hostel_maintenance_update")
    @login_required
    def hostel_maintenance_update(maintenance_id: int):
        return ok(service.update_maintenance(
            current_user=current_user(), maintenance_id=maintenance_id, changes=json_body()
        ))

    @app.route("/api/hostels/maintenance/<int:maintenance_id>", methods=["DELETE"], endpoint="hostel_maintenance_delete")
    @login_required
    def hostel_maintenance_delete(maintenance_id: int):
        service.delete_maintenance(current_user=current_user(), maintenance_id=maintenance_id)
        return ok(message="Maintenance record deleted successfully")

    # ---- reports & stats -------------------------------------------------

    @app.route("/api/hostels/reports", methods=["GET"], endpoint="hostel_reports_list")
    @login_required
    def hostel_reports_list():
        return ok(service.list_reports(
            current_user=current_user(),
            report_type=request.args.get("report_type"),
            hostel_id=request.args.get("hostel_id"),
        ))

    @app.route("/api/hostels/reports", methods=["POST"], endpoint="hostel_reports_create")
    @login_required
    def hostel_reports_create():
        return ok(service.create_report(current_user=current_user(), data=json_body()), 201)

    @app.route("/api/hostels/reports/<int:report_id>/download", methods=["GET"], endpoint="hostel_reports_download")
    @login_required
    def hostel_reports_download(report_id: int):
        return send_export(service.download_report(current_user=current_user(), report_id=report_id))

    @app.route("/api/hostels/reports/<int:report_id>", methods=["DELETE"], endpoint="hostel_reports_delete")
    @login_required
    def hostel_reports_delete(report_id: int):
        service.delete_report(current_user=current_user(), report_id=report_id)
        return ok(message="Hostel report deleted successfully")

    @app.route("/api/hostels/stats", methods=["GET"], endpoint="hostel_stats")
    @login_required
    def hostel_stats():
        stats = service.get_stats(current_user=current_user(), tenant_id=request.args.get("tenant_id", type=int))
        return ok(stats.as_dict())
