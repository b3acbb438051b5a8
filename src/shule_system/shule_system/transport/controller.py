from __future__ import annotations

import io

from flask import Flask, send_file

from ..common.http import current_user, json_body, login_required, ok, query_args
from ..common.serialization import to_jsonable
from ..container import Container
from .service import performance_grade


def register(app: Flask, container: Container) -> None:
    service = container.transport_service

    # routes
    @app.route("/api/transport/routes", methods=["GET"], endpoint="transport_routes_list")
    @login_required
    def transport_routes_list():
        return ok(service.list_routes(current_user=current_user(), params=query_args()))

    @app.route("/api/transport/routes", methods=["POST"], endpoint="transport_routes_create")
    @login_required
    def transport_routes_create():
        return ok(service.create_route(current_user=current_user(), data=json_body()), 201,
                  message="Transport route created successfully")

    @app.route("/api/transport/routes/<int:route_id>", methods=["GET"], endpoint="transport_routes_get")
    @login_required
    def transport_routes_get(route_id: int):
        return ok(service.get_route(current_user=current_user(), route_id=route_id))

    @app.route("/api/transport/routes/<int:route_id>", methods=["PUT"], endpoint="transport_routes_update")
    @login_required
    def transport_routes_update(route_id: int):
        return ok(service.update_route(current_user=current_user(), route_id=route_id, changes=json_body()),
                  message="Transport route updated successfully")

    @app.route("/api/transport/routes/<int:route_id>", methods=["DELETE"], endpoint="transport_routes_delete")
    @login_required
    def transport_routes_delete(route_id: int):
        service.delete_route(current_user=current_user(), route_id=route_id)
        return ok(message="Transport route deleted successfully")

    @app.route("/api/transport/routes/<int:route_id>/efficiency", methods=["GET"],
               endpoint="transport_routes_efficiency")
    @login_required
    def transport_routes_efficiency(route_id: int):
        return ok(service.route_efficiency(current_user=current_user(), route_id=route_id))

    # vehicles
    @app.route("/api/transport/vehicles", methods=["GET"], endpoint="transport_vehicles_list")
    @login_required
    def transport_vehicles_list():
        return ok(service.list_vehicles(current_user=current_user(), params=query_args()))

    @app.route("/api/transport/vehicles", methods=["POST"], endpoint="transport_vehicles_create")
    @login_required
    def transport_vehicles_create():
        return ok(service.create_vehicle(current_user=current_user(), data=json_body()), 201,
                  message="Vehicle created successfully")

    @app.route("/api/transport/vehicles/<int:vehicle_id>", methods=["GET"], endpoint="transport_vehicles_get")
    @login_required
    def transport_vehicles_get(vehicle_id: int):
        return ok(service.get_vehicle(current_user=current_user(), vehicle_id=vehicle_id))

    @app.route("/api/transport/vehicles/<int:vehicle_id>", methods=["PUT"], endpoint="transport_vehicles_update")
    @login_required
    def transport_vehicles_update(vehicle_id: int):
        return ok(service.update_vehicle(current_user=current_user(), vehicle_id=vehicle_id, changes=json_body()),
                  message="Vehicle updated successfully")

    @app.route("/api/transport/vehicles/<int:vehicle_id>", methods=["DELETE"], endpoint="transport_vehicles_delete")
    @login_required
    def transport_vehicles_delete(vehicle_id: int):
        service.delete_vehicle(current_user=current_user(), vehicle_id=vehicle_id)
        return ok(message="Vehicle deleted successfully")

    # drivers
    @app.route("/api/transport/drivers", methods=["GET"], endpoint="transport_drivers_list")
    @login_required
    def transport_drivers_list():
        drivers = service.list_drivers(current_user=current_user(), params=query_args())
        data = []
        for d in drivers:
            row = to_jsonable(d)
            row["performance_grade"] = performance_grade(d.performance_rating) if d.performance_rating is not None else None
            data.append(row)
        return ok(data)

    @app.route("/api/transport/drivers", methods=["POST"], endpoint="transport_drivers_create")
    @login_required
    def transport_drivers_create():
        return ok(service.create_driver(current_user=current_user(), data=json_body()), 201,
                  message="Driver created successfully")

    @app.route("/api/transport/drivers/<int:driver_id>", methods=["GET"], endpoint="transport_drivers_get")
    @login_required
    def transport_drivers_get(driver_id: int):
        return ok(service.get_driver(current_user=current_user(), driver_id=driver_id))

    @app.route("/api/transport/drivers/<int:driver_id>", methods=["PUT"], endpoint="transport_drivers_update")
    @login_required
    def transport_drivers_update(driver_id: int):
        return ok(service.update_driver(current_user=current_user(), driver_id=driver_id, changes=json_body()),
                  message="Driver updated successfully")

    @app.route("/api/transport/drivers/<int:driver_id>", methods=["DELETE"], endpoint="transport_drivers_delete")
    @login_required
    def transport_drivers_delete(driver_id: int):
        service.delete_driver(current_user=current_user(), driver_id=driver_id)
        return ok(message="Driver deleted successfully")

    # student transport
    @app.route("/api/transport/students", methods=["GET"], endpoint="transport_students_list")
    @login_required
    def transport_students_list():
        return ok(service.list_assignments(current_user=current_user(), params=query_args()))

    @app.route("/api/transport/students/assign", methods=["POST"], endpoint="transport_students_assign")
    @login_required
    def transport_students_assign():
        return ok(service.assign_student(current_user=current_user(), data=json_body()), 201,
                  message="Student assigned to transport route successfully")

    @app.route("/api/transport/students/<int:assignment_id>", methods=["DELETE"],
               endpoint="transport_students_unassign")
    @login_required
    def transport_students_unassign(assignment_id: int):
        return ok(service.unassign_student(current_user=current_user(), assignment_id=assignment_id),
                  message="Student removed from transport route")

    @app.route("/api/transport/students/<int:assignment_id>/boarding-pass", methods=["GET"],
               endpoint="transport_boarding_pass")
    @login_required
    def transport_boarding_pass(assignment_id: int):
        png = service.boarding_pass_png(current_user=current_user(), assignment_id=assignment_id)
        return send_file(io.BytesIO(png), mimetype="image/png")

    # attendance
    @app.route("/api/transport/attendance", methods=["GET"], endpoint="transport_attendance_list")
    @login_required
    def transport_attendance_list():
        return ok(service.list_attendance(current_user=current_user(), params=query_args()))

    @app.route("/api/transport/attendance", methods=["POST"], endpoint="transport_attendance_mark")
    @login_required
    def transport_attendance_mark():
        return ok(service.mark_attendance(current_user=current_user(), data=json_body()), 201,
                  message="Transport attendance marked successfully")

    # maintenance
    @app.route("/api/transport/maintenance", methods=["GET"], endpoint="transport_maintenance_list")
    @login_required
    def transport_maintenance_list():
        return ok(service.list_maintenance(current_user=current_user(), params=query_args()))

    @app.route("/api/transport/maintenance", methods=["POST"], endpoint="transport_maintenance_create")
    @login_required
    def transport_maintenance_create():
        return ok(service.create_maintenance(current_user=current_user(), data=json_body()), 201,
                  message="Maintenance record created successfully")

    @app.route("/api/transport/maintenance/<int:maintenance_id>", methods=["PUT"],
               endpoint="transport_maintenance_update")
    @login_required
    def transport_maintenance_update(maintenance_id: int):
        updated = service.update_maintenance(
            current_user=current_user(), maintenance_id=maintenance_id, changes=json_body()
        )
        return ok(updated, message="Maintenance record updated successfully")

    @app.route("/api/transport/stats", methods=["GET"], endpoint="transport_stats")
    @login_required
    def transport_stats():
        return ok(service.get_stats(current_user=current_user()).as_dict())
