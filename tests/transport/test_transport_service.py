from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import pytest

from src.shule_system.shule_system.core.enums import (
    DriverStatus,
    MaintenanceStatus,
    RoleName,
    RouteStatus,
    TransportAssignmentStatus,
    TransportAttendanceStatus,
    TripType,
    VehicleStatus,
)
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.shule_system.shule_system.transport.model import (
    Driver,
    StudentTransport,
    TransportAttendance,
    TransportRoute,
    Vehicle,
    VehicleMaintenance,
)
from src.shule_system.shule_system.transport.service import (
    TransportService,
    calculate_route_efficiency,
    performance_grade,
)

from tests.conftest import make_user

NOW = datetime(2026, 7, 1, 6, 30)


class InMemoryTransport:
    def __init__(self):
        self.routes = {}
        self.vehicles = {}
        self.drivers = {}
        self.assignments = {}
        self.attendance = {}
        self.maintenance = {}

    # routes
    def list_routes(self, query):
        return [r for r in self.routes.values()
                if (query.tenant_id is None or r.tenant_id == query.tenant_id)
                and (query.vehicle_id is None or r.vehicle_id == query.vehicle_id)]

    def get_route(self, route_id):
        return self.routes.get(route_id)

    def find_route(self, tenant_id, *, route_name=None, route_code=None):
        for r in self.routes.values():
            if r.tenant_id == tenant_id and (
                (route_name and r.route_name == route_name) or (route_code and r.route_code == route_code)
            ):
                return r
        return None

    def create_route(self, *, tenant_id, fields):
        route_id = len(self.routes) + 1
        fields = {**fields, "status": RouteStatus(fields["status"])}
        self.routes[route_id] = TransportRoute(route_id=route_id, tenant_id=tenant_id, **fields)
        return route_id

    def update_route(self, route_id, *, fields):
        if "status" in fields:
            fields = {**fields, "status": RouteStatus(fields["status"])}
        self.routes[route_id] = replace(self.routes[route_id], **fields)
        return True

    def delete_route(self, route_id):
        return self.routes.pop(route_id, None) is not None

    # vehicles
    def list_vehicles(self, query):
        return list(self.vehicles.values())

    def get_vehicle(self, vehicle_id):
        return self.vehicles.get(vehicle_id)

    def find_vehicle(self, tenant_id, *, vehicle_number=None, registration_number=None):
        for v in self.vehicles.values():
            if v.tenant_id == tenant_id and (
                (vehicle_number and v.vehicle_number == vehicle_number)
                or (registration_number and v.registration_number == registration_number)
            ):
                return v
        return None

    def create_vehicle(self, *, tenant_id, fields):
        vehicle_id = len(self.vehicles) + 1
        fields = {**fields, "status": VehicleStatus(fields["status"])}
        self.vehicles[vehicle_id] = Vehicle(vehicle_id=vehicle_id, tenant_id=tenant_id, **fields)
        return vehicle_id

    def update_vehicle(self, vehicle_id, *, fields):
        if "status" in fields:
            fields = {**fields, "status": VehicleStatus(fields["status"])}
        self.vehicles[vehicle_id] = replace(self.vehicles[vehicle_id], **fields)
        return True

    def delete_vehicle(self, vehicle_id):
        return self.vehicles.pop(vehicle_id, None) is not None

    # drivers
    def list_drivers(self, query):
        return list(self.drivers.values())

    def get_driver(self, driver_id):
        return self.drivers.get(driver_id)

    def find_driver(self, tenant_id, *, license_number=None, driver_code=None):
        for d in self.drivers.values():
            if d.tenant_id == tenant_id and (
                (license_number and d.license_number == license_number)
                or (driver_code and d.driver_code == driver_code)
            ):
                return d
        return None

    def create_driver(self, *, tenant_id, fields):
        driver_id = len(self.drivers) + 1
        fields = {**fields, "status": DriverStatus(fields["status"])}
        self.drivers[driver_id] = Driver(driver_id=driver_id, tenant_id=tenant_id, **fields)
        return driver_id

    def update_driver(self, driver_id, *, fields):
        self.drivers[driver_id] = replace(self.drivers[driver_id], **fields)
        return True

    def delete_driver(self, driver_id):
        return self.drivers.pop(driver_id, None) is not None

    def count_routes_using(self, *, vehicle_id=None, driver_id=None):
        return sum(1 for r in self.routes.values()
                   if (vehicle_id and r.vehicle_id == vehicle_id) or (driver_id and r.driver_id == driver_id))

    # students
    def list_assignments(self, query):
        return [a for a in self.assignments.values()
                if query.student_id is None or a.student_id == query.student_id]

    def get_assignment(self, assignment_id):
        return self.assignments.get(assignment_id)

    def find_active_assignment(self, student_id, *, route_id=None):
        for a in self.assignments.values():
            if (a.student_id == student_id and a.status == TransportAssignmentStatus.ACTIVE
                    and (route_id is None or a.route_id == route_id)):
                return a
        return None

    def _riders(self, route_id):
        return sum(1 for a in self.assignments.values()
                   if a.route_id == route_id and a.status == TransportAssignmentStatus.ACTIVE)

    def count_active_assignments(self, route_id):
        return self._riders(route_id)

    def _seat(self, route_id, delta):
        route = self.routes[route_id]
        self.routes[route_id] = replace(route, current_occupancy=max(0, route.current_occupancy + delta))

    def create_assignment(self, *, tenant_id, fields, created_by):
        if self._riders(fields["route_id"]) >= self.routes[fields["route_id"]].capacity:
            raise ConflictError("Route has reached maximum capacity")
        assignment_id = len(self.assignments) + 1
        fields = {**fields, "status": TransportAssignmentStatus(fields["status"])}
        self.assignments[assignment_id] = StudentTransport(
            assignment_id=assignment_id, tenant_id=tenant_id,
            route_name=self.routes[fields["route_id"]].route_name, **fields,
        )
        self._seat(fields["route_id"], +1)
        return assignment_id

    def end_assignment(self, assignment_id, *, status):
        assignment = self.assignments[assignment_id]
        if assignment.status != TransportAssignmentStatus.ACTIVE:
            return False
        self.assignments[assignment_id] = replace(assignment, status=TransportAssignmentStatus(status))
        self._seat(assignment.route_id, -1)
        return True

    # attendance
    def list_attendance(self, query):
        return [a for a in self.attendance.values()
                if query.student_id is None or a.student_id == query.student_id]

    def find_attendance(self, student_id, attendance_date, trip_type):
        return self.attendance.get((student_id, attendance_date, trip_type))

    def create_attendance(self, *, tenant_id, fields, recorded_by):
        key = (fields["student_id"], fields["attendance_date"], fields["trip_type"])
        self.attendance[key] = TransportAttendance(
            attendance_id=len(self.attendance) + 1,
            tenant_id=tenant_id,
            student_id=fields["student_id"],
            route_id=fields["route_id"],
            attendance_date=fields["attendance_date"],
            trip_type=TripType(fields["trip_type"]),
            status=TransportAttendanceStatus(fields["status"]),
            notes=fields["notes"],
            recorded_by=recorded_by,
        )
        return self.attendance[key].attendance_id

    # maintenance
    def list_maintenance(self, query):
        return list(self.maintenance.values())

    def get_maintenance(self, maintenance_id):
        return self.maintenance.get(maintenance_id)

    def create_maintenance(self, *, tenant_id, fields, created_by):
        maintenance_id = len(self.maintenance) + 1
        fields = {**fields, "status": MaintenanceStatus(fields["status"])}
        self.maintenance[maintenance_id] = VehicleMaintenance(
            maintenance_id=maintenance_id, tenant_id=tenant_id, created_by=created_by, **fields
        )
        return maintenance_id

    def update_maintenance(self, maintenance_id, *, fields):
        if "status" in fields:
            fields = {**fields, "status": MaintenanceStatus(fields["status"])}
        self.maintenance[maintenance_id] = replace(self.maintenance[maintenance_id], **fields)
        return True


@pytest.fixture
def repo():
    return InMemoryTransport()


@pytest.fixture
def service(repo, users):
    return TransportService(repo, users, clock=lambda: NOW)


@pytest.fixture
def bus(service, tenant_admin):
    return service.create_vehicle(current_user=tenant_admin, data={
        "vehicle_number": "BUS-01", "make": "Toyota", "model": "Coaster", "capacity": 30,
    })


@pytest.fixture
def route(service, tenant_admin, bus):
    return service.create_route(current_user=tenant_admin, data={
        "route_name": "Mbezi - Shule", "start_location": "Mbezi", "end_location": "Shule",
        "capacity": 2, "vehicle_id": bus.vehicle_id, "fare_amount": "30000", "start_time": "6:5",
    })


@pytest.mark.parametrize(
    "score, grade",
    [(9.5, "A+"), (8, "A"), (7.2, "B+"), (5, "C+"), (2, "D"), (1.9, "F"), (None, "F")],
)
def test_performance_grade(score, grade):
    assert performance_grade(score) == grade


def test_route_efficiency():
    route = TransportRoute(
        route_id=1, tenant_id=1, route_name="R", start_location="A", end_location="B", capacity=40,
        current_occupancy=30, fare_amount=Decimal("60000"), distance_km=Decimal("12"), estimated_duration_min=30,
    )
    efficiency = calculate_route_efficiency(route)
    assert (efficiency.occupancy_rate, efficiency.cost_per_student, efficiency.average_speed_kmh) == (75, 2000, 24)


def test_route_efficiency_rounds_halves_up():
    route = TransportRoute(
        route_id=1, tenant_id=1, route_name="R", start_location="A", end_location="B", capacity=8,
        current_occupancy=1, fare_amount=Decimal("2.5"), distance_km=Decimal("2.5"), estimated_duration_min=60,
    )
    efficiency = calculate_route_efficiency(route)
    assert (efficiency.occupancy_rate, efficiency.cost_per_student, efficiency.average_speed_kmh) == (13, 3, 3)


def test_empty_route_efficiency_is_zero():
    route = TransportRoute(route_id=1, tenant_id=1, route_name="R", start_location="A", end_location="B", capacity=10)
    efficiency = calculate_route_efficiency(route)
    assert (efficiency.occupancy_rate, efficiency.cost_per_student, efficiency.average_speed_kmh) == (0, 0, 0)


def test_route_defaults_and_time_format(route):
    assert route.status == RouteStatus.ACTIVE
    assert route.start_time == "06:05"


def test_route_names_are_unique(service, tenant_admin, route):
    with pytest.raises(ConflictError):
        service.create_route(current_user=tenant_admin, data={
            "route_name": route.route_name, "start_location": "A", "end_location": "B", "capacity": 1,
        })


def test_route_capacity_cannot_exceed_vehicle(service, tenant_admin, bus):
    with pytest.raises(ValidationError):
        service.create_route(current_user=tenant_admin, data={
            "route_name": "Kimara", "start_location": "Kimara", "end_location": "Shule",
            "capacity": 31, "vehicle_id": bus.vehicle_id,
        })


def test_bad_time_rejected(service, tenant_admin):
    with pytest.raises(ValidationError):
        service.create_route(current_user=tenant_admin, data={
            "route_name": "Kimara", "start_location": "Kimara", "end_location": "Shule",
            "capacity": 5, "start_time": "25:00",
        })


def test_teachers_cannot_manage_transport(service, teacher, route):
    with pytest.raises(AuthorizationError):
        service.update_route(current_user=teacher, route_id=route.route_id, changes={"capacity": 5})
    assert service.get_route(current_user=teacher, route_id=route.route_id) == route


def test_shrinking_vehicle_below_route(service, tenant_admin, bus, route):
    with pytest.raises(ValidationError) as exc:
        service.update_vehicle(current_user=tenant_admin, vehicle_id=bus.vehicle_id, changes={"capacity": 1})
    assert exc.value.details == ["Mbezi - Shule"]


def test_vehicle_in_use_cannot_be_deleted(service, tenant_admin, bus, route):
    with pytest.raises(ValidationError):
        service.delete_vehicle(current_user=tenant_admin, vehicle_id=bus.vehicle_id)


def test_driver_rating_range(service, tenant_admin):
    data = {"first_name": "Hamisi", "last_name": "Juma", "license_number": "DL-1", "performance_rating": "11"}
    with pytest.raises(ValidationError):
        service.create_driver(current_user=tenant_admin, data=data)
    driver = service.create_driver(current_user=tenant_admin, data={**data, "performance_rating": "8.5"})
    assert driver.performance_rating == Decimal("8.5")
    assert driver.status == DriverStatus.ACTIVE
    with pytest.raises(ConflictError):
        service.create_driver(current_user=tenant_admin, data={**data, "performance_rating": None})


def test_assign_student_fills_route(service, users, tenant_admin, student, route):
    second = users.add(make_user(60, RoleName.STUDENT))
    third = users.add(make_user(61, RoleName.STUDENT))
    base = {"route_id": route.route_id, "pickup_point": "Mbezi Mwisho", "dropoff_point": "Gate"}

    first = service.assign_student(current_user=tenant_admin, data={**base, "student_id": student.user_id})
    assert first.monthly_fee == Decimal("30000")
    service.assign_student(current_user=tenant_admin, data={**base, "student_id": second.user_id})
    assert service.get_route(current_user=tenant_admin, route_id=route.route_id).current_occupancy == 2

    with pytest.raises(ConflictError) as exc:
        service.assign_student(current_user=tenant_admin, data={**base, "student_id": third.user_id})
    assert exc.value.message == "Route has reached maximum capacity"


def test_seat_count_is_rechecked_when_the_assignment_is_written(service, repo, users, tenant_admin, student, route,
                                                               monkeypatch):
    second = users.add(make_user(60, RoleName.STUDENT))
    late = users.add(make_user(61, RoleName.STUDENT))
    base = {"route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B"}
    service.assign_student(current_user=tenant_admin, data={**base, "student_id": student.user_id})
    service.assign_student(current_user=tenant_admin, data={**base, "student_id": second.user_id})

    # a reader that saw the route before it filled up
    monkeypatch.setattr(repo, "count_active_assignments", lambda route_id: 0)
    with pytest.raises(ConflictError):
        service.assign_student(current_user=tenant_admin, data={**base, "student_id": late.user_id})
    assert len(repo.assignments) == 2
    assert repo.routes[route.route_id].current_occupancy == 2


def test_one_active_assignment_per_student(service, tenant_admin, student, route):
    base = {"route_id": route.route_id, "pickup_point": "Mbezi", "dropoff_point": "Gate", "student_id": student.user_id}
    service.assign_student(current_user=tenant_admin, data=base)
    with pytest.raises(ConflictError) as exc:
        service.assign_student(current_user=tenant_admin, data=base)
    assert exc.value.message == "Student is already assigned to this route"


def test_only_students_can_ride(service, tenant_admin, teacher, route):
    with pytest.raises(NotFoundError):
        service.assign_student(current_user=tenant_admin, data={
            "route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B", "student_id": teacher.user_id,
        })


def test_route_with_riders_cannot_be_deleted(service, tenant_admin, student, route):
    service.assign_student(current_user=tenant_admin, data={
        "route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B", "student_id": student.user_id,
    })
    with pytest.raises(ValidationError):
        service.delete_route(current_user=tenant_admin, route_id=route.route_id)


def test_unassign_frees_seat(service, tenant_admin, student, route):
    assignment = service.assign_student(current_user=tenant_admin, data={
        "route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B", "student_id": student.user_id,
    })
    ended = service.unassign_student(current_user=tenant_admin, assignment_id=assignment.assignment_id)
    assert ended.status == TransportAssignmentStatus.INACTIVE
    assert service.get_route(current_user=tenant_admin, route_id=route.route_id).current_occupancy == 0
    with pytest.raises(ValidationError):
        service.unassign_student(current_user=tenant_admin, assignment_id=assignment.assignment_id)


def test_students_see_only_their_assignments(service, users, tenant_admin, student, route):
    other = users.add(make_user(60, RoleName.STUDENT))
    base = {"route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B"}
    service.assign_student(current_user=tenant_admin, data={**base, "student_id": student.user_id})
    theirs = service.assign_student(current_user=tenant_admin, data={**base, "student_id": other.user_id})

    assert [a.student_id for a in service.list_assignments(current_user=student)] == [student.user_id]
    with pytest.raises(AuthorizationError):
        service.boarding_pass_png(current_user=student, assignment_id=theirs.assignment_id)


def test_boarding_pass_is_png(service, tenant_admin, student, route):
    assignment = service.assign_student(current_user=tenant_admin, data={
        "route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B",
        "student_id": student.user_id, "seat_number": "4B",
    })
    png = service.boarding_pass_png(current_user=student, assignment_id=assignment.assignment_id)
    assert png.startswith(b"\x89PNG")


def test_attendance_once_per_trip(service, repo, tenant_admin, student, route):
    service.assign_student(current_user=tenant_admin, data={
        "route_id": route.route_id, "pickup_point": "A", "dropoff_point": "B", "student_id": student.user_id,
    })
    mark = {"student_id": student.user_id, "route_id": route.route_id, "date": "2026-07-01"}
    record = service.mark_attendance(current_user=tenant_admin, data=mark)
    assert record.trip_type == TripType.PICKUP
    assert record.status == TransportAttendanceStatus.PRESENT

    with pytest.raises(ConflictError):
        service.mark_attendance(current_user=tenant_admin, data=mark)
    drop = service.mark_attendance(current_user=tenant_admin, data={**mark, "trip_type": "DROP", "status": "LATE"})
    assert drop.status == TransportAttendanceStatus.LATE
    assert len(repo.attendance) == 2


def test_attendance_needs_assignment(service, tenant_admin, student, route):
    with pytest.raises(ValidationError):
        service.mark_attendance(current_user=tenant_admin, data={
            "student_id": student.user_id, "route_id": route.route_id, "date": "2026-07-01",
        })


def test_maintenance_drives_vehicle_status(service, repo, tenant_admin, bus):
    record = service.create_maintenance(current_user=tenant_admin, data={
        "vehicle_id": bus.vehicle_id, "maintenance_type": "Service", "description": "Oil change",
        "scheduled_date": "2026-07-03",
    })
    assert repo.vehicles[bus.vehicle_id].status == VehicleStatus.ACTIVE

    service.update_maintenance(current_user=tenant_admin, maintenance_id=record.maintenance_id,
                               changes={"status": "IN_PROGRESS"})
    assert repo.vehicles[bus.vehicle_id].status == VehicleStatus.MAINTENANCE

    done = service.update_maintenance(current_user=tenant_admin, maintenance_id=record.maintenance_id,
                                      changes={"status": "COMPLETED", "cost": "150000"})
    assert done.completed_date == date(2026, 7, 1)
    assert done.cost == Decimal("150000")
    assert repo.vehicles[bus.vehicle_id].status == VehicleStatus.ACTIVE


def test_maintenance_for_other_tenant_vehicle(service, other_tenant_admin, bus):
    with pytest.raises(NotFoundError):
        service.create_maintenance(current_user=other_tenant_admin, data={
            "vehicle_id": bus.vehicle_id, "maintenance_type": "Service", "description": "Tyres",
            "scheduled_date": "2026-07-03",
        })
