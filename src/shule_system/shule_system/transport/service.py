from __future__ import annotations

import io
import json
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import qrcode

from ..common.datetime_utils import coerce_date, coerce_optional_date, now_local
from ..common.validators import (
    optional_text,
    parse_decimal,
    parse_enum,
    parse_int,
    require_non_empty,
    require_non_negative,
    round_half_up,
)
from ..core.enums import (
    DriverStatus,
    MaintenanceStatus,
    RoleName,
    RouteStatus,
    TransportAssignmentStatus,
    TransportAttendanceStatus,
    TripType,
    VehicleStatus,
)
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, require_user, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.permissions import RolePermissionChecker
from ..users.repository import UserRepository
from .model import (
    Driver,
    RouteEfficiency,
    StudentTransport,
    TransportAttendance,
    TransportRoute,
    TransportStats,
    Vehicle,
    VehicleMaintenance,
)
from .repository import TransportQuery, TransportRepository

logger = logging.getLogger(__name__)

DOCUMENT_EXPIRY_DAYS = 30

_GRADE_BANDS = ((9, "A+"), (8, "A"), (7, "B+"), (6, "B"), (5, "C+"), (4, "C"), (3, "D+"), (2, "D"))


def performance_grade(score: Any) -> str:
    value = float(score or 0)
    for floor, grade in _GRADE_BANDS:
        if value >= floor:
            return grade
    return "F"


def calculate_route_efficiency(route: TransportRoute) -> RouteEfficiency:
    """Occupancy %, fare per seated student and average speed, all rounded."""
    occupancy = route.current_occupancy / route.capacity * 100 if route.capacity > 0 else 0
    fare = route.fare_amount or Decimal("0")
    per_student = fare / route.current_occupancy if route.current_occupancy > 0 and fare else 0
    speed = (
        float(route.distance_km) * 60 / route.estimated_duration_min
        if route.distance_km and route.estimated_duration_min
        else 0
    )
    return RouteEfficiency(
        route_id=route.route_id,
        occupancy_rate=int(round_half_up(occupancy)),
        cost_per_student=int(round_half_up(per_student)),
        average_speed_kmh=int(round_half_up(speed)),
    )


def _positive_int(value: Any, label: str) -> int:
    number = parse_int(value, label)
    if number <= 0:
        raise ValidationError(f"{label} must be greater than 0")
    return number


def _time_of_day(value: Any, label: str) -> Optional[str]:
    text = optional_text(value)
    if text is None:
        return None
    parts = text.split(":")
    if len(parts) < 2 or not all(p.isdigit() for p in parts[:2]):
        raise ValidationError(f"{label} must look like HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise ValidationError(f"{label} must look like HH:MM")
    return f"{hours:02d}:{minutes:02d}"


class TransportService:
    """Routes, vehicles, drivers and the students riding them.

    Reads are open to members of the tenant; every write needs
    `transport:manage`.
    """

    def __init__(self, transport: TransportRepository, users: UserRepository, *, clock: Callable = now_local):
        self._transport = transport
        self._users = users
        self._clock = clock

    def _writer(self, current_user: User, tenant_id: Any = None) -> int:
        require_permission(current_user, "transport", "manage")
        return resolve_tenant(current_user, tenant_id)

    @staticmethod
    def _query(current_user: User, params: Optional[Dict[str, Any]], **extra) -> TransportQuery:
        params = params or {}
        return TransportQuery(
            tenant_id=tenant_scope(current_user),
            status=optional_text(params.get("status")),
            search=optional_text(params.get("search")),
            **extra,
        )

    @staticmethod
    def _is_student(current_user: User) -> bool:
        return RolePermissionChecker(current_user).has_role(RoleName.STUDENT)

    # ---- routes ----------------------------------------------------------

    def list_routes(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[TransportRoute]:
        require_user(current_user)
        return self._transport.list_routes(self._query(current_user, params))

    def get_route(self, *, current_user: User, route_id: Any) -> TransportRoute:
        require_user(current_user)
        route = self._transport.get_route(parse_int(route_id, "route_id"))
        if not route:
            raise NotFoundError("Transport route not found")
        ensure_same_tenant(current_user, route.tenant_id)
        return route

    def _vehicle_in(self, tenant_id: int, vehicle_id: Any) -> Vehicle:
        vehicle = self._transport.get_vehicle(parse_int(vehicle_id, "vehicle_id"))
        if not vehicle or vehicle.tenant_id != tenant_id:
            raise NotFoundError("Vehicle not found")
        return vehicle

    def _driver_in(self, tenant_id: int, driver_id: Any) -> Driver:
        driver = self._transport.get_driver(parse_int(driver_id, "driver_id"))
        if not driver or driver.tenant_id != tenant_id:
            raise NotFoundError("Driver not found")
        return driver

    def _route_fields(self, tenant_id: int, data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, label in (("route_name", "Route name"), ("start_location", "Start location"),
                           ("end_location", "End location")):
            if not partial or key in data:
                fields[key] = require_non_empty(data.get(key), label)
        if not partial or "capacity" in data:
            fields["capacity"] = _positive_int(data.get("capacity"), "Capacity")
        for key in ("route_code", "description"):
            if key in data:
                fields[key] = optional_text(data[key])
        if data.get("distance_km") not in (None, ""):
            fields["distance_km"] = require_non_negative(data["distance_km"], "Distance")
        if data.get("estimated_duration_min") not in (None, ""):
            fields["estimated_duration_min"] = _positive_int(data["estimated_duration_min"], "Estimated duration")
        if data.get("fare_amount") not in (None, ""):
            fields["fare_amount"] = require_non_negative(data["fare_amount"], "Fare amount")
        for key, label in (("start_time", "Start time"), ("end_time", "End time")):
            if key in data:
                fields[key] = _time_of_day(data[key], label)
        if "vehicle_id" in data:
            fields["vehicle_id"] = self._vehicle_in(tenant_id, data["vehicle_id"]).vehicle_id if data["vehicle_id"] else None
        if "driver_id" in data:
            fields["driver_id"] = self._driver_in(tenant_id, data["driver_id"]).driver_id if data["driver_id"] else None
        if data.get("status"):
            fields["status"] = parse_enum(RouteStatus, data["status"], "Status").value
        return fields

    def _check_route_unique(self, tenant_id: int, fields: Dict[str, Any], route_id: Optional[int] = None) -> None:
        if fields.get("route_name"):
            other = self._transport.find_route(tenant_id, route_name=fields["route_name"])
            if other and other.route_id != route_id:
                raise ConflictError("A route with this name already exists")
        if fields.get("route_code"):
            other = self._transport.find_route(tenant_id, route_code=fields["route_code"])
            if other and other.route_id != route_id:
                raise ConflictError("A route with this code already exists")

    def _check_vehicle_capacity(self, tenant_id: int, vehicle_id: Optional[int], capacity: int) -> None:
        if vehicle_id is None:
            return
        vehicle = self._vehicle_in(tenant_id, vehicle_id)
        if capacity > vehicle.capacity:
            raise ValidationError(
                f"Route capacity ({capacity}) exceeds vehicle {vehicle.vehicle_number} capacity ({vehicle.capacity})"
            )

    def create_route(self, *, current_user: User, data: Dict[str, Any]) -> TransportRoute:
        tenant = self._writer(current_user, data.get("tenant_id"))
        fields = self._route_fields(tenant, data, partial=False)
        self._check_route_unique(tenant, fields)
        self._check_vehicle_capacity(tenant, fields.get("vehicle_id"), fields["capacity"])
        fields.setdefault("status", RouteStatus.ACTIVE.value)
        route_id = self._transport.create_route(tenant_id=tenant, fields=fields)
        logger.info("Transport route %s created in tenant %s", route_id, tenant)
        return self._transport.get_route(route_id)

    def update_route(self, *, current_user: User, route_id: Any, changes: Dict[str, Any]) -> TransportRoute:
        route = self.get_route(current_user=current_user, route_id=route_id)
        self._writer(current_user, route.tenant_id)
        fields = self._route_fields(route.tenant_id, changes, partial=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._check_route_unique(route.tenant_id, fields, route.route_id)
        capacity = fields.get("capacity", route.capacity)
        if capacity < route.current_occupancy:
            raise ValidationError(f"Capacity cannot be lower than current occupancy ({route.current_occupancy})")
        self._check_vehicle_capacity(route.tenant_id, fields.get("vehicle_id", route.vehicle_id), capacity)
        self._transport.update_route(route.route_id, fields=fields)
        return self._transport.get_route(route.route_id)

    def delete_route(self, *, current_user: User, route_id: Any) -> None:
        route = self.get_route(current_user=current_user, route_id=route_id)
        self._writer(current_user, route.tenant_id)
        if self._transport.count_active_assignments(route.route_id):
            raise ValidationError("Cannot delete route with active students. Please reassign students first.")
        self._transport.delete_route(route.route_id)
        logger.info("Transport route %s deleted", route.route_id)

    def route_efficiency(self, *, current_user: User, route_id: Any) -> RouteEfficiency:
        return calculate_route_efficiency(self.get_route(current_user=current_user, route_id=route_id))

    # ---- vehicles --------------------------------------------------------

    def list_vehicles(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[Vehicle]:
        require_user(current_user)
        return self._transport.list_vehicles(self._query(current_user, params))

    def get_vehicle(self, *, current_user: User, vehicle_id: Any) -> Vehicle:
        require_user(current_user)
        vehicle = self._transport.get_vehicle(parse_int(vehicle_id, "vehicle_id"))
        if not vehicle:
            raise NotFoundError("Vehicle not found")
        ensure_same_tenant(current_user, vehicle.tenant_id)
        return vehicle

    @staticmethod
    def _vehicle_fields(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, label in (("vehicle_number", "Vehicle number"), ("make", "Make"), ("model", "Model")):
            if not partial or key in data:
                fields[key] = require_non_empty(data.get(key), label)
        if not partial or "capacity" in data:
            fields["capacity"] = _positive_int(data.get("capacity"), "Capacity")
        for key in ("fuel_type", "registration_number", "notes"):
            if key in data:
                fields[key] = optional_text(data[key])
        if data.get("year") not in (None, ""):
            fields["year"] = _positive_int(data["year"], "Year")
        if data.get("current_mileage") not in (None, ""):
            mileage = parse_int(data["current_mileage"], "Current mileage")
            if mileage < 0:
                raise ValidationError("Current mileage cannot be negative")
            fields["current_mileage"] = mileage
        for key in ("insurance_expiry", "road_tax_expiry"):
            if key in data:
                fields[key] = coerce_optional_date(data[key], key)
        if data.get("status"):
            fields["status"] = parse_enum(VehicleStatus, data["status"], "Status").value
        return fields

    def _check_vehicle_unique(self, tenant_id: int, fields: Dict[str, Any], vehicle_id: Optional[int] = None) -> None:
        if fields.get("vehicle_number"):
            other = self._transport.find_vehicle(tenant_id, vehicle_number=fields["vehicle_number"])
            if other and other.vehicle_id != vehicle_id:
                raise ConflictError("A vehicle with this number already exists")
        if fields.get("registration_number"):
            other = self._transport.find_vehicle(tenant_id, registration_number=fields["registration_number"])
            if other and other.vehicle_id != vehicle_id:
                raise ConflictError("A vehicle with this registration number already exists")

    def create_vehicle(self, *, current_user: User, data: Dict[str, Any]) -> Vehicle:
        tenant = self._writer(current_user, data.get("tenant_id"))
        fields = self._vehicle_fields(data, partial=False)
        self._check_vehicle_unique(tenant, fields)
        fields.setdefault("status", VehicleStatus.ACTIVE.value)
        vehicle_id = self._transport.create_vehicle(tenant_id=tenant, fields=fields)
        logger.info("Vehicle %s created in tenant %s", vehicle_id, tenant)
        return self._transport.get_vehicle(vehicle_id)

    def update_vehicle(self, *, current_user: User, vehicle_id: Any, changes: Dict[str, Any]) -> Vehicle:
        vehicle = self.get_vehicle(current_user=current_user, vehicle_id=vehicle_id)
        self._writer(current_user, vehicle.tenant_id)
        fields = self._vehicle_fields(changes, partial=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._check_vehicle_unique(vehicle.tenant_id, fields, vehicle.vehicle_id)
        if "capacity" in fields:
            routes = self._transport.list_routes(TransportQuery(tenant_id=vehicle.tenant_id, vehicle_id=vehicle.vehicle_id))
            too_big = [r.route_name for r in routes if r.capacity > fields["capacity"]]
            if too_big:
                raise ValidationError("Vehicle capacity is below the capacity of its routes", details=too_big)
        self._transport.update_vehicle(vehicle.vehicle_id, fields=fields)
        return self._transport.get_vehicle(vehicle.vehicle_id)

    def delete_vehicle(self, *, current_user: User, vehicle_id: Any) -> None:
        vehicle = self.get_vehicle(current_user=current_user, vehicle_id=vehicle_id)
        self._writer(current_user, vehicle.tenant_id)
        if self._transport.count_routes_using(vehicle_id=vehicle.vehicle_id):
            raise ValidationError("Cannot delete vehicle with active route assignments. Please remove them first.")
        self._transport.delete_vehicle(vehicle.vehicle_id)
        logger.info("Vehicle %s deleted", vehicle.vehicle_id)

    # ---- drivers ---------------------------------------------------------

    def list_drivers(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[Driver]:
        require_user(current_user)
        return self._transport.list_drivers(self._query(current_user, params))

    def get_driver(self, *, current_user: User, driver_id: Any) -> Driver:
        require_user(current_user)
        driver = self._transport.get_driver(parse_int(driver_id, "driver_id"))
        if not driver:
            raise NotFoundError("Driver not found")
        ensure_same_tenant(current_user, driver.tenant_id)
        return driver

    @staticmethod
    def _driver_fields(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, label in (("first_name", "First name"), ("last_name", "Last name"),
                           ("license_number", "License number")):
            if not partial or key in data:
                fields[key] = require_non_empty(data.get(key), label)
        for key in ("driver_code", "phone", "email", "license_type"):
            if key in data:
                fields[key] = optional_text(data[key])
        for key in ("license_expiry", "joining_date"):
            if key in data:
                fields[key] = coerce_optional_date(data[key], key)
        if data.get("experience_years") not in (None, ""):
            years = parse_int(data["experience_years"], "Experience")
            if years < 0:
                raise ValidationError("Experience cannot be negative")
            fields["experience_years"] = years
        if data.get("performance_rating") not in (None, ""):
            rating = parse_decimal(data["performance_rating"], "Performance rating")
            if not Decimal("0") <= rating <= Decimal("10"):
                raise ValidationError("Performance rating must be between 0 and 10")
            fields["performance_rating"] = rating
        if data.get("status"):
            fields["status"] = parse_enum(DriverStatus, data["status"], "Status").value
        return fields

    def _check_driver_unique(self, tenant_id: int, fields: Dict[str, Any], driver_id: Optional[int] = None) -> None:
        if fields.get("license_number"):
            other = self._transport.find_driver(tenant_id, license_number=fields["license_number"])
            if other and other.driver_id != driver_id:
                raise ConflictError("A driver with this license number already exists")
        if fields.get("driver_code"):
            other = self._transport.find_driver(tenant_id, driver_code=fields["driver_code"])
            if other and other.driver_id != driver_id:
                raise ConflictError("A driver with this code already exists")

    def create_driver(self, *, current_user: User, data: Dict[str, Any]) -> Driver:
        tenant = self._writer(current_user, data.get("tenant_id"))
        fields = self._driver_fields(data, partial=False)
        self._check_driver_unique(tenant, fields)
        fields.setdefault("status", DriverStatus.ACTIVE.value)
        driver_id = self._transport.create_driver(tenant_id=tenant, fields=fields)
        logger.info("Driver %s created in tenant %s", driver_id, tenant)
        return self._transport.get_driver(driver_id)

    def update_driver(self, *, current_user: User, driver_id: Any, changes: Dict[str, Any]) -> Driver:
        driver = self.get_driver(current_user=current_user, driver_id=driver_id)
        self._writer(current_user, driver.tenant_id)
        fields = self._driver_fields(changes, partial=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._check_driver_unique(driver.tenant_id, fields, driver.driver_id)
        self._transport.update_driver(driver.driver_id, fields=fields)
        return self._transport.get_driver(driver.driver_id)

    def delete_driver(self, *, current_user: User, driver_id: Any) -> None:
        driver = self.get_driver(current_user=current_user, driver_id=driver_id)
        self._writer(current_user, driver.tenant_id)
        if self._transport.count_routes_using(driver_id=driver.driver_id):
            raise ValidationError("Cannot delete driver with active route assignments. Please remove them first.")
        self._transport.delete_driver(driver.driver_id)
        logger.info("Driver %s deleted", driver.driver_id)

    # ---- students --------------------------------------------------------

    def list_assignments(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[StudentTransport]:
        require_user(current_user)
        params = params or {}
        route_id = parse_int(params["route_id"], "route_id") if params.get("route_id") else None
        if self._is_student(current_user):
            student_id: Optional[int] = current_user.user_id
        else:
            student_id = parse_int(params["student_id"], "student_id") if params.get("student_id") else None
        return self._transport.list_assignments(
            self._query(current_user, params, route_id=route_id, student_id=student_id)
        )

    def _load_assignment(self, current_user: User, assignment_id: Any) -> StudentTransport:
        require_user(current_user)
        assignment = self._transport.get_assignment(parse_int(assignment_id, "assignment_id"))
        if not assignment:
            raise NotFoundError("Transport assignment not found")
        ensure_same_tenant(current_user, assignment.tenant_id)
        if self._is_student(current_user) and assignment.student_id != current_user.user_id:
            raise AuthorizationError("You can only view your own transport assignment")
        return assignment

    def _require_student(self, tenant_id: int, student_id: Any) -> int:
        sid = parse_int(student_id, "student_id")
        student = self._users.get_by_id(sid)
        if not student or student.tenant_id != tenant_id or RoleName.STUDENT.value not in student.roles:
            raise NotFoundError("Student not found")
        return sid

    def assign_student(self, *, current_user: User, data: Dict[str, Any]) -> StudentTransport:
        tenant = self._writer(current_user, data.get("tenant_id"))
        if not data.get("student_id") or not data.get("route_id"):
            raise ValidationError("Student, route, pickup point, and dropoff point are required")
        pickup = require_non_empty(data.get("pickup_point"), "Pickup point")
        dropoff = require_non_empty(data.get("dropoff_point"), "Dropoff point")
        student_id = self._require_student(tenant, data["student_id"])

        route = self._transport.get_route(parse_int(data["route_id"], "route_id"))
        if not route or route.tenant_id != tenant:
            raise NotFoundError("Transport route not found")
        if route.status != RouteStatus.ACTIVE:
            raise ValidationError("Route is not active")

        existing = self._transport.find_active_assignment(student_id)
        if existing:
            if existing.route_id == route.route_id:
                raise ConflictError("Student is already assigned to this route")
            raise ConflictError(f"Student already has an active transport assignment on {existing.route_name}")
        if self._transport.count_active_assignments(route.route_id) >= route.capacity:
            raise ConflictError("Route has reached maximum capacity")

        fields = {
            "student_id": student_id,
            "route_id": route.route_id,
            "pickup_point": pickup,
            "dropoff_point": dropoff,
            "pickup_time": _time_of_day(data.get("pickup_time"), "Pickup time"),
            "dropoff_time": _time_of_day(data.get("dropoff_time"), "Dropoff time"),
            "monthly_fee": require_non_negative(data["monthly_fee"], "Monthly fee")
            if data.get("monthly_fee") not in (None, "") else route.fare_amount,
            "seat_number": optional_text(data.get("seat_number")),
            "status": TransportAssignmentStatus.ACTIVE.value,
        }
        assignment_id = self._transport.create_assignment(tenant_id=tenant, fields=fields, created_by=current_user.user_id)
        logger.info("Student %s assigned to route %s", student_id, route.route_id)
        return self._transport.get_assignment(assignment_id)

    def unassign_student(self, *, current_user: User, assignment_id: Any) -> StudentTransport:
        assignment = self._load_assignment(current_user, assignment_id)
        self._writer(current_user, assignment.tenant_id)
        if not self._transport.end_assignment(
            assignment.assignment_id, status=TransportAssignmentStatus.INACTIVE.value
        ):
            raise ValidationError("Assignment is not active")
        logger.info("Student %s removed from route %s", assignment.student_id, assignment.route_id)
        return self._transport.get_assignment(assignment.assignment_id)

    def boarding_pass_png(self, *, current_user: User, assignment_id: Any) -> bytes:
        """QR code PNG the driver scans when the student boards."""
        assignment = self._load_assignment(current_user, assignment_id)
        if assignment.status != TransportAssignmentStatus.ACTIVE:
            raise ValidationError("Assignment is not active")
        payload = json.dumps({
            "assignment_id": assignment.assignment_id,
            "tenant_id": assignment.tenant_id,
            "student_id": assignment.student_id,
            "route_id": assignment.route_id,
            "seat": assignment.seat_number,
        }, sort_keys=True)

        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=2,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    # ---- attendance ------------------------------------------------------

    def list_attendance(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[TransportAttendance]:
        require_user(current_user)
        params = params or {}
        return self._transport.list_attendance(self._query(
            current_user,
            params,
            route_id=parse_int(params["route_id"], "route_id") if params.get("route_id") else None,
            student_id=current_user.user_id if self._is_student(current_user)
            else (parse_int(params["student_id"], "student_id") if params.get("student_id") else None),
            attendance_date=coerce_optional_date(params.get("date"), "date"),
        ))

    def mark_attendance(self, *, current_user: User, data: Dict[str, Any]) -> TransportAttendance:
        tenant = self._writer(current_user, data.get("tenant_id"))
        if not data.get("student_id") or not data.get("route_id") or not data.get("date"):
            raise ValidationError("Student, route, and date are required")
        student_id = parse_int(data["student_id"], "student_id")
        route_id = parse_int(data["route_id"], "route_id")
        day = coerce_date(data["date"], "date")
        trip = parse_enum(TripType, data.get("trip_type") or TripType.PICKUP.value, "Trip type")
        status = parse_enum(TransportAttendanceStatus, data.get("status") or "PRESENT", "Status")

        assignment = self._transport.find_active_assignment(student_id, route_id=route_id)
        if not assignment or assignment.tenant_id != tenant:
            raise ValidationError("Student is not assigned to this route")
        if self._transport.find_attendance(student_id, day, trip.value):
            raise ConflictError("Attendance already marked for this student, date and trip")

        self._transport.create_attendance(
            tenant_id=tenant,
            fields={
                "student_id": student_id,
                "route_id": route_id,
                "attendance_date": day,
                "trip_type": trip.value,
                "status": status.value,
                "notes": optional_text(data.get("notes")),
            },
            recorded_by=current_user.user_id,
        )
        return self._transport.find_attendance(student_id, day, trip.value)

    # ---- maintenance -----------------------------------------------------

    def list_maintenance(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> List[VehicleMaintenance]:
        require_user(current_user)
        params = params or {}
        vehicle_id = parse_int(params["vehicle_id"], "vehicle_id") if params.get("vehicle_id") else None
        return self._transport.list_maintenance(self._query(current_user, params, vehicle_id=vehicle_id))

    def _sync_vehicle(self, vehicle: Vehicle, status: MaintenanceStatus) -> None:
        if status == MaintenanceStatus.IN_PROGRESS and vehicle.status != VehicleStatus.MAINTENANCE:
            self._transport.update_vehicle(vehicle.vehicle_id, fields={"status": VehicleStatus.MAINTENANCE.value})
            logger.info("Vehicle %s moved to MAINTENANCE", vehicle.vehicle_id)
        elif status == MaintenanceStatus.COMPLETED and vehicle.status == VehicleStatus.MAINTENANCE:
            self._transport.update_vehicle(vehicle.vehicle_id, fields={"status": VehicleStatus.ACTIVE.value})
            logger.info("Vehicle %s back to ACTIVE", vehicle.vehicle_id)

    def create_maintenance(self, *, current_user: User, data: Dict[str, Any]) -> VehicleMaintenance:
        tenant = self._writer(current_user, data.get("tenant_id"))
        vehicle = self._vehicle_in(tenant, data.get("vehicle_id"))
        status = parse_enum(MaintenanceStatus, data.get("status") or "SCHEDULED", "Status")
        fields = {
            "vehicle_id": vehicle.vehicle_id,
            "maintenance_type": require_non_empty(data.get("maintenance_type"), "Maintenance type"),
            "description": require_non_empty(data.get("description"), "Description"),
            "scheduled_date": coerce_date(data.get("scheduled_date"), "scheduled_date"),
            "cost": require_non_negative(data["cost"], "Cost") if data.get("cost") not in (None, "") else None,
            "service_provider": optional_text(data.get("service_provider")),
            "status": status.value,
        }
        if status == MaintenanceStatus.COMPLETED:
            fields["completed_date"] = self._clock().date()
        maintenance_id = self._transport.create_maintenance(
            tenant_id=tenant, fields=fields, created_by=current_user.user_id
        )
        self._sync_vehicle(vehicle, status)
        return self._transport.get_maintenance(maintenance_id)

    def update_maintenance(self, *, current_user: User, maintenance_id: Any, changes: Dict[str, Any]) -> VehicleMaintenance:
        require_user(current_user)
        record = self._transport.get_maintenance(parse_int(maintenance_id, "maintenance_id"))
        if not record:
            raise NotFoundError("Maintenance record not found")
        ensure_same_tenant(current_user, record.tenant_id)
        self._writer(current_user, record.tenant_id)

        fields: Dict[str, Any] = {}
        for key, label in (("maintenance_type", "Maintenance type"), ("description", "Description")):
            if key in changes:
                fields[key] = require_non_empty(changes[key], label)
        if "scheduled_date" in changes:
            fields["scheduled_date"] = coerce_date(changes["scheduled_date"], "scheduled_date")
        if changes.get("cost") not in (None, ""):
            fields["cost"] = require_non_negative(changes["cost"], "Cost")
        if "service_provider" in changes:
            fields["service_provider"] = optional_text(changes["service_provider"])
        status = None
        if changes.get("status"):
            status = parse_enum(MaintenanceStatus, changes["status"], "Status")
            fields["status"] = status.value
            if status == MaintenanceStatus.COMPLETED:
                fields["completed_date"] = coerce_optional_date(changes.get("completed_date"), "completed_date") \
                    or self._clock().date()
        if not fields:
            raise ValidationError("No updatable fields were provided")

        self._transport.update_maintenance(record.maintenance_id, fields=fields)
        if status is not None:
            self._sync_vehicle(self._vehicle_in(record.tenant_id, record.vehicle_id), status)
        return self._transport.get_maintenance(record.maintenance_id)

    # ---- stats -----------------------------------------------------------

    def get_stats(self, *, current_user: User) -> TransportStats:
        require_user(current_user)
        horizon = self._clock().date() + timedelta(days=DOCUMENT_EXPIRY_DAYS)
        return self._transport.get_stats(tenant_scope(current_user), expiry_horizon=horizon)
