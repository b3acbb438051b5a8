from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from .model import (
    Driver,
    StudentTransport,
    TransportAttendance,
    TransportRoute,
    TransportStats,
    Vehicle,
    VehicleMaintenance,
)


@dataclass(frozen=True)
class TransportQuery:
    tenant_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None
    route_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    student_id: Optional[int] = None
    attendance_date: Optional[date] = None


class TransportRepository(Protocol):
    # routes
    def list_routes(self, query: TransportQuery) -> List[TransportRoute]:
        raise NotImplementedError

    def get_route(self, route_id: int) -> Optional[TransportRoute]:
        raise NotImplementedError

    def find_route(self, tenant_id: int, *, route_name: Optional[str] = None,
                   route_code: Optional[str] = None) -> Optional[TransportRoute]:
        raise NotImplementedError

    def create_route(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_route(self, route_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_route(self, route_id: int) -> bool:
        raise NotImplementedError

    # vehicles
    def list_vehicles(self, query: TransportQuery) -> List[Vehicle]:
        raise NotImplementedError

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        raise NotImplementedError

    def find_vehicle(self, tenant_id: int, *, vehicle_number: Optional[str] = None,
                     registration_number: Optional[str] = None) -> Optional[Vehicle]:
        raise NotImplementedError

    def create_vehicle(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_vehicle(self, vehicle_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_vehicle(self, vehicle_id: int) -> bool:
        raise NotImplementedError

    # drivers
    def list_drivers(self, query: TransportQuery) -> List[Driver]:
        raise NotImplementedError

    def get_driver(self, driver_id: int) -> Optional[Driver]:
        raise NotImplementedError

    def find_driver(self, tenant_id: int, *, license_number: Optional[str] = None,
                    driver_code: Optional[str] = None) -> Optional[Driver]:
        raise NotImplementedError

    def create_driver(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_driver(self, driver_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_driver(self, driver_id: int) -> bool:
        raise NotImplementedError

    def count_routes_using(self, *, vehicle_id: Optional[int] = None, driver_id: Optional[int] = None) -> int:
        """Routes not INACTIVE that reference the vehicle or driver."""
        raise NotImplementedError

    # student assignments
    def list_assignments(self, query: TransportQuery) -> List[StudentTransport]:
        raise NotImplementedError

    def get_assignment(self, assignment_id: int) -> Optional[StudentTransport]:
        raise NotImplementedError

    def find_active_assignment(self, student_id: int, *, route_id: Optional[int] = None) -> Optional[StudentTransport]:
        raise NotImplementedError

    def count_active_assignments(self, route_id: int) -> int:
        raise NotImplementedError

    def create_assignment(self, *, tenant_id: int, fields: Dict[str, Any], created_by: int) -> int:
        """Insert the assignment and take a seat on its route in one transaction.

        The route row stays locked while its active assignments are counted;
        raises ConflictError when the route is already full.
        """
        raise NotImplementedError

    def end_assignment(self, assignment_id: int, *, status: str) -> bool:
        """Move an ACTIVE assignment to `status` and free its seat; False if it was not active."""
        raise NotImplementedError

    # attendance
    def list_attendance(self, query: TransportQuery) -> List[TransportAttendance]:
        raise NotImplementedError

    def find_attendance(self, student_id: int, attendance_date: date, trip_type: str) -> Optional[TransportAttendance]:
        raise NotImplementedError

    def create_attendance(self, *, tenant_id: int, fields: Dict[str, Any], recorded_by: int) -> int:
        raise NotImplementedError

    # maintenance
    def list_maintenance(self, query: TransportQuery) -> List[VehicleMaintenance]:
        raise NotImplementedError

    def get_maintenance(self, maintenance_id: int) -> Optional[VehicleMaintenance]:
        raise NotImplementedError

    def create_maintenance(self, *, tenant_id: int, fields: Dict[str, Any], created_by: int) -> int:
        raise NotImplementedError

    def update_maintenance(self, maintenance_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def get_stats(self, tenant_id: Optional[int], *, expiry_horizon: date) -> TransportStats:
        raise NotImplementedError
