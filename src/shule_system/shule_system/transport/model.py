from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from ..core.enums import (
    DriverStatus,
    MaintenanceStatus,
    RouteStatus,
    TransportAssignmentStatus,
    TransportAttendanceStatus,
    TripType,
    VehicleStatus,
)


@dataclass(frozen=True)
class TransportRoute:
    route_id: int
    tenant_id: int
    route_name: str
    start_location: str
    end_location: str
    capacity: int
    route_code: Optional[str] = None
    description: Optional[str] = None
    distance_km: Optional[Decimal] = None
    estimated_duration_min: Optional[int] = None
    fare_amount: Optional[Decimal] = None
    current_occupancy: int = 0
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: RouteStatus = RouteStatus.ACTIVE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Vehicle:
    vehicle_id: int
    tenant_id: int
    vehicle_number: str
    make: str
    model: str
    capacity: int
    year: Optional[int] = None
    fuel_type: Optional[str] = None
    registration_number: Optional[str] = None
    current_mileage: int = 0
    insurance_expiry: Optional[date] = None
    road_tax_expiry: Optional[date] = None
    notes: Optional[str] = None
    status: VehicleStatus = VehicleStatus.ACTIVE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Driver:
    driver_id: int
    tenant_id: int
    first_name: str
    last_name: str
    license_number: str
    driver_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    license_type: Optional[str] = None
    license_expiry: Optional[date] = None
    joining_date: Optional[date] = None
    experience_years: int = 0
    performance_rating: Optional[Decimal] = None
    status: DriverStatus = DriverStatus.ACTIVE
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class StudentTransport:
    assignment_id: int
    tenant_id: int
    student_id: int
    route_id: int
    pickup_point: str
    dropoff_point: str
    pickup_time: Optional[str] = None
    dropoff_time: Optional[str] = None
    monthly_fee: Optional[Decimal] = None
    seat_number: Optional[str] = None
    status: TransportAssignmentStatus = TransportAssignmentStatus.ACTIVE
    student_name: Optional[str] = None
    route_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransportAttendance:
    attendance_id: int
    tenant_id: int
    student_id: int
    route_id: int
    attendance_date: date
    trip_type: TripType
    status: TransportAttendanceStatus
    notes: Optional[str] = None
    recorded_by: Optional[int] = None
    student_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class VehicleMaintenance:
    maintenance_id: int
    tenant_id: int
    vehicle_id: int
    maintenance_type: str
    description: str
    scheduled_date: date
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    completed_date: Optional[date] = None
    cost: Optional[Decimal] = None
    service_provider: Optional[str] = None
    vehicle_number: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransportStats:
    total_routes: int = 0
    active_routes: int = 0
    total_vehicles: int = 0
    active_vehicles: int = 0
    total_drivers: int = 0
    active_drivers: int = 0
    total_students: int = 0
    active_students: int = 0
    pending_maintenance: int = 0
    overdue_maintenance: int = 0
    expiring_documents: int = 0

    def as_dict(self) -> Dict[str, Any]:
        def block(total: int, active: int) -> Dict[str, int]:
            return {"total": total, "active": active, "inactive": total - active}

        return {
            "routes": block(self.total_routes, self.active_routes),
            "vehicles": block(self.total_vehicles, self.active_vehicles),
            "drivers": block(self.total_drivers, self.active_drivers),
            "students": block(self.total_students, self.active_students),
            "maintenance": {"pending": self.pending_maintenance, "overdue": self.overdue_maintenance},
            "alerts": {"expiring_soon": self.expiring_documents},
        }


@dataclass(frozen=True)
class RouteEfficiency:
    route_id: int
    occupancy_rate: int
    cost_per_student: int
    average_speed_kmh: int
