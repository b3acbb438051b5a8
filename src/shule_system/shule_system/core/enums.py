from __future__ import annotations

from enum import Enum


class RoleName(str, Enum):
    """Role names used for authorization (stored verbatim in the roles table)."""

    SUPER_ADMIN = "Super Admin"
    TENANT_ADMIN = "Tenant Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"
    PARENT = "Parent"
    STAFF = "Staff"


class TenantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class RecordStatus(str, Enum):
    """Lifecycle of academic records (subjects, courses, classes)."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class SubjectLevel(str, Enum):
    PRIMARY = "PRIMARY"
    O_LEVEL = "O_LEVEL"
    A_LEVEL = "A_LEVEL"
    UNIVERSITY = "UNIVERSITY"


class SubjectType(str, Enum):
    CORE = "CORE"
    OPTIONAL = "OPTIONAL"
    COMBINATION = "COMBINATION"


class CheckStatus(str, Enum):
    """Outcome of one NECTA compliance check."""

    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"


class CheckType(str, Enum):
    SUBJECT_LEVEL = "SUBJECT_LEVEL"
    SUBJECT_TYPE = "SUBJECT_TYPE"
    COURSE_STRUCTURE = "COURSE_STRUCTURE"
    GRADING_SYSTEM = "GRADING_SYSTEM"
    DIVISION_CALCULATION = "DIVISION_CALCULATION"


class ExaminationStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class FeeType(str, Enum):
    TUITION = "TUITION"
    ADMISSION = "ADMISSION"
    EXAMINATION = "EXAMINATION"
    HOSTEL = "HOSTEL"
    TRANSPORT = "TRANSPORT"
    LIBRARY = "LIBRARY"
    UNIFORM = "UNIFORM"
    OTHER = "OTHER"


class FeeFrequency(str, Enum):
    ONE_TIME = "ONE_TIME"
    TERM_WISE = "TERM_WISE"
    ANNUALLY = "ANNUALLY"
    MONTHLY = "MONTHLY"


class FeeAssignmentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    MOBILE_MONEY = "MOBILE_MONEY"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class ExpenseCategory(str, Enum):
    SALARIES = "SALARIES"
    UTILITIES = "UTILITIES"
    SUPPLIES = "SUPPLIES"
    MAINTENANCE = "MAINTENANCE"
    TRANSPORT = "TRANSPORT"
    FOOD = "FOOD"
    OTHER = "OTHER"


class HostelStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"
    CLOSED = "CLOSED"


class RoomType(str, Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    QUAD = "QUAD"
    DORMITORY = "DORMITORY"
    SUITE = "SUITE"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    RESERVED = "RESERVED"
    OUT_OF_ORDER = "OUT_OF_ORDER"


class HostelAssignmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    TRANSFERRED = "TRANSFERRED"


class MaintenanceType(str, Enum):
    ROUTINE = "ROUTINE"
    PREVENTIVE = "PREVENTIVE"
    CORRECTIVE = "CORRECTIVE"
    EMERGENCY = "EMERGENCY"
    INSPECTION = "INSPECTION"
    REPAIR = "REPAIR"


class MaintenancePriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    OVERDUE = "OVERDUE"


class HostelReportType(str, Enum):
    OCCUPANCY = "OCCUPANCY"
    FINANCIAL = "FINANCIAL"
    MAINTENANCE = "MAINTENANCE"
    STUDENT_LIST = "STUDENT_LIST"
    ROOM_AVAILABILITY = "ROOM_AVAILABILITY"
    FEE_COLLECTION = "FEE_COLLECTION"
    CUSTOM = "CUSTOM"


class ReportFormat(str, Enum):
    PDF = "PDF"
    EXCEL = "EXCEL"
    CSV = "CSV"
    JSON = "JSON"


class ContentType(str, Enum):
    DOCUMENT = "document"
    VIDEO = "video"
    PRESENTATION = "presentation"
    INTERACTIVE = "interactive"
    RESOURCE = "resource"


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentAssignmentType(str, Enum):
    STUDENT = "student"
    CLASS = "class"
    GRADE = "grade"


class ContentAssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    VIEWED = "viewed"
    COMPLETED = "completed"


class UsageAction(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"
    SHARE = "share"
    COMMENT = "comment"


class ClassRole(str, Enum):
    """How a teacher is attached to a class."""

    CLASS_TEACHER = "CLASS_TEACHER"
    SUBJECT_TEACHER = "SUBJECT_TEACHER"


class RouteStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class VehicleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"
    RETIRED = "RETIRED"


class DriverStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ON_LEAVE = "ON_LEAVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class TransportAssignmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class TripType(str, Enum):
    PICKUP = "PICKUP"
    DROP = "DROP"


class TransportAttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class EnrollmentType(str, Enum):
    """What a student enrollment attaches to."""

    COURSE = "COURSE"
    SUBJECT = "SUBJECT"
    CLASS = "CLASS"
