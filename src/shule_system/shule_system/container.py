from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .academic.mysql_academic_repository import MySQLAcademicRepository
from .academic.service import AcademicService
from .content.mysql_content_repository import MySQLContentRepository
from .content.service import ContentService
from .content.storage import ContentFileStore
from .core.constants import (
    DEFAULT_CURRENCY,
    HOSTEL_STATS_FRESH_SECONDS,
    HOSTEL_STATS_STALE_SECONDS,
    MAX_CONTENT_UPLOAD_MB,
)
from .database.connection import DBConfig, DatabaseConnection
from .examinations.mysql_examination_repository import MySQLExaminationRepository
from .examinations.service import ExaminationService
from .finance.mysql_finance_repository import MySQLFinanceRepository
from .finance.service import FinanceService
from .hostel.mysql_hostel_repository import MySQLHostelRepository
from .hostel.service import HostelService
from .hostel.stats_cache import HostelStatsCache
from .necta.service import NECTAComplianceService
from .students.mysql_student_repository import MySQLStudentRepository
from .students.service import StudentService
from .teachers.mysql_teacher_repository import MySQLTeacherRepository
from .teachers.service import TeacherService
from .transport.mysql_transport_repository import MySQLTransportRepository
from .transport.service import TransportService
from .users.mysql_role_repository import MySQLRoleRepository
from .users.mysql_tenant_repository import MySQLTenantRepository
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService, TenantService, UserService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: Any
    roles_repo: Any
    tenants_repo: Any
    academic_repo: Any
    exams_repo: Any
    finance_repo: Any
    hostel_repo: Any
    content_repo: Any
    teachers_repo: Any
    transport_repo: Any
    students_repo: Any

    auth_service: AuthService
    user_service: UserService
    tenant_service: TenantService
    academic_service: AcademicService
    necta_service: NECTAComplianceService
    examination_service: ExaminationService
    finance_service: FinanceService
    hostel_service: HostelService
    content_service: ContentService
    teacher_service: TeacherService
    transport_service: TransportService
    student_service: StudentService


def wire(
    *,
    conn: Optional[DatabaseConnection],
    users_repo,
    roles_repo,
    tenants_repo,
    academic_repo,
    exams_repo,
    finance_repo,
    hostel_repo,
    content_repo,
    teachers_repo,
    transport_repo,
    students_repo=None,
    upload_folder: str = "uploads",
    max_upload_mb: int = MAX_CONTENT_UPLOAD_MB,
    default_currency: str = DEFAULT_CURRENCY,
    stats_cache: Optional[HostelStatsCache] = None,
) -> Container:
    """Build every service on top of the given repositories.

    Tests call this with in-memory repositories; `build_container` passes
    the MySQL ones.
    """
    return Container(
        conn=conn,
        users_repo=users_repo,
        roles_repo=roles_repo,
        tenants_repo=tenants_repo,
        academic_repo=academic_repo,
        exams_repo=exams_repo,
        finance_repo=finance_repo,
        hostel_repo=hostel_repo,
        content_repo=content_repo,
        teachers_repo=teachers_repo,
        transport_repo=transport_repo,
        students_repo=students_repo,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo, roles_repo),
        tenant_service=TenantService(tenants_repo, users_repo),
        academic_service=AcademicService(academic_repo, users_repo),
        necta_service=NECTAComplianceService(academic_repo),
        examination_service=ExaminationService(exams_repo, academic_repo, users_repo),
        finance_service=FinanceService(finance_repo, users_repo, default_currency=default_currency),
        hostel_service=HostelService(hostel_repo, users_repo, stats_cache),
        content_service=ContentService(
            content_repo, ContentFileStore(upload_folder, max_size_mb=max_upload_mb)
        ),
        teacher_service=TeacherService(teachers_repo, users_repo, academic_repo),
        transport_service=TransportService(transport_repo, users_repo),
        student_service=StudentService(students_repo, users_repo, academic_repo),
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    stats_cache = HostelStatsCache(
        fresh_seconds=float(getattr(settings, "HOSTEL_STATS_FRESH_SECONDS", HOSTEL_STATS_FRESH_SECONDS)),
        stale_seconds=float(getattr(settings, "HOSTEL_STATS_STALE_SECONDS", HOSTEL_STATS_STALE_SECONDS)),
    )

    return wire(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        roles_repo=MySQLRoleRepository(conn),
        tenants_repo=MySQLTenantRepository(conn),
        academic_repo=MySQLAcademicRepository(conn),
        exams_repo=MySQLExaminationRepository(conn),
        finance_repo=MySQLFinanceRepository(conn),
        hostel_repo=MySQLHostelRepository(conn),
        content_repo=MySQLContentRepository(conn),
        teachers_repo=MySQLTeacherRepository(conn),
        transport_repo=MySQLTransportRepository(conn),
        students_repo=MySQLStudentRepository(conn),
        upload_folder=str(getattr(settings, "UPLOAD_FOLDER", "uploads")),
        max_upload_mb=int(getattr(settings, "MAX_CONTENT_UPLOAD_MB", MAX_CONTENT_UPLOAD_MB)),
        default_currency=str(getattr(settings, "DEFAULT_CURRENCY", DEFAULT_CURRENCY)),
        stats_cache=stats_cache,
    )
