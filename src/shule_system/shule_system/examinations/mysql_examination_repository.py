from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from ..core.enums import ExaminationStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, to_decimal
from .model import Examination, ExamResult
from .repository import ExaminationRepository


def _row_to_exam(r: dict) -> Examination:
    return Examination(
        exam_id=int(r["exam_id"]),
        tenant_id=int(r["tenant_id"]),
        exam_name=r["exam_name"],
        subject_id=int(r["subject_id"]),
        level=r["level"],
        exam_date=r["exam_date"],
        max_marks=to_decimal(r["max_marks"]),
        class_id=r.get("class_id"),
        status=ExaminationStatus(r["status"]),
        created_by=r.get("created_by"),
    )


def _row_to_result(r: dict) -> ExamResult:
    return ExamResult(
        result_id=int(r["result_id"]),
        tenant_id=int(r["tenant_id"]),
        exam_id=int(r["exam_id"]),
        student_user_id=int(r["student_user_id"]),
        marks=to_decimal(r["marks"]),
        percentage=to_decimal(r["percentage"]),
        grade=r["grade"],
        points=float(r["points"]),
        remarks=r.get("remarks"),
        recorded_by=r.get("recorded_by"),
        recorded_at=r.get("recorded_at"),
    )


class MySQLExaminationRepository(ExaminationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_exam(self, exam_id: int) -> Optional[Examination]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM examinations WHERE exam_id=%s", (exam_id,))
            r = fetchone(cur)
            return _row_to_exam(r) if r else None

    def list_exams(
        self,
        *,
        tenant_id: Optional[int],
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> List[Examination]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        for col, value in (("tenant_id", tenant_id), ("subject_id", subject_id), ("class_id", class_id)):
            if value is not None:
                where.append(f"{col}=%s")
                params.append(value)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT * FROM examinations WHERE {' AND '.join(where)} ORDER BY exam_date DESC, exam_id DESC",
                tuple(params),
            )
            return [_row_to_exam(r) for r in fetchall(cur)]

    def create_exam(
        self,
        *,
        tenant_id: int,
        exam_name: str,
        subject_id: int,
        class_id: Optional[int],
        level: str,
        exam_date: date,
        max_marks: Decimal,
        created_by: int,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO examinations(tenant_id, exam_name, subject_id, class_id, level, exam_date, max_marks, status, created_by)
                VALUES(%s,%s,%s,%s,%s,%s,%s,'SCHEDULED',%s)
                """,
                (tenant_id, exam_name, subject_id, class_id, level, exam_date, max_marks, created_by),
            )
            return int(cur.lastrowid)

    def set_exam_status(self, exam_id: int, status: ExaminationStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE examinations SET status=%s WHERE exam_id=%s", (status.value, exam_id))
            return cur.rowcount > 0

    def get_result(self, exam_id: int, student_user_id: int) -> Optional[ExamResult]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM exam_results WHERE exam_id=%s AND student_user_id=%s",
                (exam_id, student_user_id),
            )
            r = fetchone(cur)
            return _row_to_result(r) if r else None

    def save_result(
        self,
        *,
        tenant_id: int,
        exam_id: int,
        student_user_id: int,
        marks: Decimal,
        percentage: Decimal,
        grade: str,
        points: float,
        remarks: Optional[str],
        recorded_by: int,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO exam_results(tenant_id, exam_id, student_user_id, marks, percentage, grade, points, remarks, recorded_by)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    marks=VALUES(marks), percentage=VALUES(percentage), grade=VALUES(grade),
                    points=VALUES(points), remarks=VALUES(remarks), recorded_by=VALUES(recorded_by),
                    recorded_at=CURRENT_TIMESTAMP
                """,
                (tenant_id, exam_id, student_user_id, marks, percentage, grade, points, remarks, recorded_by),
            )
            cur.execute(
                "SELECT result_id FROM exam_results WHERE exam_id=%s AND student_user_id=%s",
                (exam_id, student_user_id),
            )
            return int(fetchone(cur)["result_id"])

    def list_results(self, exam_id: int, *, student_user_id: Optional[int] = None) -> List[ExamResult]:
        with db_cursor(self._conn_factory) as (_, cur):
            if student_user_id is None:
                cur.execute("SELECT * FROM exam_results WHERE exam_id=%s ORDER BY percentage DESC", (exam_id,))
            else:
                cur.execute(
                    "SELECT * FROM exam_results WHERE exam_id=%s AND student_user_id=%s",
                    (exam_id, student_user_id),
                )
            return [_row_to_result(r) for r in fetchall(cur)]
