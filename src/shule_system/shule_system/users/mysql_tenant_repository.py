from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import TenantStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import Tenant
from .tenant_repository import TenantRepository


def _row_to_tenant(r: dict) -> Tenant:
    return Tenant(
        tenant_id=int(r["tenant_id"]),
        name=r["name"],
        subdomain=r["subdomain"],
        email=r.get("email"),
        phone=r.get("phone"),
        address=r.get("address"),
        status=TenantStatus(r["status"]),
        created_at=r.get("created_at"),
    )


class MySQLTenantRepository(TenantRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM tenants WHERE tenant_id=%s", (tenant_id,))
            r = fetchone(cur)
            return _row_to_tenant(r) if r else None

    def get_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM tenants WHERE subdomain=%s", (subdomain,))
            r = fetchone(cur)
            return _row_to_tenant(r) if r else None

    def list_tenants(
        self,
        *,
        search: Optional[str] = None,
        status: Optional[TenantStatus] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[Tenant], int]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if search:
            where.append("(name LIKE %s OR subdomain LIKE %s)")
            params.extend([f"%{search}%", f"%{search}%"])
        if status:
            where.append("status=%s")
            params.append(status.value)
        clause = " AND ".join(where)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM tenants WHERE {clause}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT * FROM tenants WHERE {clause} ORDER BY tenant_id DESC LIMIT %s OFFSET %s",
                tuple(params + [int(limit), int(offset)]),
            )
            return [_row_to_tenant(r) for r in fetchall(cur)], total

    def create_tenant(
        self,
        *,
        name: str,
        subdomain: str,
        email: Optional[str],
        phone: Optional[str],
        address: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO tenants(name, subdomain, email, phone, address, status)
                VALUES(%s,%s,%s,%s,%s,'ACTIVE')
                """,
                (name, subdomain, email, phone, address),
            )
            return int(cur.lastrowid)

    def update_tenant(self, tenant_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update(fields, ["name", "subdomain", "email", "phone", "address"])
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE tenants SET {sql} WHERE tenant_id=%s", tuple(params + [tenant_id]))
            return cur.rowcount > 0

    def set_status(self, tenant_id: int, status: TenantStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tenants SET status=%s WHERE tenant_id=%s", (status.value, tenant_id))
            return cur.rowcount > 0

    def count_users_excluding_role(self, tenant_id: int, role_name: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COUNT(*) AS n FROM users u
                WHERE u.tenant_id=%s AND NOT EXISTS (
                    SELECT 1 FROM user_roles ur JOIN roles r ON r.role_id = ur.role_id
                    WHERE ur.user_id = u.user_id AND r.name=%s
                )
                """,
                (tenant_id, role_name),
            )
            return int(fetchone(cur)["n"])
