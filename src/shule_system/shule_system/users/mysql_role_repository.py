from __future__ import annotations

from typing import List, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Role
from .repository import RoleRepository


class MySQLRoleRepository(RoleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _permissions(cur, role_id: int) -> tuple:
        cur.execute(
            """
            SELECT p.name FROM role_permissions rp
            JOIN permissions p ON p.permission_id = rp.permission_id
            WHERE rp.role_id=%s ORDER BY p.name
            """,
            (role_id,),
        )
        return tuple(r["name"] for r in fetchall(cur))

    def list_roles(self, *, tenant_id: Optional[int]) -> List[Role]:
        with db_cursor(self._conn_factory) as (_, cur):
            if tenant_id is None:
                cur.execute("SELECT role_id, tenant_id, name, description FROM roles ORDER BY role_id")
            else:
                cur.execute(
                    "SELECT role_id, tenant_id, name, description FROM roles "
                    "WHERE tenant_id IS NULL OR tenant_id=%s ORDER BY role_id",
                    (tenant_id,),
                )
            rows = fetchall(cur)
            return [
                Role(
                    role_id=int(r["role_id"]),
                    tenant_id=r.get("tenant_id"),
                    name=r["name"],
                    description=r.get("description"),
                    permissions=self._permissions(cur, int(r["role_id"])),
                )
                for r in rows
            ]

    def get_by_name(self, name: str, *, tenant_id: Optional[int]) -> Optional[Role]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT role_id, tenant_id, name, description FROM roles
                WHERE name=%s AND (tenant_id IS NULL OR tenant_id=%s)
                ORDER BY tenant_id IS NULL
                LIMIT 1
                """,
                (name, tenant_id),
            )
            r = fetchone(cur)
            if not r:
                return None
            return Role(
                role_id=int(r["role_id"]),
                tenant_id=r.get("tenant_id"),
                name=r["name"],
                description=r.get("description"),
                permissions=self._permissions(cur, int(r["role_id"])),
            )

    def create_role(self, *, tenant_id: Optional[int], name: str, description: Optional[str], permissions: Sequence[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO roles(tenant_id, name, description) VALUES(%s,%s,%s)",
                (tenant_id, name, description),
            )
            role_id = int(cur.lastrowid)
            for perm in permissions:
                resource, _, action = perm.partition(":")
                cur.execute(
                    "INSERT IGNORE INTO permissions(resource, action, name) VALUES(%s,%s,%s)",
                    (resource, action, perm),
                )
                cur.execute(
                    """
                    INSERT INTO role_permissions(role_id, permission_id)
                    SELECT %s, permission_id FROM permissions WHERE name=%s
                    """,
                    (role_id, perm),
                )
            return role_id
