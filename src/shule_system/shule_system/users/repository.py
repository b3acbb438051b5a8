from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .model import Role, User


class UserRepository(Protocol):
    """User persistence interface.

    Services depend on this protocol, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def list_users(
        self,
        *,
        tenant_id: Optional[int],
        search: Optional[str] = None,
        role: Optional[str] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[User], int]:
        raise NotImplementedError

    def create_user(
        self,
        *,
        tenant_id: Optional[int],
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        phone: Optional[str],
        role_names: Sequence[str],
    ) -> int:
        raise NotImplementedError

    def update_user(self, user_id: int, *, fields: Dict[str, Any], role_names: Optional[Sequence[str]] = None) -> bool:
        raise NotImplementedError

    def delete_by_id(self, user_id: int) -> bool:
        raise NotImplementedError

    def get_stats(self, *, tenant_id: Optional[int]) -> dict:
        """Return {"total", "active", "by_role": {role_name: count}}."""
        raise NotImplementedError


class RoleRepository(Protocol):
    def list_roles(self, *, tenant_id: Optional[int]) -> List[Role]:
        raise NotImplementedError

    def get_by_name(self, name: str, *, tenant_id: Optional[int]) -> Optional[Role]:
        raise NotImplementedError

    def create_role(self, *, tenant_id: Optional[int], name: str, description: Optional[str], permissions: Sequence[str]) -> int:
        raise NotImplementedError
