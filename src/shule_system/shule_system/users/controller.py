from __future__ import annotations

from datetime import timedelta

from flask import Flask, session

from ..common.http import current_user, json_body, login_required, ok, ok_page, query_args
from ..container import Container
from ..core.constants import DEFAULT_SESSION_DAYS
from .permissions import RolePermissionChecker


def register(app: Flask, container: Container) -> None:
    auth = container.auth_service
    users = container.user_service
    tenants = container.tenant_service

    # ---- auth ------------------------------------------------------------

    @app.route("/api/auth/login", methods=["POST"], endpoint="auth_login")
    def auth_login():
        body = json_body()
        user = auth.authenticate(body.get("email", ""), body.get("password", ""))

        session.clear()
        session.permanent = bool(body.get("remember_me"))
        app.permanent_session_lifetime = timedelta(days=DEFAULT_SESSION_DAYS)
        session["user_id"] = user.user_id
        session["tenant_id"] = user.tenant_id
        return ok(user, message="Login successful")

    @app.route("/api/auth/logout", methods=["POST"], endpoint="auth_logout")
    def auth_logout():
        session.clear()
        return ok(message="Logged out")

    @app.route("/api/auth/profile", methods=["GET"], endpoint="auth_profile")
    @login_required
    def auth_profile():
        user = current_user()
        checker = RolePermissionChecker(user)
        data = user.public_view()
        data["capabilities"] = {
            "manage_academic": checker.can_manage_academic(),
            "view_academic": checker.can_view_academic(),
            "manage_users": checker.can_manage_users(),
            "view_reports": checker.can_view_reports(),
            "manage_gradebooks": checker.can_manage_gradebooks(),
        }
        return ok(data)

    # ---- users -----------------------------------------------------------

    @app.route("/api/users", methods=["GET"], endpoint="users_list")
    @login_required
    def users_list():
        args = query_args()
        page = users.list_users(
            current_user=current_user(),
            search=args.get("search"),
            role=args.get("role"),
            page=args.get("page"),
            limit=args.get("limit"),
        )
        return ok_page(page)

    @app.route("/api/users/stats", methods=["GET"], endpoint="users_stats")
    @login_required
    def users_stats():
        return ok(users.get_user_stats(current_user=current_user()))

    @app.route("/api/users", methods=["POST"], endpoint="users_create")
    @login_required
    def users_create():
        body = json_body()
        user_id = users.create_user(
            current_user=current_user(),
            email=body.get("email", ""),
            password=body.get("password", ""),
            first_name=body.get("first_name", ""),
            last_name=body.get("last_name", ""),
            role_names=body.get("roles") or [],
            phone=body.get("phone"),
            tenant_id=body.get("tenant_id"),
        )
        return ok(users.get_user(current_user=current_user(), user_id=user_id), 201,
                  message="User created successfully")

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="users_get")
    @login_required
    def users_get(user_id: int):
        return ok(users.get_user(current_user=current_user(), user_id=user_id))

    @app.route("/api/users/<int:user_id>", methods=["PUT"], endpoint="users_update")
    @login_required
    def users_update(user_id: int):
        return ok(users.update_user(current_user=current_user(), user_id=user_id, changes=json_body()),
                  message="User updated successfully")

    @app.route("/api/users/<int:user_id>", methods=["DELETE"], endpoint="users_delete")
    @login_required
    def users_delete(user_id: int):
        users.delete_user(current_user=current_user(), user_id=user_id)
        return ok(message="User deleted successfully")

    # ---- roles -----------------------------------------------------------

    @app.route("/api/roles", methods=["GET"], endpoint="roles_list")
    @login_required
    def roles_list():
        return ok(users.list_roles(current_user=current_user()))

    @app.route("/api/roles", methods=["POST"], endpoint="roles_create")
    @login_required
    def roles_create():
        body = json_body()
        role_id = users.create_role(
            current_user=current_user(),
            name=body.get("name", ""),
            permissions=body.get("permissions") or [],
            description=body.get("description"),
        )
        return ok({"role_id": role_id}, 201, message="Role created successfully")

    # ---- tenants ---------------------------------------------------------

    @app.route("/api/tenants", methods=["GET"], endpoint="tenants_list")
    @login_required
    def tenants_list():
        args = query_args()
        return ok_page(tenants.list_tenants(
            current_user=current_user(),
            search=args.get("search"),
            status=args.get("status"),
            page=args.get("page"),
            limit=args.get("limit"),
        ))

    @app.route("/api/tenants", methods=["POST"], endpoint="tenants_create")
    @login_required
    def tenants_create():
        body = json_body()
        tenant_id = tenants.create_tenant(
            current_user=current_user(),
            name=body.get("name", ""),
            subdomain=body.get("subdomain", ""),
            admin_email=body.get("admin_email", ""),
            admin_password=body.get("admin_password", ""),
            admin_first_name=body.get("admin_first_name", ""),
            admin_last_name=body.get("admin_last_name", ""),
            email=body.get("email"),
            phone=body.get("phone"),
            address=body.get("address"),
        )
        return ok(tenants.get_tenant(current_user=current_user(), tenant_id=tenant_id), 201,
                  message="Tenant created successfully")

    @app.route("/api/tenants/<int:tenant_id>", methods=["GET"], endpoint="tenants_get")
    @login_required
    def tenants_get(tenant_id: int):
        return ok(tenants.get_tenant(current_user=current_user(), tenant_id=tenant_id))

    @app.route("/api/tenants/<int:tenant_id>", methods=["PUT"], endpoint="tenants_update")
    @login_required
    def tenants_update(tenant_id: int):
        return ok(tenants.update_tenant(current_user=current_user(), tenant_id=tenant_id, changes=json_body()),
                  message="Tenant updated successfully")

    @app.route("/api/tenants/<int:tenant_id>/status", methods=["PATCH"], endpoint="tenants_status")
    @login_required
    def tenants_status(tenant_id: int):
        tenants.update_tenant_status(
            current_user=current_user(), tenant_id=tenant_id, status=json_body().get("status", "")
        )
        return ok(message="Tenant status updated")

    @app.route("/api/tenants/<int:tenant_id>", methods=["DELETE"], endpoint="tenants_delete")
    @login_required
    def tenants_delete(tenant_id: int):
        tenants.delete_tenant(current_user=current_user(), tenant_id=tenant_id)
        return ok(message="Tenant deactivated")
