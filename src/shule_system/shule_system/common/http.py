"""Small helpers shared by the Flask controllers."""

from __future__ import annotations

import io
from functools import wraps
from typing import Any, Dict, Optional

from flask import g, jsonify, request, send_file

from ..core.exceptions import AuthenticationError
from ..users.access import require_permission
from .exporting import ExportFile
from .paging import Page
from .serialization import to_jsonable


def ok(data: Any = None, status: int = 200, *, message: Optional[str] = None):
    body: Dict[str, Any] = {"success": True, "data": to_jsonable(data)}
    if message:
        body["message"] = message
    return jsonify(body), status


def ok_page(page: Page):
    return jsonify({
        "success": True,
        "data": to_jsonable(page.items),
        "pagination": page.pagination(),
    })


def json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def query_args() -> Dict[str, Any]:
    return {k: v for k, v in request.args.items() if v != ""}


def current_user():
    return getattr(g, "current_user", None)


def send_export(export: ExportFile):
    return send_file(
        io.BytesIO(export.content),
        mimetype=export.mimetype,
        as_attachment=True,
        download_name=export.filename,
    )


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            raise AuthenticationError("Authentication required")
        return view(*args, **kwargs)

    return wrapper


def permission_required(resource: str, action: str):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                raise AuthenticationError("Authentication required")
            require_permission(user, resource, action)
            return view(*args, **kwargs)

        return wrapper

    return decorator
