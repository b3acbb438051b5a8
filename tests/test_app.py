import pytest

from src.shule_system.shule_system.container import wire
from src.shule_system.shule_system.main import create_app


@pytest.fixture
def client(monkeypatch, users, tmp_path):
    monkeypatch.setenv("APP_ENV", "testing")
    container = wire(
        conn=None,
        users_repo=users,
        roles_repo=None,
        tenants_repo=None,
        academic_repo=None,
        exams_repo=None,
        finance_repo=None,
        hostel_repo=None,
        content_repo=None,
        teachers_repo=None,
        transport_repo=None,
        upload_folder=str(tmp_path),
    )
    app = create_app(container=container)
    return app.test_client()


def _login(client, user):
    return client.post("/api/auth/login", json={"email": user.email, "password": "secret123"})


def test_profile_needs_login(client):
    resp = client.get("/api/auth/profile")
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "error": "Authentication required"}


def test_bad_password(client, teacher):
    resp = client.post("/api/auth/login", json={"email": teacher.email, "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid email or password"


def test_login_then_profile(client, teacher):
    resp = _login(client, teacher)
    assert resp.status_code == 200
    assert "password_hash" not in resp.get_json()["data"]

    profile = client.get("/api/auth/profile").get_json()["data"]
    assert profile["email"] == teacher.email
    assert profile["capabilities"]["manage_users"] is False
    assert profile["capabilities"]["view_academic"] is True


def test_logout_clears_session(client, teacher):
    _login(client, teacher)
    client.post("/api/auth/logout")
    assert client.get("/api/auth/profile").status_code == 401


def test_tenant_admin_lists_own_tenant(client, tenant_admin):
    _login(client, tenant_admin)
    body = client.get("/api/users").get_json()
    assert body["pagination"]["total"] == 3
    assert {u["tenant_id"] for u in body["data"]} == {1}


def test_student_cannot_create_users(client, student):
    _login(client, student)
    resp = client.post("/api/users", json={
        "email": "new@shule.test", "password": "secret123", "first_name": "New", "last_name": "User",
        "roles": ["Student"],
    })
    assert resp.status_code == 403
    assert resp.get_json()["success"] is False


def test_unknown_route_is_json(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_student_routes_are_registered(client, student):
    assert client.get("/api/students").status_code == 401
    _login(client, student)
    resp = client.get("/api/students")
    assert resp.status_code == 403
    assert resp.get_json()["success"] is False
