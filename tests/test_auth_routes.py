import jwt

from gradelab.models import SystemLog, User
from gradelab.models.user import UserRole

from conftest import PASSWORD

REGISTER = {
    "username": "ayse",
    "email": "Ayse@Example.com",
    "password": "Secret123",
    "confirmPassword": "Secret123",
}


def test_register_creates_teacher_and_returns_token(client, app):
    rv = client.post("/api/auth/register", json=REGISTER)

    assert rv.status_code == 201
    js = rv.get_json()
    assert js["success"] is True
    assert js["data"]["user"]["email"] == "ayse@example.com"
    assert js["data"]["user"]["role"] == "teacher"
    assert "password_hash" not in js["data"]["user"]

    claims = jwt.decode(js["data"]["token"], app.config["JWT_SECRET"], algorithms=["HS256"])
    assert claims["role"] == "teacher"
    assert claims["userId"] == js["data"]["user"]["id"]
    assert User.query.filter_by(email="ayse@example.com").one().password_hash != "Secret123"
    assert SystemLog.query.filter_by(action="register").count() == 1


def test_register_validation(client):
    cases = [
        dict(REGISTER, username="  "),
        dict(REGISTER, email="not-an-email"),
        dict(REGISTER, confirmPassword="Other123"),
        dict(REGISTER, password="short", confirmPassword="short"),
        dict(REGISTER, password="alllowercase1", confirmPassword="alllowercase1"),
    ]
    for i, body in enumerate(cases):
        rv = client.post("/api/auth/register", json=body,
                         environ_base={"REMOTE_ADDR": f"10.0.0.{i}"})
        assert rv.status_code == 400, body
        assert rv.get_json()["success"] is False
    assert User.query.count() == 0


def test_register_duplicate_email(client, make_user):
    make_user(email="ayse@example.com")

    rv = client.post("/api/auth/register", json=REGISTER)

    assert rv.status_code == 409


def test_register_is_rate_limited(client):
    peer = {"REMOTE_ADDR": "203.0.113.9"}
    for _ in range(3):
        client.post("/api/auth/register", json=dict(REGISTER, email="bad"), environ_base=peer)

    rv = client.post("/api/auth/register", json=REGISTER, environ_base=peer)

    assert rv.status_code == 429
    assert int(rv.headers["Retry-After"]) > 0
    assert User.query.count() == 0


def test_login_ok(client, teacher):
    rv = client.post("/api/auth/login", json={"email": teacher.email, "password": PASSWORD})

    assert rv.status_code == 200
    js = rv.get_json()
    assert js["data"]["user"]["id"] == teacher.id
    assert js["data"]["token"]
    assert SystemLog.query.filter_by(action="login", user_id=teacher.id).count() == 1


def test_login_wrong_password(client, teacher):
    rv = client.post("/api/auth/login", json={"email": teacher.email, "password": "Wrong1234"})
    assert rv.status_code == 401
    assert rv.get_json()["success"] is False


def test_login_inactive_user(client, make_user):
    user = make_user(is_active=False)
    rv = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert rv.status_code == 401


def test_login_missing_fields(client):
    rv = client.post("/api/auth/login", json={"email": "a@b.co"})
    assert rv.status_code == 400


def test_sixth_login_rejected_before_password_check(client, teacher, monkeypatch):
    from gradelab.routes import auth_routes

    calls = []
    real_verify = auth_routes.verify_password

    def spy(password, password_hash):
        calls.append(password)
        return real_verify(password, password_hash)

    monkeypatch.setattr(auth_routes, "verify_password", spy)
    peer = {"REMOTE_ADDR": "198.51.100.7"}

    for _ in range(5):
        rv = client.post("/api/auth/login", json={"email": teacher.email, "password": "Wrong1234"},
                         environ_base=peer)
        assert rv.status_code == 401
    assert len(calls) == 5

    rv = client.post("/api/auth/login", json={"email": teacher.email, "password": PASSWORD},
                     environ_base=peer)

    assert rv.status_code == 429
    assert len(calls) == 5

    # other clients are unaffected
    rv = client.post("/api/auth/login", json={"email": teacher.email, "password": PASSWORD},
                     environ_base={"REMOTE_ADDR": "198.51.100.8"})
    assert rv.status_code == 200


def test_successful_login_resets_limiter(client, teacher, services):
    peer = {"REMOTE_ADDR": "192.0.2.1"}
    for _ in range(4):
        client.post("/api/auth/login", json={"email": teacher.email, "password": "Wrong1234"}, environ_base=peer)

    rv = client.post("/api/auth/login", json={"email": teacher.email, "password": PASSWORD}, environ_base=peer)
    assert rv.status_code == 200

    for _ in range(5):
        rv = client.post("/api/auth/login", json={"email": teacher.email, "password": "Wrong1234"},
                         environ_base=peer)
        assert rv.status_code == 401


def test_protected_route_requires_valid_token(client):
    assert client.get("/api/uploads").status_code == 401
    rv = client.get("/api/uploads", headers={"Authorization": "Bearer not-a-token"})
    assert rv.status_code == 401
    rv = client.get("/api/uploads", headers={"Authorization": "Token abc"})
    assert rv.status_code == 401


def test_expired_token_rejected(client, app, teacher):
    token = jwt.encode({"userId": teacher.id, "role": "teacher", "exp": 1}, app.config["JWT_SECRET"],
                       algorithm="HS256")
    rv = client.get("/api/uploads", headers={"Authorization": f"Bearer {token}"})
    assert rv.status_code == 401


def test_admin_passes_any_role_check(make_user):
    from gradelab.security.auth import has_permission
    assert has_permission(UserRole.ADMIN, [UserRole.TEACHER])
    assert has_permission(UserRole.TEACHER, ["teacher", "admin"])
    assert not has_permission(UserRole.TEACHER, UserRole.ADMIN)


def test_forwarded_header_does_not_dodge_login_limit(client, teacher, monkeypatch):
    from gradelab.routes import auth_routes

    calls = []
    monkeypatch.setattr(auth_routes, "verify_password", lambda pw, h: calls.append(pw) or False)

    statuses = []
    for i in range(20):
        rv = client.post("/api/auth/login", json={"email": teacher.email, "password": "Wrong1234"},
                         headers={"X-Forwarded-For": f"10.0.0.{i}"},
                         environ_base={"REMOTE_ADDR": "203.0.113.9"})
        statuses.append(rv.status_code)

    assert statuses == [401] * 5 + [429] * 15
    assert len(calls) == 5


def _echo_client_app(hops):
    from flask import Flask
    from gradelab import init_proxy_fix
    from gradelab.security.auth import client_identifier

    app = Flask("echo")
    app.config["PROXY_FIX_X_FOR"] = hops
    init_proxy_fix(app)
    app.add_url_rule("/ip", "ip", lambda: client_identifier())
    return app.test_client()


def test_forwarded_for_honoured_only_behind_trusted_proxy():
    headers = {"X-Forwarded-For": "198.51.100.1, 203.0.113.5"}
    peer = {"REMOTE_ADDR": "10.0.0.2"}

    direct = _echo_client_app(0).get("/ip", headers=headers, environ_base=peer)
    proxied = _echo_client_app(1).get("/ip", headers=headers, environ_base=peer)

    assert direct.get_data(as_text=True) == "10.0.0.2"
    # one trusted hop: the address that proxy saw, not the client-supplied first entry
    assert proxied.get_data(as_text=True) == "203.0.113.5"
