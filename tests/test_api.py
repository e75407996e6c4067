"""API endpoint tests."""

from unittest.mock import patch

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from sachi import __version__

ANN = {"name": "Ann", "email": "ann@x.com", "password": "secret1"}


def storage_failure():
    return OperationalError("statement", {}, Exception("disk I/O error"))


def login(client, email=ANN["email"], password=ANN["password"]):
    return client.post("/api/login", json={"email": email, "password": password})


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_info(client):
    response = client.get("/api/info")
    assert response.status_code == 200
    assert response.json()["name"] == "Sachi"
    assert response.json()["mode"] == "development"


def test_assets(client):
    response = client.get("/api/assets")
    assert response.status_code == 200
    assert "/profile.html" in response.json()["pages"]


class TestRegister:
    """Tests for POST /api/register."""

    def test_register_user(self, client):
        response = client.post("/api/register", json={**ANN, "company": "Acme"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "User created successfully"}

    def test_register_stores_hash_not_password(self, client):
        client.post("/api/register", json=ANN)

        user = client.app.state.store.get_user_by_email(ANN["email"])
        assert user.password_hash != ANN["password"]

    def test_register_duplicate_email(self, client, registered_user):
        response = client.post("/api/register", json={**ANN, "name": "Other Ann"})
        assert response.status_code == 409
        assert response.json()["error"] is True
        assert "already exists" in response.json()["message"]

    def test_duplicate_caught_by_constraint(self, client, registered_user):
        """A registration racing past the pre-check still gets 409."""
        store = client.app.state.store
        with patch.object(store, "get_user_by_email", return_value=None):
            response = client.post("/api/register", json=ANN)
        assert response.status_code == 409

    def test_register_missing_fields(self, client):
        for missing in ("name", "email", "password"):
            body = {key: value for key, value in ANN.items() if key != missing}
            response = client.post("/api/register", json=body)
            assert response.status_code == 400
            assert response.json()["message"] == "Name, email, and password are required"

    def test_register_blank_field(self, client):
        response = client.post("/api/register", json={**ANN, "name": ""})
        assert response.status_code == 400

    def test_register_password_over_72_bytes(self, client):
        response = client.post("/api/register", json={**ANN, "password": "é" * 37})
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at most 72 bytes long"
        assert client.app.state.store.get_user_by_email(ANN["email"]) is None

    def test_register_malformed_body(self, client):
        response = client.post(
            "/api/register", content="not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": True, "message": "Invalid request body"}

    def test_register_storage_error(self, client):
        store = client.app.state.store
        with patch.object(store, "create_user", side_effect=storage_failure()):
            response = client.post("/api/register", json=ANN)
        assert response.status_code == 500
        assert response.json()["message"] == "Failed to create user"
        assert "disk" not in response.json()["message"]


class TestLogin:
    """Tests for POST /api/login."""

    def test_login(self, client, registered_user):
        response = login(client)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"]["name"] == "Ann"
        assert data["user"]["email"] == "ann@x.com"
        assert data["user"]["company"] == ""
        assert isinstance(data["user"]["id"], int)
        assert "password_hash" not in data["user"]

    def test_login_sets_site_wide_cookie(self, client, registered_user):
        response = login(client)

        cookies = [c.lower() for c in response.headers.get_list("set-cookie")]
        issued = [c for c in cookies if "path=/;" in c or c.endswith("path=/")]
        assert len(issued) == 1
        assert "httponly" in issued[0]
        assert "samesite=lax" in issued[0]
        assert "max-age=86400" in issued[0]

    def test_login_clears_legacy_api_cookie(self, client, registered_user):
        response = login(client)

        cookies = [c.lower() for c in response.headers.get_list("set-cookie")]
        legacy = [c for c in cookies if "path=/api" in c]
        assert len(legacy) == 1
        assert "max-age=0" in legacy[0]

    def test_login_wrong_password(self, client, registered_user):
        response = login(client, password="wrong")
        assert response.status_code == 401
        assert "session_token" not in client.cookies

    def test_login_unknown_email_looks_like_wrong_password(self, client, registered_user):
        unknown = login(client, email="nobody@x.com")
        wrong = login(client, password="wrong")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_login_with_overlong_password(self, client, registered_user):
        response = login(client, password=ANN["password"] + "x" * 80)
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post("/api/login", json={"email": "ann@x.com"})
        assert response.status_code == 400

    def test_login_twice_issues_new_session(self, client, registered_user):
        first = login(client).cookies.get("session_token")
        second = login(client).cookies.get("session_token")
        assert first and second and first != second


class TestSession:
    """Tests for /api/me and /api/logout."""

    def test_get_current_user(self, auth_client):
        response = auth_client.get("/api/me")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["user"]["name"] == "Ann"
        assert response.json()["user"]["email"] == "ann@x.com"

    def test_me_without_cookie(self, client):
        response = client.get("/api/me")
        assert response.status_code == 401
        assert response.json() == {"error": True, "message": "Authentication required"}

    def test_me_with_unknown_token(self, client):
        client.cookies.set("session_token", "forged")
        response = client.get("/api/me")
        assert response.status_code == 401

    def test_expired_session_matches_unknown_token(self, auth_client):
        with auth_client.app.state.store.engine.begin() as conn:
            conn.execute(text("UPDATE sessions SET expires_at = '2000-01-01 00:00:00.000000'"))

        expired = auth_client.get("/api/me")
        auth_client.cookies.set("session_token", "forged")
        unknown = auth_client.get("/api/me")

        assert expired.status_code == unknown.status_code == 401
        assert expired.json() == unknown.json()

    def test_logout(self, auth_client):
        token = auth_client.cookies.get("session_token")

        response = auth_client.post("/api/logout")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert auth_client.app.state.store.validate_session(token) is None
        assert auth_client.get("/api/me").status_code == 401

    def test_logout_clears_both_cookie_paths(self, auth_client):
        response = auth_client.post("/api/logout")
        cookies = [c.lower() for c in response.headers.get_list("set-cookie")]
        assert any("path=/api" in c and "max-age=0" in c for c in cookies)
        assert any("path=/;" in c and "max-age=0" in c for c in cookies)

    def test_logout_clears_cookie_when_storage_fails(self, auth_client):
        store = auth_client.app.state.store
        with patch.object(store, "delete_session", side_effect=storage_failure()):
            response = auth_client.post("/api/logout")

        assert response.status_code == 200
        assert response.json()["success"] is True
        cookies = [c.lower() for c in response.headers.get_list("set-cookie")]
        assert any("path=/;" in c and "max-age=0" in c for c in cookies)
        assert "session_token" not in auth_client.cookies

    def test_logout_without_session(self, client):
        response = client.post("/api/logout")
        assert response.status_code == 200


class TestProfile:
    """Tests for PUT /api/profile."""

    def test_update_profile(self, auth_client):
        response = auth_client.put(
            "/api/profile", json={"name": "Ann B", "email": "annb@x.com", "company": "Acme"}
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        user = auth_client.get("/api/me").json()["user"]
        assert user == {**user, "name": "Ann B", "email": "annb@x.com", "company": "Acme"}

    def test_update_keeping_own_email(self, auth_client):
        response = auth_client.put("/api/profile", json={"name": "Annie", "email": "ann@x.com"})
        assert response.status_code == 200
        assert auth_client.get("/api/me").json()["user"]["name"] == "Annie"

    def test_update_to_other_users_email(self, auth_client):
        auth_client.post(
            "/api/register", json={"name": "Bob", "email": "bob@x.com", "password": "secret1"}
        )
        response = auth_client.put("/api/profile", json={"name": "Ann", "email": "bob@x.com"})
        assert response.status_code == 409
        assert auth_client.get("/api/me").json()["user"]["email"] == "ann@x.com"

    def test_update_missing_fields(self, auth_client):
        response = auth_client.put("/api/profile", json={"name": "", "email": "ann@x.com"})
        assert response.status_code == 400

    def test_update_requires_session(self, client):
        response = client.put("/api/profile", json={"name": "Ann", "email": "ann@x.com"})
        assert response.status_code == 401

    def test_update_storage_error(self, auth_client):
        store = auth_client.app.state.store
        with patch.object(store, "update_user", side_effect=storage_failure()):
            response = auth_client.put("/api/profile", json={"name": "Ann", "email": "ann@x.com"})
        assert response.status_code == 500
        assert response.json()["message"] == "Failed to update profile"


class TestChangePassword:
    """Tests for POST /api/change-password."""

    def change(self, client, current, new):
        return client.post(
            "/api/change-password", json={"currentPassword": current, "newPassword": new}
        )

    def test_change_password(self, auth_client):
        response = self.change(auth_client, "secret1", "newsecret")
        assert response.status_code == 200

        # The session used for the change is still good
        assert auth_client.get("/api/me").status_code == 200
        assert login(auth_client, password="secret1").status_code == 401
        assert login(auth_client, password="newsecret").status_code == 200

    def test_wrong_current_password(self, auth_client):
        response = self.change(auth_client, "wrong", "newsecret")
        assert response.status_code == 401
        assert response.json()["message"] == "Current password is incorrect"

    def test_new_password_too_short(self, auth_client):
        response = self.change(auth_client, "secret1", "12345")
        assert response.status_code == 400
        assert "at least 6" in response.json()["message"]

    def test_new_password_over_72_bytes(self, auth_client):
        response = self.change(auth_client, "secret1", "a" * 73)
        assert response.status_code == 400
        assert login(auth_client, password="secret1").status_code == 200

    def test_missing_fields(self, auth_client):
        response = auth_client.post("/api/change-password", json={"currentPassword": "secret1"})
        assert response.status_code == 400

    def test_requires_session(self, client):
        response = self.change(client, "secret1", "newsecret")
        assert response.status_code == 401

    def test_storage_error(self, auth_client):
        store = auth_client.app.state.store
        with patch.object(store, "update_password", side_effect=storage_failure()):
            response = self.change(auth_client, "secret1", "newsecret")
        assert response.status_code == 500


def test_register_login_profile_flow(client):
    """Register, fail and succeed at login, then read the profile."""
    assert client.post("/api/register", json=ANN).status_code == 200
    assert login(client, password="wrong").status_code == 401

    response = login(client)
    assert response.status_code == 200
    token = client.cookies.get("session_token")
    assert token

    client.cookies.clear()
    assert client.get("/api/me").status_code == 401

    client.cookies.set("session_token", token)
    user = client.get("/api/me").json()["user"]
    assert user["name"] == "Ann"
    assert user["email"] == "ann@x.com"


def test_debug_level_logs_requests(tmp_path, caplog):
    from fastapi.testclient import TestClient

    from sachi.config import Settings
    from sachi.main import create_app

    app = create_app(Settings(data_dir=tmp_path, log_level="debug"))
    with caplog.at_level("DEBUG", logger="sachi.main"), TestClient(app) as client:
        client.get("/api/health")

    assert "GET /api/health -> 200" in caplog.text


def test_storage_error_during_session_check(auth_client):
    store = auth_client.app.state.store
    with patch.object(store, "validate_session", side_effect=storage_failure()):
        response = auth_client.get("/api/me")
    assert response.status_code == 500
    assert response.json() == {"error": True, "message": "Internal server error"}


def test_legacy_database_end_to_end(tmp_path):
    """An older database with a username column and no company column."""
    import sqlite3

    from fastapi.testclient import TestClient

    from sachi.config import Settings
    from sachi.main import create_app

    settings = Settings(data_dir=tmp_path, db_file="legacy.db")
    conn = sqlite3.connect(settings.database_path)
    conn.execute(
        "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, username TEXT NOT NULL, "
        "email TEXT NOT NULL UNIQUE, password_hash TEXT NOT NULL, "
        "created_at DATETIME DEFAULT CURRENT_TIMESTAMP, updated_at DATETIME DEFAULT CURRENT_TIMESTAMP)"
    )
    conn.commit()
    conn.close()

    with TestClient(create_app(settings)) as client:
        assert client.post("/api/register", json={**ANN, "company": "Acme"}).status_code == 200
        assert login(client).status_code == 200
        assert client.put("/api/profile", json={"name": "Ann B", "email": "ann@x.com"}).status_code == 200

        user = client.get("/api/me").json()["user"]
        assert user["name"] == "Ann B"
        assert user["company"] == ""
