"""
HTTP tests for /api/v1/auth and the root-level endpoints.
"""
import pytest

from ems.models.users import Provider, Role
from ems.services.google_oauth import GoogleProfile

pytestmark = pytest.mark.unit

API = "/api/v1/auth"


def _register(client, **extra):
    payload = {"username": "bob", "email": "bob@example.com", "password": "Secret123!"}
    payload.update(extra)
    return client.post(f"{API}/register", json=payload)


class TestRegister:
    def test_creates_user_and_sets_cookie(self, client, user_store):
        response = _register(client)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["user"]["username"] == "bob"
        assert body["user"]["role"] == "user"
        assert "hashed_password" not in body["user"]
        assert response.cookies.get("token") == body["token"]
        set_cookie = response.headers["set-cookie"]
        assert "HttpOnly" in set_cookie
        assert "Max-Age=86400" in set_cookie
        assert len(user_store.users) == 1

    def test_admin_code(self, client):
        response = _register(client, adminCode="letmein")
        assert response.json()["user"]["role"] == "admin"

    def test_duplicate(self, client):
        _register(client)
        response = _register(client, username="Bob", email="other@example.com")
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "User already exists"}

    @pytest.mark.parametrize(
        "override",
        [{"password": "123"}, {"username": "ab"}, {"username": "x" * 21}, {"email": "not-an-email"}],
    )
    def test_validation(self, client, override):
        response = _register(client, **override)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"]


class TestLogin:
    def test_success(self, client, make_user):
        make_user("carol")
        response = client.post(f"{API}/login", json={"email": "CAROL@example.com", "password": "Secret123!"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["user"]["email"] == "carol@example.com"
        assert response.cookies.get("token") == body["token"]

    def test_failures_look_the_same(self, client, make_user):
        make_user("carol")
        unknown = client.post(f"{API}/login", json={"email": "nobody@example.com", "password": "Secret123!"})
        wrong = client.post(f"{API}/login", json={"email": "carol@example.com", "password": "nope"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"success": False, "message": "Invalid credentials"}


class TestAuthentication:
    def test_no_token(self, client):
        response = client.get(f"{API}/profile")
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Token required"}

    def test_invalid_token(self, client):
        response = client.get(f"{API}/profile", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_cookie(self, client, make_user, tokens):
        user = make_user("dave")
        client.cookies.set("token", tokens.issue(user))
        response = client.get(f"{API}/profile")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Welcome user",
            "user": {"id": user.id, "role": "user"},
        }

    def test_header_wins_over_cookie(self, client, make_user, tokens, auth_headers):
        cookie_user = make_user("dave")
        header_user = make_user("erin", role=Role.ADMIN)
        client.cookies.set("token", tokens.issue(cookie_user))
        response = client.get(f"{API}/profile", headers=auth_headers(header_user))
        assert response.json()["user"]["id"] == header_user.id

    def test_role_is_read_from_store(self, client, make_user, auth_headers):
        user = make_user("frank")
        headers = auth_headers(user)
        user.role = Role.HR
        assert client.get(f"{API}/profile", headers=headers).status_code == 403

        user.role = Role.ADMIN
        assert client.get(f"{API}/users", headers=headers).status_code == 200

    def test_deleted_user(self, client, make_user, auth_headers, user_store):
        user = make_user("gina")
        headers = auth_headers(user)
        del user_store.users[user.id]
        response = client.get(f"{API}/profile", headers=headers)
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    @pytest.mark.parametrize("role", [Role.HR, Role.MANAGER])
    def test_profile_is_admin_or_user_only(self, client, make_user, auth_headers, role):
        response = client.get(f"{API}/profile", headers=auth_headers(make_user("hank", role=role)))
        assert response.status_code == 403
        assert response.json()["message"] == "Insufficient permissions"


class TestUsers:
    def test_admin_lists_users(self, client, make_user, auth_headers):
        admin = make_user("root", role=Role.ADMIN)
        make_user("ivy")
        make_user("jack")
        response = client.get(f"{API}/users", params={"limit": 2, "sort": "username"}, headers=auth_headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert [u["username"] for u in body["data"]] == ["ivy", "jack"]
        assert body["pagination"] == {"currentPage": 1, "totalPages": 2, "totalItems": 3, "itemsPerPage": 2}
        assert all("hashed_password" not in u for u in body["data"])

    def test_plain_user_forbidden(self, client, make_user, auth_headers):
        response = client.get(f"{API}/users", headers=auth_headers(make_user("kim")))
        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Admin access required"}

    def test_is_admin_flag_alone_is_not_enough(self, client, make_user, auth_headers):
        user = make_user("lee", is_admin=True)
        assert client.get(f"{API}/users", headers=auth_headers(user)).status_code == 403

    def test_unknown_sort_field(self, client, make_user, auth_headers):
        admin = make_user("root", role=Role.ADMIN)
        response = client.get(f"{API}/users", params={"sort": "hashed_password"}, headers=auth_headers(admin))
        assert response.status_code == 400

    def test_limit_is_capped(self, client, make_user, auth_headers):
        admin = make_user("root", role=Role.ADMIN)
        assert client.get(f"{API}/users", params={"limit": 101}, headers=auth_headers(admin)).status_code == 400


class TestLogout:
    def test_clears_cookie(self, client, make_user, auth_headers, user_store):
        user = make_user("mia")
        response = client.post(f"{API}/logout", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully"}
        assert "Max-Age=0" in response.headers["set-cookie"]
        assert user_store.cleared == [user.id]

    def test_requires_authentication(self, client):
        assert client.post(f"{API}/logout").status_code == 401


class TestGoogle:
    def test_login_redirects_to_consent(self, client):
        response = client.get(f"{API}/google", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"].startswith("https://accounts.google.com/")

    def test_callback_signs_in(self, client, user_store, tokens):
        response = client.get(f"{API}/google/callback", params={"code": "abc"}, follow_redirects=False)
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("http://localhost:5173/?token=")
        token = response.cookies.get("token")
        assert location.endswith(token)

        (user,) = user_store.users.values()
        assert user.provider == Provider.GOOGLE
        assert user.email == "jane.doe@gmail.com"
        assert tokens.verify(token).id == user.id

    def test_callback_is_idempotent(self, client, user_store):
        client.get(f"{API}/google/callback", params={"code": "abc"}, follow_redirects=False)
        client.get(f"{API}/google/callback", params={"code": "def"}, follow_redirects=False)
        assert len(user_store.users) == 1

    @pytest.mark.parametrize("params", [{"error": "access_denied"}, {}])
    def test_callback_aborted(self, client, params):
        response = client.get(f"{API}/google/callback", params=params, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "http://localhost:5173/login"

    def test_provider_failure(self, client, google_client, user_store):
        google_client.fail = True
        response = client.get(f"{API}/google/callback", params={"code": "abc"}, follow_redirects=False)
        assert response.headers["location"] == "http://localhost:5173/login"
        assert not user_store.users

    def test_profile_without_email(self, client, google_client):
        google_client.profile = GoogleProfile(id="google-1", email=None, display_name="No Mail")
        response = client.get(f"{API}/google/callback", params={"code": "abc"}, follow_redirects=False)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid Google profile data"

    def test_root_callback_passthrough(self, client):
        response = client.get("/auth/google/callback", params={"code": "abc", "state": "s"}, follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/api/v1/auth/google/callback?code=abc&state=s"


class TestHealth:
    def test_auth_health(self, client):
        body = client.get(f"{API}/health").json()
        assert body["status"] == "OK"
        assert body["service"] == "Auth Service"
        assert body["timestamp"]

    def test_app_health_and_root(self, client):
        assert client.get("/health").json()["status"] == "OK"
        assert client.get("/").json()["version"] == "1.0.0"

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found"}
