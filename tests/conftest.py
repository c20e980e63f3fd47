"""
Shared fixtures: test settings, in-memory stores and an app wired to them.

The fakes mirror the coroutine API of `UserStore`/`RecordStore` and the
uniqueness rules the MongoDB indexes enforce, so nothing here needs a
running database.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from ems.core.config import Settings
from ems.core.exceptions import Conflict, NotFound
from ems.core.security import TokenService, get_password_hash
from ems.factory import create_app
from ems.models.users import Provider, Role
from ems.services.google_oauth import GoogleOAuthError, GoogleProfile


@dataclass
class FakeUser:
    username: str
    email: str
    hashed_password: Optional[str] = None
    role: Role = Role.USER
    is_admin: bool = False
    provider: Provider = Provider.LOCAL
    google_id: Optional[str] = None
    last_login: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(ObjectId()))
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


class FakeUserStore:
    def __init__(self):
        self.users: Dict[str, FakeUser] = {}
        self.cleared: List[str] = []

    def add(self, user: FakeUser) -> FakeUser:
        self._check_unique(user)
        self.users[user.id] = user
        return user

    def _check_unique(self, user: FakeUser) -> None:
        for other in self.users.values():
            if other.email == user.email:
                raise Conflict()
            if user.google_id and other.google_id == user.google_id:
                raise Conflict()
            if (
                user.provider == Provider.LOCAL
                and other.provider == Provider.LOCAL
                and other.username.lower() == user.username.lower()
            ):
                raise Conflict()

    async def find_by_id(self, user_id):
        return self.users.get(str(user_id))

    async def find_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    async def find_by_email_or_username(self, email, username):
        for u in self.users.values():
            if u.email == email:
                return u
            if u.username.lower() == username.lower():
                return u
        return None

    async def find_by_google_id(self, google_id):
        return next((u for u in self.users.values() if u.google_id == google_id), None)

    async def create_local(self, username, email, hashed_password, role):
        now = datetime.utcnow()
        return self.add(
            FakeUser(username=username, email=email, hashed_password=hashed_password, role=role, last_login=now)
        )

    async def create_federated(self, google_id, email, username):
        return self.add(
            FakeUser(
                username=username,
                email=email,
                google_id=google_id,
                provider=Provider.GOOGLE,
                last_login=datetime.utcnow(),
            )
        )

    async def touch_last_login(self, user):
        user.last_login = datetime.utcnow()
        return user

    async def clear_session(self, user_id):
        self.cleared.append(str(user_id))

    async def set_role(self, email, role):
        user = await self.find_by_email(email)
        if user is None:
            raise NotFound("User not found")
        user.role = Role(role)
        return user

    async def list_users(self, page, limit, sort):
        key = sort.lstrip("-+")
        ordered = sorted(self.users.values(), key=lambda u: getattr(u, key) or datetime.min, reverse=sort.startswith("-"))
        start = (page - 1) * limit
        return ordered[start:start + limit], len(ordered)


class FakeRecordStore:
    def __init__(self):
        self.employees: List[Dict[str, Any]] = []
        self.attendance: List[Dict[str, Any]] = []
        self.leaves: List[Dict[str, Any]] = []
        self.payroll: List[Dict[str, Any]] = []

    @staticmethod
    def _page(items, page, limit, employee_id=None):
        if employee_id:
            items = [i for i in items if i.get("employee_id") == employee_id]
        start = (page - 1) * limit
        return items[start:start + limit], len(items)

    async def get_employee(self, employee_id):
        return next((e for e in self.employees if e["id"] == employee_id), None)

    async def list_employees(self, page, limit, sort="-created_at"):
        return self._page(self.employees, page, limit)

    async def list_attendance(self, page, limit, employee_id=None, sort="-date"):
        return self._page(self.attendance, page, limit, employee_id)

    async def list_leaves(self, page, limit, employee_id=None, sort="-created_at"):
        return self._page(self.leaves, page, limit, employee_id)

    async def list_payroll(self, page, limit, employee_id=None, sort="-created_at"):
        return self._page(self.payroll, page, limit, employee_id)


class FakeGoogleClient:
    def __init__(self):
        self.profile = GoogleProfile(id="google-123", email="Jane.Doe@Gmail.com", display_name="Jane Doe")
        self.fail = False

    def authorization_url(self, state=None):
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test"

    async def fetch_profile(self, code):
        if self.fail:
            raise GoogleOAuthError("bad code")
        return self.profile


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")


def make_settings(**overrides) -> Settings:
    values = dict(
        SECRET_KEY="test-secret",
        ENVIRONMENT="test",
        BCRYPT_ROUNDS=4,
        ADMIN_SECRET_CODE="letmein",
        CLIENT_URL="http://localhost:5173",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def google_client() -> FakeGoogleClient:
    return FakeGoogleClient()


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def app(settings, user_store, record_store, google_client):
    return create_app(
        settings,
        user_store=user_store,
        record_store=record_store,
        google_client=google_client,
        init_database=False,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(user_store):
    def _make(username="alice", email=None, password="Secret123!", role=Role.USER, is_admin=False):
        return user_store.add(
            FakeUser(
                username=username,
                email=email or f"{username.lower()}@example.com",
                hashed_password=get_password_hash(password, rounds=4),
                role=role,
                is_admin=is_admin,
            )
        )

    return _make


@pytest.fixture
def auth_headers(tokens):
    def _headers(user) -> Dict[str, str]:
        return {"Authorization": f"Bearer {tokens.issue(user)}"}

    return _headers
