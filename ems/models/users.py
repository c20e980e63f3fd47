from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document
from pydantic import EmailStr, Field, model_validator
from pymongo import ASCENDING, IndexModel


class Role(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    MANAGER = "manager"
    USER = "user"


class Provider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"


class User(Document):
    username: str
    email: EmailStr
    hashed_password: Optional[str] = None
    role: Role = Role.USER
    is_admin: bool = False
    provider: Provider = Provider.LOCAL
    google_id: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_credentials(self):
        # a local account signs in with a password, a google one with its external id
        if self.provider == Provider.GOOGLE:
            if not self.google_id:
                raise ValueError("google accounts require google_id")
        elif not self.hashed_password:
            raise ValueError("local accounts require a password")
        return self

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], name="email_unique", unique=True),
            IndexModel(
                [("username", ASCENDING)],
                name="local_username_unique_ci",
                unique=True,
                collation={"locale": "en", "strength": 2},
                partialFilterExpression={"provider": Provider.LOCAL.value},
            ),
            IndexModel([("google_id", ASCENDING)], name="google_id_unique", unique=True, sparse=True),
            IndexModel([("role", ASCENDING)], name="role"),
        ]
