import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple

from bson import ObjectId
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from ems.core.exceptions import Conflict, InternalError, NotFound, ValidationFailed
from ems.models.users import Provider, Role, User

logger = logging.getLogger(__name__)


def _case_insensitive(value: str) -> dict:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


class UserStore:
    """Beanie-backed persistence for `User` records.

    Storage-level duplicate keys surface as `Conflict`, other driver errors
    as `InternalError`; nothing here retries.
    """

    async def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id or not ObjectId.is_valid(str(user_id)):
            return None
        try:
            return await User.get(ObjectId(str(user_id)))
        except PyMongoError as exc:
            raise InternalError("Error finding user by ID") from exc

    async def find_by_email(self, email: str) -> Optional[User]:
        try:
            return await User.find_one({"email": email})
        except PyMongoError as exc:
            raise InternalError("Error finding user") from exc

    async def find_by_email_or_username(self, email: str, username: str) -> Optional[User]:
        query = {
            "$or": [
                {"email": email},
                {"username": _case_insensitive(username)},
            ]
        }
        try:
            return await User.find_one(query)
        except PyMongoError as exc:
            raise InternalError("Error finding user") from exc

    async def find_by_google_id(self, google_id: str) -> Optional[User]:
        try:
            return await User.find_one({"google_id": google_id})
        except PyMongoError as exc:
            raise InternalError("Error finding user") from exc

    async def create_local(self, username: str, email: str, hashed_password: str, role: Role) -> User:
        now = datetime.utcnow()
        return await self._insert(
            username=username,
            email=email,
            hashed_password=hashed_password,
            role=role,
            provider=Provider.LOCAL,
            last_login=now,
            created_at=now,
            updated_at=now,
        )

    async def create_federated(self, google_id: str, email: str, username: str) -> User:
        now = datetime.utcnow()
        return await self._insert(
            username=username,
            email=email,
            google_id=google_id,
            role=Role.USER,
            provider=Provider.GOOGLE,
            last_login=now,
            created_at=now,
            updated_at=now,
        )

    async def _insert(self, **fields) -> User:
        try:
            user = User(**fields)
        except ValidationError as exc:
            raise ValidationFailed(errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]) from exc
        try:
            await user.insert()
        except DuplicateKeyError as exc:
            raise Conflict() from exc
        except PyMongoError as exc:
            raise InternalError("Error creating user") from exc
        return user

    async def touch_last_login(self, user: User) -> User:
        now = datetime.utcnow()
        try:
            await user.set({"last_login": now, "updated_at": now})
        except PyMongoError as exc:
            raise InternalError("Error updating user") from exc
        return user

    async def clear_session(self, user_id: str) -> None:
        user = await self.find_by_id(user_id)
        if user is None:
            return
        try:
            await user.set({"updated_at": datetime.utcnow()})
        except PyMongoError as exc:
            raise InternalError("Error updating user") from exc

    async def set_role(self, email: str, role: str) -> User:
        try:
            new_role = Role(role)
        except ValueError as exc:
            allowed = ", ".join(r.value for r in Role)
            raise ValidationFailed(f"Role must be one of: {allowed}") from exc
        user = await self.find_by_email(email.strip().lower())
        if user is None:
            raise NotFound("User not found")
        try:
            await user.set({"role": new_role.value, "updated_at": datetime.utcnow()})
        except PyMongoError as exc:
            raise InternalError("Error updating user") from exc
        return user

    async def list_users(self, page: int, limit: int, sort: str) -> Tuple[List[User], int]:
        skip = (page - 1) * limit
        try:
            users = await User.find({}).sort(sort).skip(skip).limit(limit).to_list()
            total = await User.find({}).count()
        except PyMongoError as exc:
            raise InternalError("Error fetching users") from exc
        return users, total
