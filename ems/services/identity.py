import hmac
import logging
from typing import Any, Optional

from ems.core.config import Settings
from ems.core.exceptions import Conflict, InvalidCredentials
from ems.core.security import hash_password_async, verify_password_async
from ems.models.users import Role

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class IdentityResolver:
    """Turns credentials into a canonical user record.

    `store` is anything exposing the `UserStore` coroutines; the resolver
    keeps no state of its own.
    """

    def __init__(self, store: Any, settings: Settings):
        self.store = store
        self._admin_code = settings.ADMIN_SECRET_CODE
        self._rounds = settings.BCRYPT_ROUNDS

    def role_for_admin_code(self, admin_code: Optional[str]) -> Role:
        if not self._admin_code or not admin_code:
            return Role.USER
        if hmac.compare_digest(admin_code.encode("utf-8"), self._admin_code.encode("utf-8")):
            return Role.ADMIN
        return Role.USER

    async def register(self, username: str, email: str, password: str, admin_code: Optional[str] = None):
        username = username.strip()
        email = normalize_email(email)

        existing = await self.store.find_by_email_or_username(email, username)
        if existing:
            raise Conflict("User already exists")

        role = self.role_for_admin_code(admin_code)
        hashed = await hash_password_async(password, self._rounds)
        user = await self.store.create_local(username=username, email=email, hashed_password=hashed, role=role)
        logger.info("Registered user %s with role %s", user.id, role.value)
        return user

    async def resolve_local(self, email: str, password: str):
        user = await self.store.find_by_email(normalize_email(email))
        if user is None:
            logger.warning("Login failed: unknown email")
            raise InvalidCredentials()
        if not await verify_password_async(password, getattr(user, "hashed_password", None)):
            logger.warning("Login failed: bad password for user %s", user.id)
            raise InvalidCredentials()
        return await self.store.touch_last_login(user)

    async def resolve_or_create_federated(self, external_id: str, email: str, display_name: Optional[str]):
        user = await self.store.find_by_google_id(external_id)
        if user is not None:
            return await self.store.touch_last_login(user)

        user = await self.store.create_federated(
            google_id=external_id,
            email=normalize_email(email),
            username=(display_name or "User").strip() or "User",
        )
        logger.info("Created federated user %s", user.id)
        return user
