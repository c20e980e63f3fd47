import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Response
from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt

from ems.core.config import Settings

logger = logging.getLogger(__name__)


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password with bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its bcrypt hash; federated accounts have none"""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed or non-bcrypt hash stored
        return False


async def hash_password_async(password: str, rounds: int = 12) -> str:
    return await run_in_threadpool(get_password_hash, password, rounds)


async def verify_password_async(plain_password: str, hashed_password: Optional[str]) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)


@dataclass(frozen=True)
class TokenClaims:
    id: str
    role: str
    is_admin: bool
    issued_at: datetime


class TokenService:
    """
    Mints and checks the signed session token.

    Claims are `{id, role, isAdmin, iat}` plus `exp`, `iss` and `aud`.
    `verify` never raises: any signature, expiry, issuer or audience problem
    yields None.
    """

    def __init__(self, settings: Settings):
        self._secret = settings.SECRET_KEY
        self._algorithm = settings.ALGORITHM
        self._issuer = settings.JWT_ISSUER
        self._audience = settings.JWT_AUDIENCE
        self._ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self._cookie_name = settings.COOKIE_NAME
        self._cookie_secure = settings.is_production

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    def issue(self, user: Any, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.utcnow()
        to_encode: Dict[str, Any] = {
            "id": str(user.id),
            "role": _role_value(getattr(user, "role", None)),
            "isAdmin": bool(getattr(user, "is_admin", False)),
            "iat": issued_at,
            "exp": issued_at + self._ttl,
            "iss": self._issuer,
            "aud": self._audience,
        }
        return jwt.encode(to_encode, self._secret, algorithm=self._algorithm)

    def verify(self, token: Optional[str]) -> Optional[TokenClaims]:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"require_aud": True, "require_iss": True, "require_exp": True},
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            return None

        user_id = payload.get("id")
        role = payload.get("role")
        if not user_id or not role:
            return None
        return TokenClaims(
            id=str(user_id),
            role=str(role),
            is_admin=bool(payload.get("isAdmin", False)),
            issued_at=datetime.utcfromtimestamp(payload.get("iat", 0)),
        )

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self._cookie_name,
            value=token,
            max_age=int(self._ttl.total_seconds()),
            httponly=True,
            secure=self._cookie_secure,
            samesite="strict",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self._cookie_name,
            httponly=True,
            secure=self._cookie_secure,
            samesite="strict",
        )


def _role_value(role: Any) -> str:
    return getattr(role, "value", role) or "user"
