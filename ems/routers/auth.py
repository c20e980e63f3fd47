import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ems.core.exceptions import AppError, Forbidden, Unauthenticated, ValidationFailed
from ems.models.users import Role
from ems.schemas.users import (
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    RegisterRequest,
    UserListResponse,
)
from ems.services.google_oauth import GoogleOAuthError
from ems.services.permission import PermissionService, Principal
from ems.utils.pagination import build_pagination, parse_sort
from ems.utils.sanitizer import sanitize_user, sanitize_users

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

USER_SORT_FIELDS = ("created_at", "updated_at", "last_login", "username", "email", "role")


def extract_access_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    # bearer header wins over the cookie
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(request.app.state.tokens.cookie_name)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    token = extract_access_token(request, credentials)
    if not token:
        raise Unauthenticated("Token required")

    claims = request.app.state.tokens.verify(token)
    if claims is None:
        raise Unauthenticated("Invalid or expired token")

    # the role comes from the stored user, not from a possibly stale token
    user = await request.app.state.users.find_by_id(claims.id)
    if user is None:
        raise Unauthenticated("User not found")

    principal = Principal(id=str(user.id), role=user.role, is_admin=bool(getattr(user, "is_admin", False)))
    request.state.principal = principal
    request.state.token = token
    return principal


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not PermissionService.require_admin(principal):
        logger.warning("Admin access denied for user %s", principal.id)
        raise Forbidden("Admin access required")
    return principal


def permit(*roles: Role):
    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not PermissionService.permit(principal, roles):
            logger.warning("Role %s denied, allowed: %s", principal.role.value, [Role(r).value for r in roles])
            raise Forbidden("Insufficient permissions")
        return principal

    return dependency


class AuthRouter:
    def __init__(self):
        self.router = APIRouter(prefix="/auth", tags=["authentication"])
        self.setup_routes()

    def setup_routes(self):
        self.router.add_api_route(
            "/register", self.register, methods=["POST"], response_model=AuthResponse, status_code=status.HTTP_201_CREATED
        )
        self.router.add_api_route("/login", self.login, methods=["POST"], response_model=AuthResponse)
        self.router.add_api_route(
            "/logout", self.logout, methods=["POST"], response_model=AuthResponse, response_model_exclude_none=True
        )
        self.router.add_api_route("/users", self.get_users, methods=["GET"], response_model=UserListResponse)
        self.router.add_api_route("/profile", self.profile, methods=["GET"], response_model=ProfileResponse)
        self.router.add_api_route("/google", self.google_login, methods=["GET"])
        self.router.add_api_route("/google/callback", self.google_callback, methods=["GET"])
        self.router.add_api_route("/health", self.health, methods=["GET"])

    async def register(self, payload: RegisterRequest, request: Request, response: Response):
        identity = request.app.state.identity
        tokens = request.app.state.tokens

        user = await identity.register(
            username=payload.username,
            email=payload.email,
            password=payload.password,
            admin_code=payload.admin_code,
        )
        token = tokens.issue(user)
        tokens.set_cookie(response, token)
        return {
            "success": True,
            "message": "User registered successfully",
            "user": sanitize_user(user),
            "token": token,
        }

    async def login(self, payload: LoginRequest, request: Request, response: Response):
        identity = request.app.state.identity
        tokens = request.app.state.tokens

        user = await identity.resolve_local(payload.email, payload.password)
        token = tokens.issue(user)
        tokens.set_cookie(response, token)
        logger.info("User %s logged in", user.id)
        return {
            "success": True,
            "message": "Login successful",
            "user": sanitize_user(user),
            "token": token,
        }

    async def logout(self, request: Request, response: Response, principal: Principal = Depends(get_current_principal)):
        try:
            await request.app.state.users.clear_session(principal.id)
        except AppError as exc:
            # the cookie is cleared regardless
            logger.warning("Logout bookkeeping failed for user %s: %s", principal.id, exc.message)

        request.app.state.tokens.clear_cookie(response)
        logger.info("User %s logged out", principal.id)
        return {"success": True, "message": "Logged out successfully"}

    async def get_users(
        self,
        request: Request,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        sort: Optional[str] = Query(None),
        principal: Principal = Depends(require_admin),
    ):
        order = parse_sort(sort, USER_SORT_FIELDS, default="-created_at")
        users, total = await request.app.state.users.list_users(page=page, limit=limit, sort=order)
        return {
            "success": True,
            "message": "Users retrieved successfully",
            "data": sanitize_users(users),
            "pagination": build_pagination(page, limit, total),
        }

    async def profile(self, principal: Principal = Depends(permit(Role.ADMIN, Role.USER))):
        return {
            "success": True,
            "message": f"Welcome {principal.role.value}",
            "user": {"id": principal.id, "role": principal.role.value},
        }

    async def google_login(self, request: Request):
        url = request.app.state.google.authorization_url()
        return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    async def google_callback(
        self,
        request: Request,
        code: Optional[str] = Query(None),
        error: Optional[str] = Query(None),
    ):
        settings = request.app.state.settings
        failure_redirect = f"{settings.CLIENT_URL}/login"

        if error or not code:
            logger.warning("Google sign-in aborted: %s", error or "missing code")
            return RedirectResponse(failure_redirect, status_code=status.HTTP_302_FOUND)

        try:
            profile = await request.app.state.google.fetch_profile(code)
        except GoogleOAuthError as exc:
            logger.warning("Google sign-in failed: %s", exc)
            return RedirectResponse(failure_redirect, status_code=status.HTTP_302_FOUND)

        if not profile.id or not profile.email:
            raise ValidationFailed("Invalid Google profile data")

        user = await request.app.state.identity.resolve_or_create_federated(
            external_id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
        )
        tokens = request.app.state.tokens
        token = tokens.issue(user)
        logger.info("User %s signed in with Google", user.id)

        # SPA-friendly: token travels in the query string as well as the cookie
        redirect = RedirectResponse(
            f"{settings.CLIENT_URL}/?{urlencode({'token': token})}", status_code=status.HTTP_302_FOUND
        )
        tokens.set_cookie(redirect, token)
        return redirect

    async def health(self):
        return {
            "status": "OK",
            "service": "Auth Service",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


auth_router = AuthRouter().router
