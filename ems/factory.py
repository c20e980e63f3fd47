import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import RedirectResponse

from ems.core.config import Settings, get_settings
from ems.core.database import init_db
from ems.core.exceptions import register_exception_handlers
from ems.core.middleware import RequestLoggingMiddleware
from ems.core.security import TokenService
from ems.routers import auth_router, employees_router
from ems.services.google_oauth import GoogleOAuthClient
from ems.services.identity import IdentityResolver
from ems.services.record_store import RecordStore
from ems.services.user_store import UserStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    user_store: Any = None,
    record_store: Any = None,
    google_client: Any = None,
    init_database: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

    # components share the one settings value; nothing reads the environment after this
    app.state.settings = settings
    app.state.tokens = TokenService(settings)
    app.state.users = user_store or UserStore()
    app.state.records = record_store or RecordStore()
    app.state.identity = IdentityResolver(app.state.users, settings)
    app.state.google = google_client or GoogleOAuthClient(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app, settings)

    api_prefix = settings.API_V1_STR
    app.include_router(auth_router, prefix=api_prefix)
    app.include_router(employees_router, prefix=api_prefix)

    # OpenAPI with bearer applied to all except the public /auth endpoints
    public_paths = {
        f"{api_prefix}/auth/register",
        f"{api_prefix}/auth/login",
        f"{api_prefix}/auth/google",
        f"{api_prefix}/auth/google/callback",
        f"{api_prefix}/auth/health",
    }

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=settings.PROJECT_NAME,
            version=settings.VERSION,
            description="Employee management API with JWT authentication",
            routes=app.routes,
        )
        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "Bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        }
        for path, methods in openapi_schema.get("paths", {}).items():
            if path.startswith(api_prefix) and path not in public_paths:
                for method in methods.values():
                    method["security"] = [{"Bearer": []}]
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    # Google is configured with the bare callback path; keep the query string
    @app.get("/auth/google/callback", include_in_schema=False)
    async def google_callback_passthrough(request: Request):
        qs = request.url.query
        target = f"{api_prefix}/auth/google/callback{'?' + qs if qs else ''}"
        return RedirectResponse(target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    @app.get("/")
    async def root():
        return {"message": "EMS API is up and running", "version": settings.VERSION}

    @app.get("/health")
    async def health_check():
        return {"status": "OK", "message": "EMS Backend is running"}

    if init_database:

        @app.on_event("startup")
        async def startup_event():
            app.state.mongo_client = await init_db(settings)

        @app.on_event("shutdown")
        async def shutdown_event():
            client = getattr(app.state, "mongo_client", None)
            if client is not None:
                client.close()

    logger.info("Application created (environment=%s)", settings.ENVIRONMENT)
    return app
