import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from staffaccess.config import settings
from staffaccess.config.permissions_config import ALL_PERMISSION_CODES, STAFF_ROLE_TEMPLATES
from staffaccess.core.dependencies import reset_access_caches
from staffaccess.modules.access import routes as access_routes
from staffaccess.modules.auth import routes as auth_routes
from staffaccess.modules.entitlements import routes as entitlements_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# Permission answers are per-user; intermediaries must never cache them
SECURITY_HEADERS = (
    (b"X-Content-Type-Options", b"nosniff"),
    (b"X-Frame-Options", b"DENY"),
    (b"Cache-Control", b"no-store"),
)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])


class SecurityHeadersMiddleware:
    def __init__(self, app, headers=SECURITY_HEADERS):
        self.app = app
        self.headers = list(headers)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend(self.headers)
            await send(message)

        await self.app(scope, receive, send_with_headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.app_name} starting ({settings.environment}): "
        f"{len(ALL_PERMISSION_CODES)} permissions, {len(STAFF_ROLE_TEMPLATES)} staff role templates"
    )
    yield
    reset_access_caches()
    logger.info(f"{settings.app_name} stopped; access caches cleared")


async def unhandled_exception(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        redirect_slashes=False,
        lifespan=lifespan,
    )
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_exception_handler(Exception, unhandled_exception)

    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (auth_routes, access_routes, entitlements_routes):
        application.include_router(module.router, prefix=API_PREFIX)

    @application.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}

    @application.get("/health")
    @limiter.exempt
    async def health():
        return {"status": "healthy"}

    @application.get("/ready")
    @limiter.exempt
    async def ready():
        """Readiness probe: the catalog and role registry are validated at import"""
        return {
            "status": "ready",
            "permissions": len(ALL_PERMISSION_CODES),
            "role_templates": len(STAFF_ROLE_TEMPLATES),
        }

    return application


app = create_app()
