import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from caldav_bridge.api.router import router as api_router
from caldav_bridge.api.subscription_router import router as subscription_router
from caldav_bridge.services.radicale_store import RadicaleStore
from caldav_bridge.services.webhooks import WebhookNotifier
from caldav_bridge.storage.webhook_registry import WebhookRegistry, create_webhook_registry
from caldav_bridge.utils.config import Settings, settings as default_settings
from caldav_bridge.utils.identifiers import IdentifierGenerator, UUIDGenerator
from caldav_bridge.utils.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware

# Load environment variables early
load_dotenv()

# Set up logging
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RadicaleStore] = None,
    webhook_registry: Optional[WebhookRegistry] = None,
    notifier: Optional[WebhookNotifier] = None,
    id_generator: Optional[IdentifierGenerator] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None
) -> FastAPI:
    """
    Build the application and its collaborators.

    Any collaborator can be passed in; the rest are created from settings.
    They are attached to app.state and closed on shutdown.
    """
    settings = settings or default_settings
    configure_logging(settings)

    store = store or RadicaleStore(settings.RADICALE_URL, timeout=settings.STORE_TIMEOUT_SECONDS)
    webhook_registry = webhook_registry or create_webhook_registry(settings)
    notifier = notifier or WebhookNotifier(webhook_registry, timeout=settings.WEBHOOK_TIMEOUT_SECONDS)
    rate_limiter = rate_limiter or FixedWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"CalDAV bridge started, calendar server at {settings.RADICALE_URL}")
        yield
        # Cleanup resources
        for resource in (store, notifier, webhook_registry):
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {type(resource).__name__}: {e}")
        logger.info("CalDAV bridge stopped")

    app = FastAPI(
        title="CalDAV Bridge",
        description="REST bridge for writing events and contacts to a CalDAV/CardDAV server",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.store = store
    app.state.webhook_registry = webhook_registry
    app.state.notifier = notifier
    app.state.id_generator = id_generator or UUIDGenerator()

    register_exception_handlers(app)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")
    app.include_router(subscription_router)

    # Route for health check
    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


def register_exception_handlers(app: FastAPI):
    """Render every error as {"error": message}"""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Something went wrong!"},
        )


# Direct execution for development
if __name__ == "__main__":
    settings = default_settings
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)
