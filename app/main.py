"""
FastAPI application entry point.
create_app() wires the engine, session factory, audit sink and clock onto
app.state, then adds security middleware, error handlers and all routers.
"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import directory, health, shifts, slots, tickets
from app.database import build_engine, build_session_factory, create_tables
from app.config import Settings, settings as default_settings
from app.exceptions import ParkingError, ParkingSystemError
from app.services.audit_sink import AuditSink, build_audit_sink
from app.utils.clock import Clock, utcnow
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth in front of the operator endpoints.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != self.api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    audit_sink: Optional[AuditSink] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Parking Settlement API",
        description="Ticket lifecycle, billing, payments and cashier shift reconciliation.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    engine = engine or build_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        echo=settings.DB_ECHO,
    )
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.audit_sink = audit_sink or build_audit_sink(settings)
    app.state.clock = clock or utcnow

    # ── CORS (allow the operator UI on the same LAN to call the API) ────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],   # Restrict to the UI origin in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.API_KEY:
        app.add_middleware(APIKeyMiddleware, api_key=settings.API_KEY)

    # ── Request Timing Middleware ────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = round((time.time() - start) * 1000, 2)
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
        return response

    # ── Error Handlers ───────────────────────────────────────────────────────
    @app.exception_handler(ParkingError)
    async def parking_error_handler(request: Request, exc: ParkingError):
        if isinstance(exc, ParkingSystemError):
            logger.error(f"System error on {request.url.path}: {exc.message} {exc.details}",
                         exc_info=exc.__cause__ or exc)
        else:
            logger.info(f"Rejected {request.method} {request.url.path}: {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(tickets.router, prefix="/api/v1", tags=["Tickets"])
    app.include_router(shifts.router,  prefix="/api/v1", tags=["Shifts"])
    app.include_router(slots.router,   prefix="/api/v1", tags=["Slots"])
    app.include_router(directory.router, prefix="/api/v1", tags=["Directory"])
    app.include_router(health.router,  prefix="/api/v1", tags=["Health"])

    # ── Startup ──────────────────────────────────────────────────────────────
    @app.on_event("startup")
    async def startup():
        logger.info("Parking settlement backend starting up...")
        create_tables(app.state.engine)
        logger.info("Database tables ready")
        logger.info(f"Audit sink: {type(app.state.audit_sink).__name__}")
        logger.info(f"Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("Parking settlement backend shutting down...")
        close_sink = getattr(app.state.audit_sink, "close", None)
        if close_sink:
            close_sink()
        app.state.engine.dispose()

    return app


app = create_app()
