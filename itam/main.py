import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
import structlog

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware
from .auth.bootstrap import ensure_admin_user
from .auth.router import router as auth_router
from .routes.assets import router as assets_router, pairs_router
from .routes.audit import router as audit_router
from .routes.dashboard import router as dashboard_router
from .routes.files import router as files_router
from .routes.lifecycle import router as lifecycle_router
from .routes.maintenance import router as maintenance_router
from .routes.users import router as users_router, directory_router
from .services.errors import AssetManagerError


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(AssetManagerError)
    async def _domain_error(request: Request, exc: AssetManagerError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(SQLAlchemyError)
    async def _db_error(request: Request, exc: SQLAlchemyError):
        logger.error("database_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": "The operation failed; no changes were saved"})

    # Routers
    app.include_router(auth_router)
    app.include_router(assets_router)
    app.include_router(pairs_router)
    app.include_router(lifecycle_router)
    app.include_router(maintenance_router)
    app.include_router(audit_router)
    app.include_router(users_router)
    app.include_router(directory_router)
    app.include_router(dashboard_router)
    app.include_router(files_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("database_tables_ready")
        if settings.admin_personal_number and settings.admin_password:
            db = SessionLocal()
            try:
                ensure_admin_user(
                    db,
                    settings.admin_personal_number,
                    settings.admin_password,
                    min_password_length=settings.min_password_length,
                )
            finally:
                db.close()

    return app


app = create_app()
