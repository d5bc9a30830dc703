import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .config import settings
from .db import Base, engine
from .errors import install_error_handlers
from .logging import setup_logging, RequestIdMiddleware
from .services.events import EventHub
from .auth.router import router as auth_router
from .auth.employee_router import router as employee_auth_router
from .routes.companies import router as companies_router
from .routes.employees import router as employees_router
from .routes.services import router as services_router
from .routes.foods import router as foods_router
from .routes.operations import router as operations_router
from .routes.rotas import router as rotas_router
from .routes.rooms import router as rooms_router
from .routes.reports import router as reports_router
from .routes.events import router as events_router
from .models import models  # noqa: F401  registers tables on Base.metadata


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    install_error_handlers(app)

    # One hub per application; handlers receive it through get_event_hub
    app.state.event_hub = EventHub()

    # Routers
    app.include_router(auth_router)
    app.include_router(employee_auth_router)
    app.include_router(companies_router)
    app.include_router(employees_router)
    app.include_router(services_router)
    app.include_router(foods_router)
    app.include_router(operations_router)
    app.include_router(rotas_router)
    app.include_router(rooms_router)
    app.include_router(reports_router)
    app.include_router(events_router)

    @app.get("/api/health")
    def health():
        return {"status": "OK", "environment": settings.environment}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        log = structlog.get_logger()
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            log.info("tables_created", tables=len(Base.metadata.tables))
        log.info("startup_complete", app=settings.app_name, environment=settings.environment)

    return app


app = create_app()
