"""FastAPI application entry point for the RADIUS Accounting Report Service.

This service provides HTTP APIs reporting on the FreeRADIUS accounting
database (current connection status per subscriber, per-concentrator user
counts, per-user history and consumption) plus a calendar event mirror
backed by the managed backend and a read-only proxy to the payment gateway.

Run with: uvicorn radreport.main:app
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from radreport.config import Settings, settings as default_settings
from radreport.database import build_engine, build_session_factory, check_connection
from radreport.errors import install_exception_handlers
from radreport.routers.agenda import router as agenda_router
from radreport.routers.billing import router as billing_router
from radreport.routers.connections import router as connections_router
from radreport.services.backend import BackendClient
from radreport.services.payments import PaymentGatewayClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine=None,
    backend: Optional[BackendClient] = None,
    gateway: Optional[PaymentGatewayClient] = None,
) -> FastAPI:
    """Build the application.

    The accounting engine, the managed backend client and the payment
    gateway client are created once at startup (unless supplied by the
    caller) and kept on ``app.state``. Startup fails, and the server process
    exits, when the backend or the gateway is not configured or the
    accounting database cannot be reached.

    Args:
        settings: Application settings (defaults to the environment).
        engine: Pre-built SQLAlchemy engine; the caller keeps ownership.
        backend: Pre-built backend client; the caller keeps ownership.
        gateway: Pre-built payment gateway client; the caller keeps ownership.
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Read-only reports over the RADIUS accounting database: latest "
            "session per subscriber, concentrator user counts, per-user "
            "history and daily consumption, plus the calendar event mirror "
            "and the billing proxy."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    install_exception_handlers(app)

    app.include_router(connections_router)
    app.include_router(agenda_router)
    app.include_router(billing_router)

    @app.on_event("startup")
    def on_startup():
        """Create the outbound clients and the connection pool, failing fast."""
        app.state.backend = (
            backend if backend is not None else BackendClient.from_settings(settings)
        )
        app.state.gateway = (
            gateway if gateway is not None else PaymentGatewayClient.from_settings(settings)
        )
        app.state.engine = engine if engine is not None else build_engine(settings)
        check_connection(app.state.engine)
        app.state.session_factory = build_session_factory(app.state.engine)

    @app.on_event("shutdown")
    def on_shutdown():
        """Release the resources created at startup."""
        if backend is None and getattr(app.state, "backend", None) is not None:
            app.state.backend.close()
        if gateway is None and getattr(app.state, "gateway", None) is not None:
            app.state.gateway.close()
        if engine is None and getattr(app.state, "engine", None) is not None:
            app.state.engine.dispose()
        logger.info("Shut down %s", settings.APP_NAME)

    @app.get("/", tags=["Health"])
    def health_check():
        """Health check endpoint to verify the service is running."""
        return {"status": "healthy", "service": settings.APP_NAME}

    return app


app = create_app()
