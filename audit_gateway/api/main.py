"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from audit_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from audit_gateway.api.v1 import analysis, report, sessions, history, transactions
from audit_gateway.infrastructure.observability.logging import setup_logging
from audit_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Audit Risk Gateway",
        description="Transaction audit-risk classification and report service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(analysis.router, prefix="/v1", tags=["analysis"])
    app.include_router(report.router, prefix="/v1", tags=["reports"])
    app.include_router(sessions.router, prefix="/v1", tags=["sessions"])
    app.include_router(history.router, prefix="/v1", tags=["reports"])
    app.include_router(transactions.router, prefix="/v1", tags=["review"])

    return app


app = create_app()
