"""Main FastAPI application entry point."""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from chemflow.api import audit_routes, routes
from chemflow.auth import TokenAuthenticator
from chemflow.config import Settings, get_settings
from chemflow.database import Base, build_engine, build_session_factory
from chemflow.logging_setup import configure_logging
from chemflow.storage import LocalFileStorage
# Import models to register them with SQLAlchemy Base
from chemflow.models.audit import AuditLogRecord  # noqa: F401
from chemflow.models.records import TicketRecord, UserRecord  # noqa: F401


def create_app(settings: Optional[Settings] = None, configure_logs: bool = True) -> FastAPI:
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings)

    engine = build_engine(settings)
    # Create database tables
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="chemflow - Chemical Configuration Requests",
        description="Request, approve and audit machine chemical configuration changes.",
        version="0.1.0"
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.authenticator = TokenAuthenticator(settings)
    app.state.storage = LocalFileStorage(settings.upload_dir)

    # Enable CORS for the board UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router, prefix="/api", tags=["Tickets"])
    app.include_router(audit_routes.router, prefix="/api/audit-logs", tags=["Audit"])
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": settings.app_name}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
