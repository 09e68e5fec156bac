"""Database configuration and session management."""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from chemflow.config import Settings

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    # Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def build_engine(settings: Settings) -> Engine:
    """Create an engine configured for the database type in settings."""
    url = normalize_database_url(settings.database_url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees its own empty database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """Dependency for FastAPI endpoints to get database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
