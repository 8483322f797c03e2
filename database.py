"""Database configuration and session management."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./chats.db")


def build_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine; SQLite connections get foreign keys enforced."""
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    # objects stay readable after commit
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)