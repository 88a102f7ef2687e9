# app/database.py
import logging

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


class Database:
    """Explicitly constructed data-store handle: owns the engine and the session factory."""

    def __init__(self, url: str, pool_size: int = 20, max_overflow: int = 30, echo: bool = False):
        self.url = url
        engine_kwargs = {"pool_pre_ping": True, "echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees its own empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow

        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    def session(self):
        return self.SessionLocal()

    def create_tables(self):
        """Create all database tables - models must be imported first."""
        from . import models  # noqa: F401  registers tables on Base.metadata

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        from . import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self):
        self.engine.dispose()


# Dependency to get database session
def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
