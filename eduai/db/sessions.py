import logging

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from eduai.db.base import Base

logger = logging.getLogger("eduai.db.session")


class Database:
    """Engine and session factory owned by one application instance."""

    def __init__(self, url: str):
        if not url:
            raise RuntimeError("Database URL is not configured.")

        connect_args = {}
        if url.startswith("sqlite"):
            # TestClient runs handlers in a worker thread
            connect_args["check_same_thread"] = False

        # enable pool_pre_ping to avoid stale/closed connections
        self.engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        # Import all models to ensure they're registered with Base
        import eduai.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database connectivity check failed")
            return False
        return True

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request):
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
