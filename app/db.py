import logging
import threading
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import ConnectionFailed

logger = logging.getLogger(__name__)

Base = declarative_base()


def _engine_options(url: str, pool_size: int) -> dict:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_size": pool_size, "pool_pre_ping": True}

    options = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # every session must see the same in-memory database
        options["poolclass"] = StaticPool
    return options


class Database:
    """Process-wide connection handle, created once and passed around."""

    def __init__(self, url: str, pool_size: int = 10):
        self.url = url
        self.pool_size = pool_size
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self) -> Engine:
        if self._engine is not None:
            return self._engine

        with self._lock:
            if self._engine is not None:
                return self._engine

            engine = None
            try:
                engine = create_engine(
                    self.url, **_engine_options(self.url, self.pool_size)
                )
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                Base.metadata.create_all(bind=engine)
            except SQLAlchemyError as exc:
                if engine is not None:
                    engine.dispose()
                logger.error("Database connection error: %s", exc)
                raise ConnectionFailed("Failed to connect to the database") from exc

            self._engine = engine
            self._sessionmaker = sessionmaker(
                bind=engine, autoflush=False, expire_on_commit=False
            )
            logger.info("Connected to %s", make_url(self.url).render_as_string())
            return engine

    def session(self) -> Session:
        self.connect()
        return self._sessionmaker()

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


def get_db(request: Request) -> Iterator[Session]:
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
