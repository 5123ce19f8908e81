import logging
import time
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from . import config
from .errors import ConnectionUnavailable

# Import all models to ensure they are registered with SQLModel metadata
from .models import Task, User  # noqa: F401

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class Database:
    """Owns the engine and connection pool for one application instance.

    Build it once, call ``create_tables()`` before first use and ``dispose()``
    on shutdown. Stores and request handlers receive the handle explicitly.
    """

    def __init__(
        self,
        url: str = config.DATABASE_URL,
        *,
        pool_size: int = config.DB_POOL_MAX,
        pool_timeout: float = config.DB_POOL_TIMEOUT,
        pool_recycle: int = config.DB_POOL_RECYCLE,
        echo: bool = config.DB_ECHO,
    ):
        self.url = url
        self.engine = self._create_engine(url, pool_size, pool_timeout, pool_recycle, echo)
        self._sessions = sessionmaker(
            bind=self.engine,
            class_=Session,
            autoflush=False,
            expire_on_commit=False,
        )
        self._install_query_logging(self.engine)

    @staticmethod
    def _create_engine(url, pool_size, pool_timeout, pool_recycle, echo) -> Engine:
        if url.startswith("sqlite"):
            if _is_memory_sqlite(url):
                # One shared connection, or every session sees an empty database
                engine = create_engine(
                    url,
                    echo=echo,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                engine = create_engine(
                    url,
                    echo=echo,
                    connect_args={"check_same_thread": False, "timeout": pool_timeout},
                    pool_size=pool_size,
                    max_overflow=0,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle,
                )

            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=0,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    @staticmethod
    def _install_query_logging(engine: Engine) -> None:
        @event.listens_for(engine, "before_cursor_execute")
        def _start_timer(conn, cursor, statement, parameters, context, executemany):
            conn.info["query_start"] = time.perf_counter()

        @event.listens_for(engine, "after_cursor_execute")
        def _log_query(conn, cursor, statement, parameters, context, executemany):
            started = conn.info.pop("query_start", None)
            if started is None:
                return
            logger.debug(
                "Executed query in %.1fms rows=%s: %s",
                (time.perf_counter() - started) * 1000,
                cursor.rowcount,
                " ".join(statement.split()),
            )

        @event.listens_for(engine, "handle_error")
        def _drop_timer(context):
            # after_cursor_execute never fires for a failed statement
            if context.connection is not None:
                context.connection.info.pop("query_start", None)

    def _open(self) -> Session:
        session = self._sessions()
        try:
            # Check out a pooled connection now so exhaustion surfaces here
            session.connection()
        except (PoolTimeoutError, OperationalError) as exc:
            session.close()
            logger.error("Database connection unavailable: %s", exc)
            raise ConnectionUnavailable() from exc
        return session

    @contextmanager
    def session(self) -> Iterator[Session]:
        """A session for reads and single-statement writes.

        Usage:
            with database.session() as session:
                session.exec(select(Task)).all()
        """
        session = self._open()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """A session wrapped in one transaction.

        Commits when the block exits normally; any exception, expected store
        errors included, rolls everything back before propagating.
        """
        session = self._open()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create all database tables."""
        SQLModel.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        SQLModel.metadata.drop_all(bind=self.engine)

    def check_connection(self) -> None:
        with self.session() as session:
            session.execute(text("SELECT 1"))

    def dispose(self) -> None:
        logger.info("Closing database pool")
        self.engine.dispose()


def get_db(request: Request) -> Database:
    """Dependency returning the application's database handle."""
    return request.app.state.database
