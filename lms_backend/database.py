import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Iterator

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from lms_backend.core import config
from lms_backend.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Base = declarative_base()

STATE_OPEN = "open"
STATE_READY = "ready"
STATE_CLOSED = "closed"


@dataclass(frozen=True)
class ConnectOutcome:
    connected: bool
    attempts: int
    error: str | None = None


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Handlers run on the worker thread pool.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


class StoreHandle:
    """Owns the engine and session factory for one process.

    Lifecycle is ``open -> ready -> closed``. Sessions are only handed out
    while the handle is ready, so a process whose database never came up
    answers 503 instead of serving partial data.
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None) -> None:
        self.engine = engine or build_engine(database_url or config.DATABASE_URL)
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )
        self._schema_lock = Lock()
        self._schema_checked = False
        self.state = STATE_OPEN

    @property
    def is_ready(self) -> bool:
        return self.state == STATE_READY

    def connect_with_retry(
        self,
        max_retries: int | None = None,
        retry_interval: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ConnectOutcome:
        if self.state == STATE_CLOSED:
            return ConnectOutcome(connected=False, attempts=0, error="Store handle is closed.")

        retries = config.DB_CONNECT_MAX_RETRIES if max_retries is None else max_retries
        interval = config.DB_CONNECT_RETRY_INTERVAL_SECONDS if retry_interval is None else retry_interval
        total_attempts = retries + 1
        last_error = None

        for attempt in range(1, total_attempts + 1):
            try:
                with self.engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
            except SQLAlchemyError as exc:
                last_error = str(exc)
                logger.warning("Database connection attempt %s of %s failed.", attempt, total_attempts)
                if attempt < total_attempts:
                    sleep(interval)
                continue

            self.state = STATE_READY
            logger.info("Database connected after %s attempt(s).", attempt)
            return ConnectOutcome(connected=True, attempts=attempt)

        logger.error("Failed to connect to the database after %s attempts.", total_attempts)
        return ConnectOutcome(connected=False, attempts=total_attempts, error=last_error)

    def initialize_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        self.ensure_user_schema()

    def ensure_user_schema(self) -> None:
        if self._schema_checked:
            return

        with self._schema_lock:
            if self._schema_checked:
                return

            inspector = inspect(self.engine)

            if 'users' not in inspector.get_table_names():
                self._schema_checked = True
                return

            existing_columns = {column['name'] for column in inspector.get_columns('users')}
            migration_steps = [
                ('name', 'ALTER TABLE users ADD COLUMN name VARCHAR(50)'),
                ('bio', 'ALTER TABLE users ADD COLUMN bio VARCHAR(200)'),
                ('avatar', 'ALTER TABLE users ADD COLUMN avatar VARCHAR'),
                ('last_active', 'ALTER TABLE users ADD COLUMN last_active TIMESTAMP'),
                ('reset_password_token_hash', 'ALTER TABLE users ADD COLUMN reset_password_token_hash VARCHAR(64)'),
                ('reset_password_expires_at', 'ALTER TABLE users ADD COLUMN reset_password_expires_at TIMESTAMP'),
                ('created_at', 'ALTER TABLE users ADD COLUMN created_at TIMESTAMP'),
                ('updated_at', 'ALTER TABLE users ADD COLUMN updated_at TIMESTAMP'),
            ]

            with self.engine.begin() as connection:
                for column_name, statement in migration_steps:
                    if column_name not in existing_columns:
                        connection.execute(text(statement))
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_users_reset_token ON users(reset_password_token_hash)')
                )

            self._schema_checked = True

    def new_session(self) -> Session:
        if not self.is_ready:
            raise StoreUnavailable()
        return self._session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.new_session()
        try:
            yield db
        finally:
            db.close()

    def close(self) -> None:
        if self.state == STATE_CLOSED:
            return
        self.engine.dispose()
        self.state = STATE_CLOSED
        logger.info("Database connection closed.")

    def status(self) -> dict:
        return {
            "state": self.state,
            "dialect": self.engine.dialect.name,
            "database": self.engine.url.database,
        }


def get_store(request: Request) -> StoreHandle:
    return request.app.state.store


def get_db(request: Request):
    db = get_store(request).new_session()
    try:
        yield db
    finally:
        db.close()
