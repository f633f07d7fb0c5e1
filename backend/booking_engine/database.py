import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(database_url: str):
    """
    Create an engine for the given URL.

    SQLite: check_same_thread=False so FastAPI worker threads can share the
    pool, and foreign keys are switched on for every connection.
    """
    is_sqlite = database_url.startswith("sqlite")
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.resolved_database_url)

# SessionLocal is the only way request code talks to the store
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables (local bootstrap; migrations go through alembic)."""
    from .models.tables import Base

    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database:
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind)


def storage_now(db: Session) -> datetime:
    """
    Current time according to the store's clock, as an aware UTC datetime.

    Advance-booking checks use this instead of the caller's clock.
    """
    value = db.execute(select(func.now())).scalar_one()
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(exc.connection_invalidated)


def with_storage_retry(
    db: Session,
    unit_of_work: Callable[[], T],
    attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """
    Run a unit of work, retrying transient storage failures.

    The session is rolled back before each retry. Engine errors and
    integrity violations propagate untouched. After the last failed attempt
    StorageUnavailableError is raised.
    """
    attempts = attempts or settings.storage_retry_attempts
    if backoff_seconds is None:
        backoff_seconds = settings.storage_retry_backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            return unit_of_work()
        except DBAPIError as e:
            if not _is_transient(e):
                raise
            db.rollback()
            if attempt == attempts:
                logger.error(f"Storage unavailable after {attempts} attempts: {e}")
                raise StorageUnavailableError(
                    "The booking service is temporarily unavailable, please try again"
                ) from e
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"Transient storage failure (attempt {attempt}/{attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            time.sleep(delay)

    raise StorageUnavailableError("The booking service is temporarily unavailable")
