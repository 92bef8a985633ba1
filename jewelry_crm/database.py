"""
Database engine, session factory and unit-of-work helpers
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from jewelry_crm.config import settings
from jewelry_crm.exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL

    SQLite URLs get thread-sharing enabled; in-memory SQLite also gets a
    single shared connection so every session sees the same database.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a block as one unit of work

    Commits when the block finishes, rolls back everything on any error.
    SQLAlchemy errors are re-raised as StorageError.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise StorageError(
            f"Database operation failed: {e.__class__.__name__}",
            transient=isinstance(e, OperationalError),
        ) from e
    except Exception:
        db.rollback()
        raise


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, StorageError) and exc.transient


# Re-run a whole unit of work when the database reports a lock/serialization failure
retry_on_lock = retry(
    stop=stop_after_attempt(settings.MAX_RETRIES),
    wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=0, max=2),
    retry=retry_if_exception(_is_transient),
    reraise=True
)


def seed_reference_data(db: Session) -> None:
    """Insert the order status rows that are missing"""
    from jewelry_crm.models.order import OrderStatus, ORDER_STATUS_SEED

    existing = set(db.scalars(select(OrderStatus.code)).all())
    for row in ORDER_STATUS_SEED:
        if row["code"] not in existing:
            db.add(OrderStatus(**row))
    db.commit()


def verify_reference_data(db: Session) -> None:
    """
    Check that every order status the workflow relies on exists

    Raises:
        ConfigurationError: If any status row is missing
    """
    from jewelry_crm.models.order import OrderStatus, ORDER_STATUS_SEED

    required = {row["code"] for row in ORDER_STATUS_SEED}
    existing = set(db.scalars(select(OrderStatus.code)).all())
    missing = sorted(required - existing)
    if missing:
        raise ConfigurationError(f"Order statuses missing from database: {', '.join(missing)}")


def init_db(bind: Engine = None) -> None:
    """Create tables, seed and verify reference data"""
    # Import models so they register on Base.metadata
    from jewelry_crm.models import order, product  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    db = Session(bind=bind)
    try:
        seed_reference_data(db)
        verify_reference_data(db)
    finally:
        db.close()
