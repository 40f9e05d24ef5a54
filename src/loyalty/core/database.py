"""Database session, metadata and transaction configuration."""

from __future__ import annotations

import logging
from typing import Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from .config import get_settings
from .exceptions import ConcurrentModification, LedgerWriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_PGCODES = frozenset({"40001", "40P01", "55P03"})


def enable_sqlite_immediate_transactions(engine: Engine) -> Engine:
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    SQLite ignores ``FOR UPDATE`` and pysqlite delays ``BEGIN`` until the first
    write, so balance reads would otherwise run outside the transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(database_url: str) -> Engine:
    """Create the engine for the configured backend."""

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        return enable_sqlite_immediate_transactions(engine)
    return create_engine(database_url, future=True, pool_pre_ping=True)


settings = get_settings()

engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db() -> Generator:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _is_transient(exc: DBAPIError) -> bool:
    if getattr(exc.orig, "pgcode", None) in _TRANSIENT_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


def run_in_transaction(
    session: Session,
    operation: Callable[[Session], T],
    *,
    max_attempts: int | None = None,
) -> T:
    """Run ``operation`` and commit it as one unit of work.

    Conflicts with concurrent transactions roll back and re-run the whole
    operation up to ``max_attempts`` times. Any other failure rolls back and
    propagates; storage faults surface as :class:`LedgerWriteError`.
    """

    attempts = max_attempts or get_settings().transaction_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            result = operation(session)
            session.commit()
            return result
        except (ConcurrentModification, StaleDataError) as exc:
            session.rollback()
            reason = str(exc)
        except DBAPIError as exc:
            session.rollback()
            if not _is_transient(exc):
                logger.error("storage fault, transaction rolled back: %s", exc.orig)
                raise LedgerWriteError("Storage failure while writing to the points ledger.") from exc
            reason = str(exc.orig)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("storage fault, transaction rolled back: %s", exc)
            raise LedgerWriteError("Storage failure while writing to the points ledger.") from exc
        except Exception:
            session.rollback()
            raise

        logger.warning("transaction conflict on attempt %d/%d: %s", attempt, attempts, reason)

    raise ConcurrentModification(
        f"Transaction kept conflicting with concurrent updates after {attempts} attempts."
    )
