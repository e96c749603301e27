from contextlib import contextmanager
from typing import Iterator, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from console_rental.core.exceptions import ConflictError, PersistenceError


def get_engine(database_url: str, pool_timeout: Optional[float] = None):
    kwargs = {"pool_pre_ping": True, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
    elif pool_timeout is not None:
        kwargs["pool_timeout"] = pool_timeout
    return create_engine(database_url, **kwargs)


def get_sessionmaker(database_url: str, pool_timeout: Optional[float] = None) -> sessionmaker:
    engine = get_engine(database_url, pool_timeout)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def translate_db_error(exc: SQLAlchemyError) -> Exception:
    if isinstance(exc, StaleDataError):
        return ConflictError("Record was modified concurrently, retry the operation")
    if isinstance(exc, IntegrityError):
        return ConflictError(f"Integrity conflict: {exc.orig}")
    return PersistenceError(f"Persistence failure: {exc}")


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Apply a block of mutations and flush them as one unit.

    Any failure inside the block or during the flush rolls the transaction
    back. Rolling back expires every loaded instance, so in-memory objects
    reload their last committed state instead of keeping half-applied changes.
    """
    try:
        yield session
        session.flush()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Flush failed, transaction rolled back: {e}")
        raise translate_db_error(e) from e
    except Exception:
        session.rollback()
        raise


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Commit failed, transaction rolled back: {e}")
        raise translate_db_error(e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
