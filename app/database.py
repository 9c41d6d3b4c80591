"""
Database engine, session management, unit of work, and table creation.
Uses SQLAlchemy with SQLite or PostgreSQL. Nothing here is created at import
time: create_app() builds the engine and session factory and keeps them on
app.state, and every component receives its Session explicitly.
"""

from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.exceptions import StorageError
from app.utils.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def build_engine(database_url: str, pool_size: int = 10, max_overflow: int = 20,
                 echo: bool = False) -> Engine:
    """Create an engine. SQLite gets thread-shared connections, others a sized pool."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Transactional boundary for multi-row writes.
    Commits on success; on any error rolls back every write made inside the
    block. Integrity violations are re-raised as-is so callers can map them to
    business errors; other storage failures become StorageError.
    """
    try:
        yield db
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Storage failure, transaction rolled back: {exc}", exc_info=True)
        raise StorageError("The operation could not be saved") from exc
    except Exception:
        db.rollback()
        raise


def create_tables(engine: Engine):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.user import User              # noqa
    from app.models.slot import Slot              # noqa
    from app.models.vehicle import Vehicle        # noqa
    from app.models.driver import Driver          # noqa
    from app.models.ticket import Ticket          # noqa
    from app.models.payment import Payment        # noqa
    from app.models.shift import Shift            # noqa

    Base.metadata.create_all(bind=engine)
