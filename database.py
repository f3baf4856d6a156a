from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def build_engine(database_url: str, **kwargs) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    connect_args: dict[str, object] = dict(kwargs.pop("connect_args", {}))
    if is_sqlite:
        connect_args.setdefault("check_same_thread", False)
    eng = create_engine(database_url, connect_args=connect_args, **kwargs)
    if is_sqlite:
        in_memory = ":memory:" in database_url or database_url.endswith("sqlite://")
        event.listen(
            eng,
            "connect",
            _sqlite_memory_pragmas if in_memory else _sqlite_file_pragmas,
        )
    return eng


def _sqlite_file_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _sqlite_memory_pragmas(dbapi_conn, _record):
    # WAL is meaningless for :memory: databases
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def create_schema(bind: Optional[Engine] = None) -> None:
    # models must be imported so their tables are registered on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind or engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session; anything left uncommitted is rolled back."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
