"""Engine and session factories plus the unit-of-work helper used by every service."""

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings


def _prepare_sqlite_file(url: URL) -> None:
    database = url.database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _restore_sqlite_busy_timeout(dbapi_connection, _connection_record) -> None:
    # Bid attempts shorten the busy timeout to their own deadline.
    if dbapi_connection is None:
        return
    busy_ms = int(settings.sqlite_busy_timeout_seconds * 1000)
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout = {busy_ms}")
    finally:
        cursor.close()


def _engine_options(url: URL) -> dict[str, object]:
    options: dict[str, object] = {"echo": settings.debug, "pool_pre_ping": True}
    backend = url.get_backend_name()

    if backend == "sqlite":
        # Writers on one file queue on SQLite's lock for up to ``timeout``
        # seconds before the driver reports "database is locked".
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
        return options

    options["pool_recycle"] = 300
    if backend == "postgresql":
        options["connect_args"] = {
            "keepalives": 1,
            "keepalives_idle": 120,
            "keepalives_interval": 30,
            "keepalives_count": 5,
        }
    return options


def build_db_components(database_url: str) -> tuple[Engine, sessionmaker[Session]]:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        _prepare_sqlite_file(url)

    db_engine = create_engine(url, **_engine_options(url))
    if db_engine.dialect.name == "sqlite":
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
        event.listen(db_engine, "checkin", _restore_sqlite_busy_timeout)

    factory = sessionmaker(bind=db_engine, autoflush=True, expire_on_commit=True)
    return db_engine, factory


engine, SessionLocal = build_db_components(settings.resolved_database_url)
Base = declarative_base()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Commit on success, roll back on any exception, always close."""

    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
