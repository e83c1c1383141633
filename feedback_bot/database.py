from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from feedback_bot.config import settings

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create engine; SQLite sessions are shared between the poller thread and request threads.

    `echo` logs every SQL statement (DEBUG=true).
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, echo=echo)


engine = build_engine(settings.database_url, echo=settings.debug)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create tables (and the SQLite database directory) if missing."""
    import feedback_bot.models  # noqa: F401

    bind = bind or engine
    if bind.url.get_backend_name() == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        Path(bind.url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=bind)
