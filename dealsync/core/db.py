# dealsync/core/db.py
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from dealsync.core.config import get_settings

settings = get_settings()

Base = declarative_base()


def make_engine(database_url: str, **kwargs) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # scheduler jobs run on worker threads
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
        **kwargs,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        class_=Session,
    )


engine = make_engine(settings.database_url)

SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = None) -> None:
    # models must be imported so their tables are registered on Base
    from dealsync.models import category, deal, execution_log, rule  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def utc_now() -> datetime:
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
