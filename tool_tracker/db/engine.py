from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(db_url: str) -> Engine:
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True, future=True)

    # SQLite connections are shared across request threads.
    options: dict = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in db_url or db_url.rstrip("/").endswith("sqlite:"):
        options["poolclass"] = StaticPool
    return create_engine(db_url, future=True, **options)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
