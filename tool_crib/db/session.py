import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .base import Base


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _engine_options(db_url: str) -> dict:
    options = {"pool_pre_ping": True, "future": True}
    if db_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in db_url or db_url.rstrip("/").endswith(":"):
            # One shared connection, otherwise every session sees an empty database.
            options["poolclass"] = StaticPool
    return options


TOOL_CRIB_DB_URL = _require_env("TOOL_CRIB_DB_URL")

engine_crib = create_engine(TOOL_CRIB_DB_URL, **_engine_options(TOOL_CRIB_DB_URL))

SessionLocalCrib = sessionmaker(
    bind=engine_crib,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def init_schema() -> None:
    Base.metadata.create_all(bind=engine_crib)
