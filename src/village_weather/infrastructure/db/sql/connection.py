import os

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker


DEFAULT_DATABASE_URL = "mysql+mysqlconnector://root@localhost:3306/village_weather"

DATABASE_URL = os.getenv("VW_DATABASE_URL") or DEFAULT_DATABASE_URL
STORE_TIMEOUT_S = float(os.getenv("VW_STORE_TIMEOUT_S", "5"))


def connect_args_for(database_url: str, timeout: float) -> dict:
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        return {"timeout": timeout}
    if backend == "mysql":
        return {"connection_timeout": max(1, int(timeout))}
    if backend == "postgresql":
        return {"connect_timeout": max(1, int(timeout))}
    return {}


def build_engine(database_url: str = DATABASE_URL, timeout: float = STORE_TIMEOUT_S):
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args_for(database_url, timeout),
    )


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def configure(database_url: str, timeout: float = STORE_TIMEOUT_S) -> None:
    """Rebind the shared session factory, e.g. when settings differ from the environment."""
    global engine
    previous = engine
    engine = build_engine(database_url, timeout)
    SessionLocal.configure(bind=engine)
    previous.dispose()
