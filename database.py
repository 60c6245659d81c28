from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    Build the SQLAlchemy engine (and its connection pool) for the given URL.

    SQLite connections are shared across FastAPI's worker threads, so the
    same-thread check is turned off for that dialect only.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """
    FastAPI dependency that provides a database session bound to the
    application's engine and makes sure it is closed after the request.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
