from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _casefold(value):
    return value.casefold() if value is not None else None


def _register_sqlite_functions(dbapi_connection, connection_record):
    # SQLite's lower() only folds ASCII letters
    dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)


def build_engine(database_url: str) -> Engine:
    """
    Create the engine (and its connection pool) for the configured database URL.

    SQLite connections get a Unicode-aware casefold() SQL function.
    """
    # SQLite needs check_same_thread=False for multithreading in FastAPI
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    if database_url in IN_MEMORY_URLS:
        # a single shared connection, otherwise every session sees an empty database
        engine = create_engine(
            database_url, connect_args=connect_args, poolclass=StaticPool, future=True
        )
    else:
        engine = create_engine(database_url, connect_args=connect_args, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _register_sqlite_functions)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request):
    """
    Dependency that provides a database session and ensures proper cleanup.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
