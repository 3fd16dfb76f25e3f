from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from travelcrm.core.config import settings


def build_engine(database_url: str) -> Engine:
    engine_kwargs: dict = {"pool_pre_ping": True}
    connect_args: dict = {}

    url = make_url(database_url)
    if url.get_backend_name() in {"postgresql", "postgres"}:
        # psycopg2/libpq option flag
        connect_args.setdefault("options", "-c client_encoding=UTF8")

    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args = {**connect_args, "check_same_thread": False}
        if ":memory:" in database_url:
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    pysqlite defers BEGIN until the first DML statement, which breaks SAVEPOINT.
    Take over transaction control so per-record savepoints in bulk inserts work.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):  # pragma: no cover
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # pragma: no cover
        conn.exec_driver_sql("BEGIN")


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
