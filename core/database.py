from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings

Base = declarative_base()


def create_db_engine(url: str, timeout: float = 5.0) -> Engine:
    """
    Build an engine that honours the store deadline.

    SQLite gets an explicit BEGIN on every transaction: pysqlite otherwise
    defers BEGIN and SAVEPOINT blocks would not nest inside the outer
    transaction.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_engine(url, pool_pre_ping=True, pool_timeout=timeout)


engine = create_db_engine(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
