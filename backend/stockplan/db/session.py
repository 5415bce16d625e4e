"""
Database session management
"""
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from stockplan.core.settings import settings
from stockplan.logging_config import get_logger

logger = get_logger(__name__)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT (begin_nested) works.

    The ledger uses nested transactions to recover from insert races on the
    (material, warehouse, batch) key.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine for ``url``; SQLite URLs get savepoint support."""
    if make_url(url).get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(url, **kwargs)
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(
        url,
        echo=kwargs.pop("echo", settings.DB_ECHO),
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,  # Recycle connections after 1 hour
        **kwargs,
    )


connection_string = settings.database_url

# Log connection info (without password)
logger.info(f"Database connection: {make_url(connection_string).render_as_string(hide_password=True)}")

engine = build_engine(connection_string)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency for getting database session

    Usage in FastAPI endpoints:
        @router.get("/runs")
        def list_runs(db: Session = Depends(get_db)):
            return MRPService(db).list_runs()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction_scope(db: Session):
    """
    Commit the session when the block succeeds; roll back and re-raise otherwise.

    Every workflow operation (receive a PO, pick a WO, apply an MRP run) runs
    inside exactly one scope, so its ledger writes and status changes land
    together or not at all.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
