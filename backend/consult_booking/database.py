from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from .config import settings


def build_engine(url: str, **engine_kwargs) -> Engine:
    """
    Create an engine; SQLite gets check_same_thread=False (FastAPI runs
    sync endpoints in a thread pool) and foreign keys switched on.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True, **engine_kwargs)

    engine = create_engine(url, connect_args={"check_same_thread": False}, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = build_engine(settings.resolved_database_url)

# Session factory for request handlers and background jobs
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
