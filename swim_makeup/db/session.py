from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from swim_makeup.core.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are shared between the API threadpool and the
    # scheduler thread.
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# The engine is the entry point to the database. It's configured with the
# database URL and handles the connection pooling.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

# SessionLocal is a factory for creating new Session objects.
# Think of a session as a temporary workspace for all your database
# operations within a single request.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
