from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import os

# Get DB connection string from environment variables.
# Defaults to a local SQLite file; deployments point this at PostgreSQL.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./orders.db")


def _engine_options(url):
    """SQLite needs cross-thread access, and in-memory databases one shared connection."""
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# Create the SQLAlchemy engine.
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create a configured "Session" class for database interactions.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative ORM models.
Base = declarative_base()

def get_db():
    """FastAPI dependency to get a DB session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        # Ensure the session is always closed after the request is finished.
        db.close()
