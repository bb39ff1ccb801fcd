"""
Database engine and session factory for the SQL installation store.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rise_app.models import Base


def make_session_factory(database_url: str) -> sessionmaker:
    """Create engine + sessionmaker and make sure the tables exist."""
    # SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
    # File-based SQLite needs check_same_thread=False for FastAPI
    if database_url.startswith("sqlite:///:memory:") or database_url == "sqlite://":
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
        engine = create_engine(database_url, connect_args=connect_args)
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
