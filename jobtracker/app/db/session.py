"""
Database session configuration
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from jobtracker.app.core.config import settings

_is_sqlite = settings.database_url.startswith("sqlite")

# SQLite connections are shared with FastAPI's threadpool; server databases get liveness checks
engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=not _is_sqlite,
)
# expire_on_commit stays on: counter updates run as SQL and are re-read after commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
