from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from gallery_api.core.config import settings
from gallery_api.db.models import Base


def normalize_database_url(url: str) -> str:
    """Use the psycopg (v3) driver for postgresql:// URLs and require SSL, as cloud Postgres expects."""
    if url.startswith("postgresql://") and "+" not in url.split("?")[0]:
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    if "postgresql" in url and "sslmode" not in url:
        url += "?sslmode=require" if "?" not in url else "&sslmode=require"
    return url


database_url = normalize_database_url(settings.database_url)

connect_args = {} if "postgresql" in database_url else {"check_same_thread": False}
engine = create_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create missing tables (CREATE TABLE IF NOT EXISTS semantics). Safe to call repeatedly."""
    Base.metadata.create_all(bind=engine)
