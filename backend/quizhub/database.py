# SQLAlchemy engine/session setup and DB dependency.
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from quizhub.config import get_settings

DATABASE_URL = get_settings().database_url

# SQLite connections are handed to threadpool workers.
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Provide a SQLAlchemy session for request-scoped usage.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
