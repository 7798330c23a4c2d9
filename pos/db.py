from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from pos.config import settings

_connect_args = {}
if settings.DB_URL.startswith("sqlite"):
    # request threads share the pool; sqlite waits on a locked file instead of failing fast
    _connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(settings.DB_URL, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
