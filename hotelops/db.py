from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings


Base = declarative_base()


def make_engine(url: str, **overrides):
    options = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # sync routes run in a threadpool, so the connection crosses threads
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_size=5, max_overflow=10, pool_recycle=3600)
    options.update(overrides)
    return create_engine(url, **options)


def make_session_factory(bind):
    # A fresh Session per request; no scoped_session under async workers
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
