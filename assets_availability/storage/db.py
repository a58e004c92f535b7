from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import NullPool
from assets_availability.config.settings import DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


# celery workers fork; never share pooled connections across processes
worker_engine = create_engine(
    DATABASE_URL,
    poolclass=NullPool,
    **({"pool_pre_ping": True} if not DATABASE_URL.startswith("sqlite") else {}),
)
WorkerSessionLocal = scoped_session(
    sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=worker_engine,
    )
)

engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = scoped_session(
    sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
