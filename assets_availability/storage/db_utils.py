from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
from assets_availability.storage.base import Base
import logging

log = logging.getLogger(__name__)

# imported for their side effect of registering tables on Base.metadata
from assets_availability.storage.models import token, route_cache, slippage_cache, price  # noqa: E402,F401


def upsert_insert(session: Session, table):
    """
    Return the dialect-specific INSERT construct for `table` so callers can
    chain `.on_conflict_do_update(...)`. PostgreSQL in production, SQLite in tests.
    """
    dialect = session.get_bind().dialect.name
    match dialect:
        case "postgresql":
            return pg_insert(table)
        case "sqlite":
            return sqlite_insert(table)
        case _:
            raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


def create_tables(bind) -> None:
    """Create every cache table that does not exist yet."""
    Base.metadata.create_all(bind=bind)
    log.info("Tables ensured: %s", ", ".join(sorted(Base.metadata.tables)))


def ping(session: Session) -> bool:
    session.execute(text("SELECT 1"))
    return True
