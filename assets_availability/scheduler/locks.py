from contextlib import contextmanager
import logging

from redis import Redis
from redlock import Redlock

from assets_availability.config.settings import REDIS_URL, RUN_LOCK_TTL_MS, RUN_LOCKS_ENABLED

log = logging.getLogger(__name__)

# one lock per provider: route and slippage runs for the same provider never overlap
LOCKER = Redlock([Redis.from_url(REDIS_URL)])


def lock_name(provider: str) -> str:
    return f"assets_availability:run:{provider.lower()}"


@contextmanager
def provider_run_lock(provider: str, ttl_ms: int = RUN_LOCK_TTL_MS):
    """
    Yield True while holding the provider's run lock, False if another run
    holds it. With RUN_LOCKS_ENABLED=false this always yields True.
    """
    if not RUN_LOCKS_ENABLED:
        yield True
        return

    lock = LOCKER.lock(lock_name(provider), ttl_ms)
    log.info("🔒 Run lock for %s acquired: %s", provider, bool(lock))
    if not lock:
        yield False
        return
    try:
        yield True
    finally:
        LOCKER.unlock(lock)
