import asyncio
import logging

from celery import shared_task

from assets_availability.pipeline.runner import run_route_fetch, run_slippage_fetch
from assets_availability.scheduler.locks import provider_run_lock
from assets_availability.sources.providers.types import Provider
from assets_availability.storage.db import WorkerSessionLocal

log = logging.getLogger(__name__)

STAGGER_SECS = 60               # gap between provider chains


def _run_locked(provider: str, kind: str, pipeline) -> dict:
    with provider_run_lock(provider) as acquired:
        if not acquired:
            log.info("🔒 Another %s run is in progress; skipping %s refresh.", provider, kind)
            return {"status": "skipped", "provider": provider}

        log.info("🔄 Starting %s %s refresh…", provider, kind)
        db = WorkerSessionLocal()
        try:
            stats = asyncio.run(pipeline(provider, session=db))
        finally:
            db.close()
            WorkerSessionLocal.remove()
        return {"status": "completed", **stats.to_dict()}


@shared_task(name="refresh_routes", queue="refresh")
def refresh_routes(provider: str) -> dict:
    return _run_locked(provider, "route", run_route_fetch)


@shared_task(name="refresh_slippage", queue="refresh")
def refresh_slippage(provider: str) -> dict:
    return _run_locked(provider, "slippage", run_slippage_fetch)


@shared_task(name="dispatch_all", queue="dispatch")
def dispatch_all() -> None:
    """Per provider: routes first, then slippage over the fresh routes."""
    for i, provider in enumerate(Provider):
        log.info("🚀 Queueing %s refresh (countdown %ds)", provider.value, i * STAGGER_SECS)
        chain = refresh_routes.si(provider.value) | refresh_slippage.si(provider.value)
        chain.apply_async(countdown=i * STAGGER_SECS)
