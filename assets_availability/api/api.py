from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from assets_availability.pipeline import runner
from assets_availability.scheduler.locks import provider_run_lock
from assets_availability.sources.providers.types import Provider
from assets_availability.storage.db import get_db
from assets_availability.storage.token_registry import TokenRegistry

log = logging.getLogger(__name__)

router = APIRouter()


def _provider(value: Optional[str]) -> Optional[Provider]:
    if value is None:
        return None
    try:
        return Provider.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.get("/tokens")
def list_tokens(db: Session = Depends(get_db)):
    try:
        return [t._asdict() for t in TokenRegistry(db).list_tokens()]
    except SQLAlchemyError:
        log.error("Error fetching tokens", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch tokens")


@router.get("/routes")
def routes(provider: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        return runner.get_routes(_provider(provider), session=db)
    except SQLAlchemyError:
        log.error("Error in /routes endpoint", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch routes")


@router.get("/slippage")
def slippage(provider: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        return runner.get_slippage(_provider(provider), session=db)
    except SQLAlchemyError:
        log.error("Error in /slippage endpoint", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch slippage data")


@router.get("/slippage/status")
def slippage_status(provider: str = "Oku", db: Session = Depends(get_db)):
    try:
        return runner.get_slippage_status(_provider(provider), session=db)
    except SQLAlchemyError:
        log.error("Error in /slippage/status endpoint", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch slippage status")


@router.post("/trigger/routes")
async def trigger_routes(provider: str, clear_existing: bool = True, db: Session = Depends(get_db)):
    name = _provider(provider).value
    with provider_run_lock(name) as acquired:
        if not acquired:
            raise HTTPException(status_code=409, detail=f"A {name} run is already in progress")
        try:
            stats = await runner.run_route_fetch(name, session=db, clear_existing=clear_existing)
        except SQLAlchemyError:
            log.error("%s route fetch aborted", name, exc_info=True)
            raise HTTPException(status_code=500, detail=f"{name} route fetch failed")
    return {"status": "completed", **stats.to_dict()}


@router.post("/trigger/slippage")
async def trigger_slippage(provider: str, db: Session = Depends(get_db)):
    name = _provider(provider).value
    with provider_run_lock(name) as acquired:
        if not acquired:
            raise HTTPException(status_code=409, detail=f"A {name} run is already in progress")
        try:
            stats = await runner.run_slippage_fetch(name, session=db)
        except SQLAlchemyError:
            log.error("%s slippage fetch aborted", name, exc_info=True)
            raise HTTPException(status_code=500, detail=f"{name} slippage fetch failed")
    return {"status": "completed", **stats.to_dict()}
