import asyncio
import json
import logging
from typing import Optional

import typer

from assets_availability.pipeline import runner
from assets_availability.scheduler.locks import provider_run_lock
from assets_availability.sources.prices.price_lookup import PriceLookup
from assets_availability.sources.providers.types import Provider
from assets_availability.storage.cache_store import CacheStore
from assets_availability.storage.db import SessionLocal, engine
from assets_availability.storage.db_utils import create_tables
from assets_availability.storage.token_registry import TokenRegistry

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")
log = logging.getLogger(__name__)

app = typer.Typer(help="Fetch, inspect and clean cached routes and slippage")


def _provider(value: str) -> str:
    try:
        return Provider.parse(value).value
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _echo(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str, ensure_ascii=False))


@app.command("seed-tokens")
def seed_tokens():
    """Create missing tables and upsert the token registry."""
    create_tables(engine)
    with SessionLocal() as db:
        count = TokenRegistry(db).seed()
    log.info("[cli] %d tokens upserted", count)


@app.command("fetch-routes")
def fetch_routes(
    provider: str = typer.Argument(..., help="LiFi or Oku"),
    keep_existing: bool = typer.Option(False, help="Do not clear the provider's routes first"),
):
    """Run the route fetch pipeline for one provider."""
    name = _provider(provider)
    with provider_run_lock(name) as acquired:
        if not acquired:
            log.info("[cli] Another %s run holds the lock; nothing to do", name)
            raise typer.Exit(code=1)
        try:
            stats = asyncio.run(runner.run_route_fetch(name, clear_existing=not keep_existing))
        except Exception:
            log.error("[cli] Route fetch failed", exc_info=True)
            raise typer.Exit(code=1)
    _echo(stats.to_dict())


@app.command("fetch-slippage")
def fetch_slippage(provider: str = typer.Argument(..., help="LiFi or Oku")):
    """Run the slippage fetch pipeline for one provider."""
    name = _provider(provider)
    with provider_run_lock(name) as acquired:
        if not acquired:
            log.info("[cli] Another %s run holds the lock; nothing to do", name)
            raise typer.Exit(code=1)
        try:
            stats = asyncio.run(runner.run_slippage_fetch(name))
        except Exception:
            log.error("[cli] Slippage fetch failed", exc_info=True)
            raise typer.Exit(code=1)
    _echo(stats.to_dict())


@app.command("show-routes")
def show_routes(provider: Optional[str] = typer.Option(None, help="Limit to one provider")):
    data = runner.get_routes(_provider(provider) if provider else None)
    for route in data["routes"]:
        typer.echo(f"{route['provider']:>5}  {route['pair']['from']:>7} → {route['pair']['to']:<7} "
                   f"{', '.join(route['routes'][0]['dexes'])}")
    typer.echo(f"\nTotal: {data['count']} routes, last updated {data['lastUpdated']}")


@app.command("show-slippage")
def show_slippage(provider: Optional[str] = typer.Option(None, help="Limit to one provider")):
    data = runner.get_slippage(_provider(provider) if provider else None)
    for row in data["slippageData"]:
        cells = "  ".join(
            f"${k}: {'-' if v is None else f'{v:.3f}%'}" for k, v in row["amounts"].items()
        )
        typer.echo(f"{row['provider']:>5}  {row['pair']['from']:>7} → {row['pair']['to']:<7} {cells}")
    typer.echo(f"\nTotal: {data['count']} pairs, calculation {data['calculationTimestamp']}")


@app.command("slippage-status")
def slippage_status(provider: str = typer.Argument("Oku")):
    _echo(runner.get_slippage_status(_provider(provider)))


@app.command("cleanup-routes")
def cleanup_routes(
    provider: Optional[str] = typer.Option(None, help="Delete only this provider's routes"),
    older_than: Optional[int] = typer.Option(None, help="Delete routes fetched more than N days ago"),
    all_routes: bool = typer.Option(False, "--all", help="Delete every cached route"),
):
    """Remove cached routes by provider, by age, or all of them."""
    name = _provider(provider) if provider else None
    if not (name or older_than is not None or all_routes):
        raise typer.BadParameter("Pass --provider, --older-than or --all")
    with SessionLocal() as db:
        store = CacheStore(db)
        if older_than is not None:
            deleted = store.delete_routes_older_than(older_than, name)
        else:
            deleted = store.clear_routes(name)
    log.info("[cli] Deleted %d routes", deleted)


@app.command("route-stats")
def route_stats():
    with SessionLocal() as db:
        _echo(CacheStore(db).route_stats())


@app.command("prices")
def prices():
    """Latest USD price per token, as the pipelines will see them."""
    with SessionLocal() as db:
        lookup = PriceLookup(db)
        for row in lookup.latest_rows():
            typer.echo(f"{row.token:>8}  ${float(row.usd_price):>14,.6f}  {row.timestamp}")
        typer.echo(f"\nEffective prices: {len(lookup.latest_prices())} tokens")


def main():
    app()

if __name__ == "__main__":
    main()
