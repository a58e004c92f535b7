# assets_availability/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from assets_availability.api import api
from assets_availability.storage.db import engine, SessionLocal
from assets_availability.storage.db_utils import create_tables, ping
from assets_availability.storage.token_registry import TokenRegistry
import logging
from assets_availability.utils.shortname import ShortNameFilter

app = FastAPI(title="assets-availability")

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(shortname)s: %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(ShortNameFilter())
log = logging.getLogger(__name__)

# the dashboard is served from another origin
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(api.router)

@app.on_event("startup")
def prepare_database():
    try:
        with SessionLocal() as db:
            ping(db)
            log.info("✅ Database connected.")
            create_tables(engine)
            TokenRegistry(db).seed()
    except Exception as e:
        log.error(f"❌ Database setup failed: {e}")
