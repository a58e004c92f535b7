import json
import os
import pathlib

from dotenv import load_dotenv

# Automatically load .env from project root
load_dotenv(dotenv_path=pathlib.Path(__file__).parent.parent.parent / ".env")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RUN_LOCKS_ENABLED"] = "false"

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assets_availability.storage.db_utils import create_tables
from assets_availability.storage.token_registry import TokenRegistry

TEST_TOKENS = {
    "AAA": ("0x" + "11" * 20, 18),
    "BBB": ("0x" + "22" * 20, 6),
    "CCC": ("0x" + "33" * 20, 8),
}

# fast clients: no waits between retries
FAST = {"retry_interval": 0, "max_attempts": 3}
FAST_OKU = {**FAST, "quotes_retry_interval": 0, "quotes_max_attempts": 2}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with Session() as db:
        yield db


@pytest.fixture
def tokens(session):
    registry = TokenRegistry(session)
    registry.seed(TEST_TOKENS)
    return registry.by_symbol()


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def body_of(request: httpx.Request) -> dict:
    return json.loads(request.content) if request.content else {}


class FakeOku:
    """
    Scripted Oku endpoint. `update_script` / `quotes_script` hold responses
    to hand out first; once empty every call succeeds.
    """

    def __init__(self, update_script=None, quotes_script=None, quotes=None):
        self.update_script = list(update_script or [])
        self.quotes_script = list(quotes_script or [])
        self.quotes = quotes if quotes is not None else all_markets_quotes()
        self.calls = []
        self.orders = 0

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    def bodies(self, method: str) -> list:
        return [b for m, b in self.calls if m == method]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        body = body_of(request)
        self.calls.append((method, body))
        if method == "Create":
            self.orders += 1
            return httpx.Response(200, json={"orderId": f"order-{self.orders}"})
        if method == "UpdateQuoteParams":
            if self.update_script:
                return self.update_script.pop(0)
            return httpx.Response(200, json={"generation": "1", "orderId": body.get("orderId")})
        if method == "GetNewQuotes":
            if self.quotes_script:
                return self.quotes_script.pop(0)
            return httpx.Response(200, json={"quotes": self.quotes})
        return httpx.Response(404, json={"message": "unknown method"})


def order_closed() -> httpx.Response:
    return httpx.Response(500, json={"code": "internal", "message": "order already completed or canceled"})


def all_markets_quotes(in_amount="500", out_amount="247.5", simulation_failed=()):
    return {
        router: {
            "router": router,
            "fetched": True,
            "quoteId": f"q-{router}",
            "quote": {
                "inAmount": in_amount,
                "outAmount": out_amount,
                "simulationError": {"message": "reverted"} if router in simulation_failed else None,
            },
        }
        for router in ("threeroute", "usor")
    }
