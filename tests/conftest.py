"""Shared test fixtures for the Omie receivables sync tests.

Every test gets its own SQLite warehouse (aiosqlite) and a fake Omie API
served through ``httpx.MockTransport``, so no PostgreSQL and no network are
needed.
"""

from __future__ import annotations

import json
import math
import os

# Override DATABASE_URL before importing anything from app: the Settings
# model reads .env eagerly via pydantic-settings, and the module-level
# ``engine`` in app.core.database would try to connect to PostgreSQL.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import Settings, settings
from app.core.database import create_tables
from app.services.omie.client import OmieClient
from app.services.store import WarehouseStore
from app.services.sync.audit import SyncAuditLog
from app.main import app

SYNC_TOKEN = "test-cron-secret"

# A responder returns the JSON body, or a full httpx.Response to script errors
Responder = Callable[[dict[str, Any]], Any]


def paged(data_key: str, records: list[dict], per_page: int, style: str = "default") -> Responder:
    """Serve ``records`` page by page, in either pagination style."""
    if style == "mf":
        page_field, total_field = "nPagina", "nTotPaginas"
    else:
        page_field, total_field = "pagina", "total_de_paginas"
    total = max(1, math.ceil(len(records) / per_page))

    def respond(param: dict[str, Any]) -> dict[str, Any]:
        page = param[page_field]
        return {
            total_field: total,
            data_key: records[(page - 1) * per_page : page * per_page],
        }

    return respond


class FakeOmie:
    """In-memory Omie API keyed by ``call`` name."""

    def __init__(self) -> None:
        self.routes: dict[str, Responder] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[dict[str, Any]] = []

    def route(self, call: str, responder: Responder) -> None:
        self.routes[call] = responder

    def serve_pages(
        self,
        call: str,
        data_key: str,
        records: list[dict],
        per_page: int,
        style: str = "default",
    ) -> None:
        self.routes[call] = paged(data_key, records, per_page, style)

    def fail(self, call: str, status_code: int = 500) -> None:
        """Answer every ``call`` request with ``status_code``."""
        self.failures[call] = status_code

    def params(self, call: str) -> list[dict[str, Any]]:
        """The ``param`` object of every request made for ``call``."""
        return [r["param"][0] for r in self.requests if r["call"] == call]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        call = body["call"]
        if call in self.failures:
            return httpx.Response(
                self.failures[call],
                json={"faultstring": f"{call} unavailable", "faultcode": "SOAP-ENV:Server"},
            )
        if call not in self.routes:
            return httpx.Response(
                500,
                json={"faultstring": "ERROR: Não existem registros", "faultcode": "SOAP-ENV:Client-5113"},
            )
        result = self.routes[call](body["param"][0])
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///./test.db",
        omie_base_url="https://omie.test/api/v1",
        omie_app_key="test-key",
        omie_app_secret="test-secret",
        omie_min_request_interval=0,
        omie_retry_base_delay=0,
        omie_retry_max_jitter=0,
        store_page_size=3,
        upsert_chunk_size=4,
        recalc_concurrency=2,
    )


@pytest.fixture
async def session_factory(tmp_path):
    """A fresh SQLite warehouse per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'warehouse.db'}")
    await create_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory, test_settings) -> WarehouseStore:
    # Small page and chunk sizes so paging and chunking paths are exercised
    return WarehouseStore(
        session_factory,
        page_size=test_settings.store_page_size,
        chunk_size=test_settings.upsert_chunk_size,
    )


@pytest.fixture
def audit_log(session_factory) -> SyncAuditLog:
    return SyncAuditLog(session_factory)


@pytest.fixture
def fake_omie() -> FakeOmie:
    return FakeOmie()


@pytest.fixture
async def omie_client(fake_omie, test_settings):
    client = OmieClient.from_settings(
        test_settings,
        transport=httpx.MockTransport(fake_omie.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def client(monkeypatch):
    """FastAPI test client with a known sync token."""
    monkeypatch.setattr(settings, "sync_cron_secret", SYNC_TOKEN)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {SYNC_TOKEN}"}
