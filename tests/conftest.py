"""Shared test fixtures.

`FakeStore` is an in-memory stand-in for `catalog.repository.ItemStore` with
the same coroutine interface. It yields to the event loop on every call so
concurrent requests interleave the way they do against Postgres.
"""

import asyncio
import itertools
import operator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from catalog.dependencies import get_store
from catalog.errors import Conflict, ConnectivityFailure
from catalog.filters import Pipeline
from catalog.repository import ActivitySelector
from catalog.schemas import AccountRelation
from main import app

_COLUMN_TO_KEY = {"nft_index": "index"}
_OPS = {"=": operator.eq, ">=": operator.ge, "<=": operator.le}

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self) -> None:
        self.items: list[dict[str, Any]] = []
        self.collections: list[dict[str, Any]] = []
        self.accounts: list[dict[str, Any]] = []
        self.activities: list[dict[str, Any]] = []
        self.favourites: list[tuple[str, int]] = []
        self.inserts = 0
        self.unavailable = False
        self._ids = itertools.count(1)

    # seeding helpers

    def add_collection(self, contract: str, name: str) -> dict[str, Any]:
        row = {"id": next(self._ids), "contract": contract, "name": name}
        self.collections.append(row)
        return row

    def add_account(self, wallet: str, name: str = "") -> dict[str, Any]:
        row = {
            "id": next(self._ids),
            "wallet": wallet,
            "name": name,
            "photo_url": "",
            "background_url": "",
            "joined_at": BASE_TIME,
        }
        self.accounts.append(row)
        return row

    def add_item(self, collection: str, index: str, art_uri: str, **fields: Any) -> dict[str, Any]:
        row = {
            "id": next(self._ids),
            "collection": collection,
            "index": index,
            "owner": None,
            "creator": None,
            "art_uri": art_uri,
            "name": "",
            "external_link": "",
            "description": "",
            "properties": {},
            "is_explicit": False,
            "lock_content": None,
            "price": 0,
            "status": "Listed",
            "status_date": BASE_TIME,
            "token_type": "ERC721",
        }
        row.update(fields)
        self.items.append(row)
        return row

    def add_activity(self, type_: str, collection: str, index: str, minutes: int = 0) -> dict[str, Any]:
        row = {
            "id": next(self._ids),
            "type": type_,
            "collection": collection,
            "index": index,
            "from_wallet": None,
            "to_wallet": None,
            "price": None,
            "created_at": BASE_TIME + timedelta(minutes=minutes),
        }
        self.activities.append(row)
        return row

    # ItemStore interface

    async def _tick(self) -> None:
        await asyncio.sleep(0)
        if self.unavailable:
            raise ConnectivityFailure("Could not reach the database (fake).")

    async def find_item(self, collection: str, index: str) -> dict[str, Any] | None:
        await self._tick()
        for item in self.items:
            if item["collection"] == collection and item["index"] == index:
                return dict(item)
        return None

    async def find_item_by_content_ref(self, art_uri: str) -> dict[str, Any] | None:
        await self._tick()
        for item in self.items:
            if item["art_uri"] == art_uri:
                return dict(item)
        return None

    async def find_collection(self, ref: str) -> dict[str, Any] | None:
        await self._tick()
        for row in self.collections:
            if row["contract"] == ref:
                return dict(row)
        for row in self.collections:
            if str(row["id"]) == ref:
                return dict(row)
        return None

    async def find_collections(self, contracts: list[str]) -> dict[str, dict[str, Any]]:
        await self._tick()
        return {row["contract"]: dict(row) for row in self.collections if row["contract"] in contracts}

    async def find_account(self, wallet: str) -> dict[str, Any] | None:
        await self._tick()
        for row in self.accounts:
            if row["wallet"] == wallet:
                return dict(row)
        return None

    def _select(self, selector: ActivitySelector) -> list[dict[str, Any]]:
        rows = [
            row
            for row in self.activities
            if row["collection"] == selector.collection
            and (selector.index is None or row["index"] == selector.index)
            and (not selector.types or row["type"] in selector.types)
        ]
        return sorted(rows, key=lambda row: (row["created_at"], row["id"]))

    async def list_activity(self, selector: ActivitySelector) -> list[dict[str, Any]]:
        await self._tick()
        return [dict(row) for row in self._select(selector)]

    async def count_activity(self, selector: ActivitySelector) -> int:
        await self._tick()
        return len(self._select(selector))

    async def scan_items(self, pipeline: Pipeline) -> list[dict[str, Any]]:
        await self._tick()
        rows = list(self.items)
        for pred in pipeline.match:
            key = _COLUMN_TO_KEY.get(pred.column, pred.column)
            rows = [row for row in rows if _OPS[pred.op](row[key], pred.value)]
        for column, direction in reversed(pipeline.sort):
            key = _COLUMN_TO_KEY.get(column, column)
            rows.sort(key=lambda row: row[key], reverse=direction == "DESC")
        return [dict(row) for row in rows[pipeline.skip : pipeline.skip + pipeline.limit]]

    async def list_account_items(self, wallet: str, relation: AccountRelation) -> list[dict[str, Any]]:
        await self._tick()
        if relation is AccountRelation.OWNED:
            rows = [row for row in self.items if row["owner"] == wallet]
        elif relation is AccountRelation.CREATED:
            rows = [row for row in self.items if row["creator"] == wallet]
        else:
            ids = {item_id for (w, item_id) in self.favourites if w == wallet}
            rows = [row for row in self.items if row["id"] in ids]
        return [dict(row) for row in rows]

    async def insert_item(self, item: dict[str, Any]) -> dict[str, Any]:
        await self._tick()
        # mirrors the UNIQUE (art_uri) constraint
        if any(row["art_uri"] == item["art_uri"] for row in self.items):
            raise Conflict("Current item has been created already.")
        row = {**item, "id": next(self._ids)}
        self.items.append(row)
        self.inserts += 1
        return dict(row)


class ScriptedExecutor:
    """Records every query and answers with canned rows (or raises).

    Stands in for the asyncpg pool handed to a real `ItemStore`.
    """

    def __init__(self, rows: Any = None, exc: BaseException | None = None, delay: float = 0.0) -> None:
        self.rows = rows
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple[str, tuple]] = []

    async def _answer(self, query: str, args: tuple) -> Any:
        self.calls.append((" ".join(query.split()), args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.rows

    async def fetchrow(self, query: str, *args: Any) -> Any:
        return await self._answer(query, args)

    async def fetch(self, query: str, *args: Any) -> list[Any]:
        return await self._answer(query, args)


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def cats_store(store: FakeStore) -> FakeStore:
    """Collection 0xA "Cats" with item #3 (ipfs://x) owned by 0xOwner."""
    store.add_collection("0xA", "Cats")
    store.add_account("0xOwner", "Alice")
    store.add_item("0xA", "3", "ipfs://x", owner="0xOwner", price=5)
    return store


@pytest.fixture()
def client(store: FakeStore) -> TestClient:
    """FastAPI TestClient wired to the in-memory store (no DB pool)."""

    async def _override_get_store() -> FakeStore:
        return store

    app.dependency_overrides[get_store] = _override_get_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_store, None)
