"""
Catalog persistence (raw SQL).

`ItemStore` is the only way the catalog touches Postgres. It exposes lookups
and scans; no business rules live here.

Conventions:
- not found is `None` / `[]`, never an exception
- every round-trip is bounded by `STORE_TIMEOUT_S`; timeouts and dropped
  connections surface as `ConnectivityFailure`
- a unique violation on insert surfaces as `Conflict`
- parameter values the driver cannot encode surface as `InvalidArgument`
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import asyncpg
from asyncpg.exceptions._base import DataError as ClientDataError

from core import db, settings

from .errors import Conflict, ConnectivityFailure, InvalidArgument, PersistenceFailure
from .filters import ITEM_COLUMNS, MAX_BIGINT, Pipeline
from .schemas import AccountRelation

logger = logging.getLogger(__name__)

# values refused as data: client-side encoding (e.g. int out of range) or sqlstate 22xxx
_CLIENT_DATA_ERRORS = (ClientDataError, asyncpg.exceptions.DataError)

_CONNECTIVITY_ERRORS = (
    asyncio.TimeoutError,
    OSError,
    asyncpg.InterfaceError,
    asyncpg.PostgresConnectionError,
)

_ITEM_SELECT = ", ".join(ITEM_COLUMNS)

_ACTIVITY_SELECT = """
    id, type, collection, nft_index AS "index", from_wallet, to_wallet, price, created_at
"""


class Executor(Protocol):
    """
    The subset of `asyncpg.Pool` the store needs.
    """

    async def fetchrow(self, query: str, *args: Any) -> Any: ...

    async def fetch(self, query: str, *args: Any) -> list[Any]: ...


@dataclass(frozen=True)
class ActivitySelector:
    collection: str
    index: str | None = None
    types: tuple[str, ...] = ()


def _json_arg(value: dict[str, Any] | None) -> str:
    """
    asyncpg does not automatically encode Python dicts for json/jsonb parameters.
    We pass JSON as a string and cast to jsonb in SQL.
    """
    return json.dumps(value or {}, ensure_ascii=True)


def _decode_item(row: dict[str, Any]) -> dict[str, Any]:
    props = row.get("properties")
    if isinstance(props, str):
        row["properties"] = json.loads(props) if props else {}
    elif props is None:
        row["properties"] = {}
    return row


class ItemStore:
    def __init__(self, executor: Executor, *, timeout_s: float | None = None) -> None:
        self._executor = executor
        self._timeout_s = timeout_s if timeout_s is not None else settings.store_timeout_s()

    async def _bounded(self, op: str, call: Any) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout_s)
        except _CLIENT_DATA_ERRORS as exc:
            logger.info("store_rejected_parameters op=%s error=%s", op, exc.__class__.__name__)
            raise InvalidArgument(f"Invalid value for {op}.") from exc
        except _CONNECTIVITY_ERRORS as exc:
            logger.warning("store_unavailable op=%s error=%s", op, exc.__class__.__name__)
            raise ConnectivityFailure(f"Could not reach the database ({op}).") from exc

    async def _fetch_one(self, op: str, sql: str, *args: Any) -> dict[str, Any] | None:
        row = await self._bounded(op, self._executor.fetchrow(sql, *args))
        return db.record_to_dict(row)

    async def _fetch_all(self, op: str, sql: str, *args: Any) -> list[dict[str, Any]]:
        rows = await self._bounded(op, self._executor.fetch(sql, *args))
        return [dict(r) for r in rows]

    async def find_item(self, collection: str, index: str) -> dict[str, Any] | None:
        """
        Oldest item at `(collection, index)`.

        Items still in `Created` state all carry the placeholder index "0", so a
        lookup of index "0" is ambiguous until minting assigns real indexes.
        """
        row = await self._fetch_one(
            "find_item",
            f"""
            SELECT {_ITEM_SELECT}
            FROM items
            WHERE collection = $1
              AND nft_index = $2
            ORDER BY id
            LIMIT 1
            """,
            collection,
            index,
        )
        return _decode_item(row) if row is not None else None

    async def find_item_by_content_ref(self, art_uri: str) -> dict[str, Any] | None:
        row = await self._fetch_one(
            "find_item_by_content_ref",
            f"""
            SELECT {_ITEM_SELECT}
            FROM items
            WHERE art_uri = $1
            LIMIT 1
            """,
            art_uri,
        )
        return _decode_item(row) if row is not None else None

    async def find_collection(self, ref: str) -> dict[str, Any] | None:
        """
        Resolve a collection by contract address, or by numeric id.
        A contract match wins over an id match.
        """
        ref = (ref or "").strip()
        collection_id = int(ref) if ref.isascii() and ref.isdigit() else None
        if collection_id is not None and collection_id > MAX_BIGINT:
            collection_id = None
        return await self._fetch_one(
            "find_collection",
            """
            SELECT id, contract, name
            FROM collections
            WHERE contract = $1
               OR ($2::bigint IS NOT NULL AND id = $2::bigint)
            ORDER BY (contract = $1) DESC
            LIMIT 1
            """,
            ref,
            collection_id,
        )

    async def find_collections(self, contracts: list[str]) -> dict[str, dict[str, Any]]:
        """
        Batch lookup keyed by contract. Missing contracts are simply absent.
        """
        if not contracts:
            return {}
        rows = await self._fetch_all(
            "find_collections",
            """
            SELECT id, contract, name
            FROM collections
            WHERE contract = ANY($1::text[])
            """,
            sorted(set(contracts)),
        )
        return {str(r["contract"]): r for r in rows}

    async def find_account(self, wallet: str) -> dict[str, Any] | None:
        return await self._fetch_one(
            "find_account",
            """
            SELECT id, wallet, name, photo_url, background_url, joined_at
            FROM accounts
            WHERE wallet = $1
            """,
            wallet,
        )

    async def list_activity(self, selector: ActivitySelector) -> list[dict[str, Any]]:
        sql, args = self._activity_where(selector)
        return await self._fetch_all(
            "list_activity",
            f"SELECT {_ACTIVITY_SELECT} FROM activities {sql} ORDER BY created_at, id",
            *args,
        )

    async def count_activity(self, selector: ActivitySelector) -> int:
        sql, args = self._activity_where(selector)
        row = await self._fetch_one(
            "count_activity",
            f"SELECT count(*) AS n FROM activities {sql}",
            *args,
        )
        return int((row or {}).get("n", 0))

    @staticmethod
    def _activity_where(selector: ActivitySelector) -> tuple[str, list[Any]]:
        args: list[Any] = [selector.collection]
        clauses = ["collection = $1"]
        if selector.index is not None:
            args.append(selector.index)
            clauses.append(f"nft_index = ${len(args)}")
        if selector.types:
            args.append(list(selector.types))
            clauses.append(f"type = ANY(${len(args)}::text[])")
        return "WHERE " + " AND ".join(clauses), args

    async def scan_items(self, pipeline: Pipeline) -> list[dict[str, Any]]:
        sql, args = pipeline.to_sql("items")
        rows = await self._fetch_all("scan_items", sql, *args)
        return [_decode_item(r) for r in rows]

    async def list_account_items(self, wallet: str, relation: AccountRelation) -> list[dict[str, Any]]:
        if relation is AccountRelation.OWNED:
            where = "owner = $1"
        elif relation is AccountRelation.CREATED:
            where = "creator = $1"
        else:
            where = """
            id IN (
              SELECT f.item_id
              FROM account_favourites f
              JOIN accounts a ON a.id = f.account_id
              WHERE a.wallet = $1
            )
            """
        rows = await self._fetch_all(
            "list_account_items",
            f"SELECT {_ITEM_SELECT} FROM items WHERE {where} ORDER BY id",
            wallet,
        )
        return [_decode_item(r) for r in rows]

    async def insert_item(self, item: dict[str, Any]) -> dict[str, Any]:
        """
        Insert one item and return it with its assigned id.

        Single-row insert: either the whole row lands or nothing does.
        """
        try:
            row = await self._fetch_one(
                "insert_item",
                f"""
                INSERT INTO items (
                  collection, nft_index, owner, creator, art_uri, name, external_link,
                  description, properties, is_explicit, lock_content, price, status,
                  status_date, token_type
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10, $11, $12, $13, $14, $15)
                RETURNING {_ITEM_SELECT}
                """,
                item["collection"],
                item["index"],
                item.get("owner"),
                item.get("creator"),
                item["art_uri"],
                item.get("name", ""),
                item.get("external_link", ""),
                item.get("description", ""),
                _json_arg(item.get("properties")),
                bool(item.get("is_explicit", False)),
                item.get("lock_content"),
                item.get("price", 0),
                item["status"],
                item["status_date"],
                item["token_type"],
            )
        except asyncpg.UniqueViolationError as exc:
            logger.info(
                "item_insert_duplicate art_uri=%s constraint=%s",
                item["art_uri"],
                getattr(exc, "constraint_name", None),
            )
            raise Conflict("Current item has been created already.") from exc
        except asyncpg.PostgresError as exc:
            logger.error("item_insert_rejected art_uri=%s error=%s", item["art_uri"], exc.__class__.__name__)
            raise PersistenceFailure("Failed to create a new item.") from exc

        if row is None or "id" not in row:
            raise PersistenceFailure("Failed to create a new item.")
        return _decode_item(row)
