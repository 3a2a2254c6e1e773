"""
Catalog read operations.

Flow for a listing:
1) Compile the filter options into a pipeline
2) Scan items with it
3) Attach a trimmed collection record to every item

Public operations return the response envelope (see `errors.respond`); the
underscore-prefixed coroutines raise `CatalogError` and are shared with the
trending ranker.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from . import errors
from .errors import EmptyResult, InvalidArgument, NotFound
from .filters import compile_filters
from .repository import ActivitySelector, ItemStore
from .schemas import AccountRelation, ActivityType

logger = logging.getLogger(__name__)

HISTORY_TYPES = (ActivityType.SOLD.value, ActivityType.TRANSFER.value)
OFFER_TYPES = (ActivityType.OFFER.value,)


def _collection_details(collection: dict[str, Any] | None) -> dict[str, Any] | None:
    if collection is None:
        return None
    return {
        "id": collection["id"],
        "contract": collection["contract"],
        "name": collection["name"],
    }


async def _require_item(store: ItemStore, collection: str, index: str) -> dict[str, Any]:
    item = await store.find_item(collection, index)
    if item is None:
        raise NotFound("item not found.")
    return item


async def _item_detail(store: ItemStore, collection: str, index: str) -> dict[str, Any]:
    item = await _require_item(store, collection, index)
    owner = await store.find_account(item["owner"]) if item.get("owner") else None
    return {**item, "ownerDetail": owner}


async def _collection_activity(
    store: ItemStore,
    collection: str,
    index: str,
    types: tuple[str, ...],
) -> list[dict[str, Any]]:
    await _require_item(store, collection, index)
    return await store.list_activity(ActivitySelector(collection=collection, types=types))


async def enriched_listing(store: ItemStore, config: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    pipeline = compile_filters(config)
    items = await store.scan_items(pipeline)
    if not items:
        raise EmptyResult("Items not found.")

    collections = await store.find_collections([str(item["collection"]) for item in items])
    enriched: list[dict[str, Any]] = []
    for item in items:
        collection = collections.get(str(item["collection"]))
        if collection is None:
            logger.warning(
                "catalog_integrity_gap item_id=%s collection=%s reason=collection_missing",
                item.get("id"),
                item["collection"],
            )
        enriched.append({**item, "collection_details": _collection_details(collection)})
    return enriched


async def _account_items(store: ItemStore, wallet: str, relation: str) -> list[dict[str, Any]]:
    try:
        rel = AccountRelation(relation)
    except ValueError:
        raise InvalidArgument(
            f"Unsupported relation '{relation}'. Allowed: {[r.value for r in AccountRelation]}"
        ) from None

    if await store.find_account(wallet) is None:
        raise NotFound("owner not found.")
    return await store.list_account_items(wallet, rel)


async def get_item_detail(store: ItemStore, collection: str, index: str) -> dict[str, Any]:
    return await errors.guard("get_item_detail", _item_detail(store, collection, index))


async def get_item_history(store: ItemStore, collection: str, index: str) -> dict[str, Any]:
    return await errors.guard(
        "get_item_history",
        _collection_activity(store, collection, index, HISTORY_TYPES),
    )


async def get_item_offers(store: ItemStore, collection: str, index: str) -> dict[str, Any]:
    return await errors.guard(
        "get_item_offers",
        _collection_activity(store, collection, index, OFFER_TYPES),
    )


async def list_items(store: ItemStore, config: Mapping[str, Any] | None = None) -> dict[str, Any]:
    return await errors.guard("list_items", enriched_listing(store, config))


async def get_account_items(store: ItemStore, wallet: str, relation: str = "owned") -> dict[str, Any]:
    return await errors.guard("get_account_items", _account_items(store, wallet, relation))
