"""
Trending ranker: top-K items of a listing page by offer count.

Cost is one count query per listed item, so the page size (bounded by the
filter compiler) bounds the work.
"""

from __future__ import annotations

from typing import Any, Mapping

from core import settings

from . import errors
from .errors import InvalidArgument
from .repository import ActivitySelector, ItemStore
from .schemas import ActivityType
from .service import enriched_listing


def rank_by_offers(items: list[dict[str, Any]], k: int) -> list[dict[str, Any]]:
    # sorted() is stable: equal counts keep scan order
    return sorted(items, key=lambda item: item["counts"], reverse=True)[:k]


async def _trending(store: ItemStore, config: Mapping[str, Any] | None, k: int | None) -> list[dict[str, Any]]:
    k = settings.trending_k() if k is None else k
    if k < 1:
        raise InvalidArgument("'k' must be >= 1.")

    items = await enriched_listing(store, config)
    counted: list[dict[str, Any]] = []
    for item in items:
        selector = ActivitySelector(
            collection=str(item["collection"]),
            index=str(item["index"]),
            types=(ActivityType.OFFER.value,),
        )
        counted.append({**item, "counts": await store.count_activity(selector)})
    return rank_by_offers(counted, k)


async def trending_items(
    store: ItemStore,
    config: Mapping[str, Any] | None = None,
    k: int | None = None,
) -> dict[str, Any]:
    return await errors.guard("trending_items", _trending(store, config, k))
