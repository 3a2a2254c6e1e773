"""
Item creation workflow.

Steps:
1) Reject a content reference that already has an item (Conflict, 501)
2) Resolve the collection reference (ReferenceNotFound, 422)
3) Build the new item in its initial `Created` state
4) Insert it

Steps 1 and 4 are separate round-trips. Two concurrent creates for the same
content can both pass step 1; `items.art_uri` is UNIQUE, so the slower insert
fails and the store reports it as Conflict. Exactly one create wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from . import errors
from .errors import Conflict, InvalidArgument, ReferenceNotFound
from .repository import ItemStore
from .schemas import CreateItemRequest, ItemStatus, TokenType

logger = logging.getLogger(__name__)

# index assignment happens at mint time, outside this service
INITIAL_INDEX = "0"


def normalize_token_type(label: str | None) -> TokenType:
    key = (label or "").strip().upper().replace("-", "").replace("_", "")
    try:
        return TokenType(key)
    except ValueError:
        raise InvalidArgument(
            f"Unsupported token type '{label}'. Allowed: {[t.value for t in TokenType]}"
        ) from None


def build_item(request: CreateItemRequest, *, contract: str, token_type: TokenType) -> dict[str, Any]:
    return {
        "collection": contract,
        "index": INITIAL_INDEX,
        "owner": None,
        "creator": None,
        "art_uri": request.art_uri.strip(),
        "price": 0,
        "name": request.name or "",
        "external_link": request.external_link or "",
        "description": request.description or "",
        "is_explicit": bool(request.is_explicit),
        "status": ItemStatus.CREATED.value,
        "status_date": datetime.now(timezone.utc),
        "properties": dict(request.properties or {}),
        "lock_content": request.unlockable_content,
        "token_type": token_type.value,
    }


async def _create(store: ItemStore, request: CreateItemRequest) -> dict[str, Any]:
    art_uri = request.art_uri.strip()
    if not art_uri:
        raise InvalidArgument("'art_uri' is required.")

    existing = await store.find_item_by_content_ref(art_uri)
    if existing is not None:
        raise Conflict("Current item has been created already.")

    collection = await store.find_collection(request.collection)
    if collection is None:
        raise ReferenceNotFound("collection not found.")

    token_type = normalize_token_type(request.token_type)

    item = build_item(request, contract=str(collection["contract"]), token_type=token_type)
    created = await store.insert_item(item)
    logger.info(
        "item_created id=%s collection=%s token_type=%s",
        created.get("id"),
        created.get("collection"),
        created.get("token_type"),
    )
    return created


async def create_item(store: ItemStore, request: CreateItemRequest) -> dict[str, Any]:
    return await errors.guard("create_item", _create(store, request))
