"""
Catalog API endpoints.

Every endpoint answers with the catalog envelope; the HTTP status mirrors the
envelope `code` on failure.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from . import creation, schemas, service, trending
from .dependencies import get_store
from .repository import ItemStore

router = APIRouter()


def _reply(envelope: dict[str, Any]) -> JSONResponse:
    status_code = int(envelope["code"]) if envelope.get("error") else 200
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope))


@router.get("/items")
async def list_items(request: Request, store: ItemStore = Depends(get_store)) -> JSONResponse:
    """
    Filtered, paginated listing. Filter options come from the query string.
    """
    return _reply(await service.list_items(store, dict(request.query_params)))


@router.get("/items/trending")
async def trending_items(
    request: Request,
    k: int | None = Query(default=None, ge=1, le=100),
    store: ItemStore = Depends(get_store),
) -> JSONResponse:
    config = {key: value for key, value in request.query_params.items() if key != "k"}
    return _reply(await trending.trending_items(store, config, k))


@router.post("/items")
async def create_item(
    payload: schemas.CreateItemRequest,
    store: ItemStore = Depends(get_store),
) -> JSONResponse:
    return _reply(await creation.create_item(store, payload))


@router.get("/items/{collection}/{index}")
async def get_item_detail(collection: str, index: str, store: ItemStore = Depends(get_store)) -> JSONResponse:
    return _reply(await service.get_item_detail(store, collection, index))


@router.get("/items/{collection}/{index}/history")
async def get_item_history(collection: str, index: str, store: ItemStore = Depends(get_store)) -> JSONResponse:
    return _reply(await service.get_item_history(store, collection, index))


@router.get("/items/{collection}/{index}/offers")
async def get_item_offers(collection: str, index: str, store: ItemStore = Depends(get_store)) -> JSONResponse:
    return _reply(await service.get_item_offers(store, collection, index))


@router.get("/accounts/{wallet}/items")
async def get_account_items(
    wallet: str,
    relation: str = Query(default="owned", max_length=20),
    store: ItemStore = Depends(get_store),
) -> JSONResponse:
    return _reply(await service.get_account_items(store, wallet, relation))
