"""
Catalog dependencies for FastAPI routes.
"""

from __future__ import annotations

from core import db

from .repository import ItemStore


async def get_store() -> ItemStore:
    return ItemStore(db.pool())
