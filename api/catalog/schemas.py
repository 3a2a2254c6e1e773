"""
Catalog API schemas (request/response models) and closed enumerations.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TokenType(str, Enum):
    ERC721 = "ERC721"  # single edition
    ERC1155 = "ERC1155"  # multi edition


class ItemStatus(str, Enum):
    CREATED = "Created"
    LISTED = "Listed"
    SOLD = "Sold"


class ActivityType(str, Enum):
    SOLD = "Sold"
    TRANSFER = "Transfer"
    OFFER = "Offer"
    LIST = "List"
    MINT = "Mint"


class AccountRelation(str, Enum):
    OWNED = "owned"
    CREATED = "created"
    FAVOURITES = "favourites"


class CreateItemRequest(BaseModel):
    art_uri: str = Field(..., min_length=1, max_length=2048)
    name: str = Field(default="", max_length=200)
    external_link: str = Field(default="", max_length=2048)
    description: str = Field(default="", max_length=5000)
    collection: str = Field(..., min_length=1, max_length=200)
    properties: dict[str, Any] = Field(default_factory=dict)
    unlockable_content: str | None = Field(default=None, max_length=5000)
    is_explicit: bool = False
    token_type: str = Field(..., min_length=1, max_length=20)
