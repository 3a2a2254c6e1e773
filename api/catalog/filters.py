"""
Filter compiler: listing options -> query pipeline.

Recognized options (anything else is ignored):
- page, limit                      pagination (page is 0-based)
- sort, direction                  "price", "-price", or {"field": ..., "direction": ...}
- collection, owner, creator,
  status, token_type, is_explicit  equality predicates
- price_min, price_max,
  status_date_min, status_date_max range predicates (also {"price": {"min": .., "max": ..}})

`compile_filters` is pure: no I/O, same input -> same pipeline.
`Pipeline.to_sql` renders the stages as a parameterised Postgres query.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from core import settings

from .errors import InvalidArgument

ITEM_COLUMNS: tuple[str, ...] = (
    "id",
    "collection",
    'nft_index AS "index"',
    "owner",
    "creator",
    "art_uri",
    "name",
    "external_link",
    "description",
    "properties",
    "is_explicit",
    "lock_content",
    "price",
    "status",
    "status_date",
    "token_type",
)

# public name -> column
SORTABLE_FIELDS = {
    "id": "id",
    "price": "price",
    "status_date": "status_date",
    "name": "name",
    "index": "nft_index",
}

EQUALITY_FIELDS = {
    "collection": "collection",
    "owner": "owner",
    "creator": "creator",
    "status": "status",
    "token_type": "token_type",
    "is_explicit": "is_explicit",
}

RANGE_FIELDS = {
    "price": "price",
    "status_date": "status_date",
}

MAX_BIGINT = 2**63 - 1

DEFAULT_SORT: tuple[tuple[str, str], ...] = (("id", "ASC"),)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Predicate:
    column: str
    op: str  # "=", ">=", "<="
    value: Any


@dataclass(frozen=True)
class Pipeline:
    match: tuple[Predicate, ...] = ()
    sort: tuple[tuple[str, str], ...] = DEFAULT_SORT
    skip: int = 0
    limit: int = settings.DEFAULT_PAGE_SIZE
    projection: tuple[str, ...] = ITEM_COLUMNS

    @property
    def stages(self) -> list[tuple[str, Any]]:
        return [
            ("match", self.match),
            ("sort", self.sort),
            ("skip", self.skip),
            ("limit", self.limit),
            ("projection", self.projection),
        ]

    def to_sql(self, table: str = "items") -> tuple[str, list[Any]]:
        args: list[Any] = []
        where: list[str] = []
        for pred in self.match:
            args.append(pred.value)
            where.append(f"{pred.column} {pred.op} ${len(args)}")

        sql = f"SELECT {', '.join(self.projection)} FROM {table}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY " + ", ".join(f"{col} {direction}" for col, direction in self.sort)

        args.append(self.skip)
        sql += f" OFFSET ${len(args)}"
        args.append(self.limit)
        sql += f" LIMIT ${len(args)}"
        return sql, args


def _as_int(name: str, raw: Any) -> int:
    if isinstance(raw, bool):
        raise InvalidArgument(f"'{name}' must be an integer.")
    try:
        return int(str(raw).strip())
    except ValueError:
        raise InvalidArgument(f"'{name}' must be an integer.") from None


def _as_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise InvalidArgument(f"'{name}' must be a boolean.")


def _as_decimal(name: str, raw: Any) -> Decimal:
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidArgument(f"'{name}' must be a number.") from None
    if not value.is_finite():
        raise InvalidArgument(f"'{name}' must be a finite number.")
    return value


def _as_datetime(name: str, raw: Any) -> datetime:
    """
    Accept ISO-8601 text or epoch milliseconds.
    """
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    text = str(raw).strip()
    if text.isascii() and text.isdigit():
        try:
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidArgument(f"'{name}' is out of range.") from None
    try:
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidArgument(f"'{name}' must be an ISO timestamp or epoch milliseconds.") from None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _coerce_range(field_name: str, raw: Any, key: str) -> Any:
    if field_name == "price":
        return _as_decimal(key, raw)
    return _as_datetime(key, raw)


def _coerce_equality(field_name: str, raw: Any) -> Any:
    if field_name == "is_explicit":
        return _as_bool(field_name, raw)
    if field_name == "token_type":
        return str(raw).strip().upper().replace("-", "")
    return str(raw).strip()


def _compile_sort(config: Mapping[str, Any]) -> tuple[tuple[str, str], ...]:
    raw = config.get("sort")
    direction = config.get("direction")
    name: Any = None

    if isinstance(raw, Mapping):
        name = raw.get("field")
        direction = raw.get("direction", direction)
    elif raw is not None:
        name = str(raw).strip()
        if name.startswith("-"):
            name = name[1:]
            direction = direction or "desc"

    column = SORTABLE_FIELDS.get(str(name or "").strip())
    if column is None:
        return DEFAULT_SORT

    order = str(direction or "asc").strip().lower()
    if order not in ("asc", "desc"):
        raise InvalidArgument("'direction' must be 'asc' or 'desc'.")

    keys = ((column, order.upper()),)
    if column != "id":
        keys += (("id", "ASC"),)
    return keys


def _compile_match(config: Mapping[str, Any]) -> tuple[Predicate, ...]:
    preds: list[Predicate] = []

    for name, column in EQUALITY_FIELDS.items():
        raw = config.get(name)
        if raw is None or raw == "":
            continue
        preds.append(Predicate(column, "=", _coerce_equality(name, raw)))

    for name, column in RANGE_FIELDS.items():
        nested = config.get(name)
        bounds = nested if isinstance(nested, Mapping) else {}
        for bound, op in (("min", ">="), ("max", "<=")):
            key = f"{name}_{bound}"
            raw = config.get(key, bounds.get(bound))
            if raw is None or raw == "":
                continue
            preds.append(Predicate(column, op, _coerce_range(name, raw, key)))

    return tuple(preds)


def compile_filters(config: Mapping[str, Any] | None = None) -> Pipeline:
    config = config or {}
    max_limit = settings.max_page_size()

    page = _as_int("page", config["page"]) if config.get("page") not in (None, "") else 0
    if page < 0:
        raise InvalidArgument("'page' must be >= 0.")

    if config.get("limit") in (None, ""):
        limit = settings.default_page_size()
    else:
        limit = _as_int("limit", config["limit"])
        if limit < 1:
            raise InvalidArgument("'limit' must be >= 1.")
        limit = min(limit, max_limit)

    # OFFSET is a bigint
    if page * limit > MAX_BIGINT:
        raise InvalidArgument("'page' is out of range.")

    return Pipeline(
        match=_compile_match(config),
        sort=_compile_sort(config),
        skip=page * limit,
        limit=limit,
    )
