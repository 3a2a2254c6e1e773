"""
Catalog error taxonomy and the uniform response envelope.

Success:  {"error": false, "data": ...}
Failure:  {"error": true, "message": "...", "code": 422}

The numeric codes are part of the public contract; keep them stable.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    code: int = 500

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFound(CatalogError):
    code = 422


class EmptyResult(CatalogError):
    code = 422


class ReferenceNotFound(CatalogError):
    code = 422


class InvalidArgument(CatalogError):
    code = 400


class Conflict(CatalogError):
    code = 501


class ConnectivityFailure(CatalogError):
    code = 500


class PersistenceFailure(CatalogError):
    code = 500


def respond(data: Any = None, *, error: bool = False, message: str = "", code: int = 200) -> dict[str, Any]:
    if error:
        return {"error": True, "message": message, "code": code}
    return {"error": False, "data": data}


def failure(exc: CatalogError) -> dict[str, Any]:
    return respond(error=True, message=exc.message, code=exc.code)


async def guard(op: str, work: Awaitable[Any]) -> dict[str, Any]:
    """
    Await `work` and wrap its outcome in the response envelope.

    Expected failures (`CatalogError`) keep their code. Anything else is an
    internal failure: logged with traceback and answered with 500.
    """
    try:
        data = await work
    except CatalogError as exc:
        if exc.code >= 500:
            logger.error("catalog_op_failed op=%s code=%s message=%s", op, exc.code, exc.message)
        else:
            logger.info("catalog_op_rejected op=%s code=%s message=%s", op, exc.code, exc.message)
        return failure(exc)
    except Exception as exc:
        logger.exception("catalog_op_crashed op=%s", op)
        return respond(error=True, message=str(exc) or exc.__class__.__name__, code=500)
    return respond(data)
