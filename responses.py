"""
Success envelopes shared by all routes.
"""

from typing import Any, Dict, Optional

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from database import serialize


def success(data: Any = None, message: str = "Success", status_code: int = 200,
            meta: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = serialize(data)
    if meta:
        body["meta"] = meta
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def created(data: Any = None, message: str = "Created successfully") -> JSONResponse:
    return success(data, message, status_code=201)


def no_content() -> Response:
    return Response(status_code=204)


def paginated(result: Dict[str, Any], message: str = "Success", items: Any = None) -> JSONResponse:
    """Wrap a ``find_paginated`` result; ``items`` overrides the raw documents."""
    meta = {
        "page": result["page"],
        "limit": result["limit"],
        "total": result["total"],
        "total_pages": result["total_pages"],
    }
    return success(result["data"] if items is None else items, message, meta=meta)
