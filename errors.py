"""
Typed API errors.

Every error is an ``HTTPException`` so FastAPI routes can simply raise it;
the handlers installed by ``install_error_handlers`` turn it into the
``{"success": false, "message": ..., "errors": [...]}`` body used by the
whole API.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[dict]] = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors


class BadRequestError(ApiError):
    status_code = 400
    default_message = "Bad Request"


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource conflict"


class ValidationError(ApiError):
    status_code = 422
    default_message = "Validation failed"


class TooManyRequestsError(ApiError):
    status_code = 429
    default_message = "Too many requests"


class DatabaseError(ApiError):
    status_code = 500
    default_message = "Database error"


# -----------------
# Validation formatting
# -----------------

# Swedish labels shown to editors in the admin forms
FIELD_LABELS = {
    "title": "Titel",
    "slug": "URL-slug",
    "description": "Beskrivning",
    "short_description": "Kort beskrivning",
    "product_description": "Produktbeskrivning",
    "benefits": "Fördelar",
    "certifications": "Certifieringar",
    "treatments": "Behandlingar",
    "product_images": "Produktbilder",
    "overview_image": "Översiktsbild",
    "before_after_images": "Före/efter-bilder",
    "before_image": "Före-bild",
    "after_image": "Efter-bild",
    "tech_specifications": "Tekniska specifikationer",
    "documentation": "Dokumentation",
    "purchase_info": "Köpinformation",
    "seo": "SEO",
    "categories": "Kategorier",
    "qa": "Frågor & Svar",
    "question": "Fråga",
    "answer": "Svar",
    "youtube_url": "YouTube URL",
    "rubric": "Rubrik",
    "publish_type": "Publiceringstyp",
    "visibility": "Synlighet",
    "url": "URL",
    "full_name": "Namn",
    "name": "Namn",
    "email": "E-post",
    "phone": "Telefon",
    "country_code": "Landskod",
    "country_name": "Land",
    "message": "Meddelande",
    "comment": "Kommentar",
    "gdpr_consent": "GDPR-samtycke",
}


def field_label(path: Sequence[Union[str, int]]) -> str:
    """Readable label for an error location, e.g. ``Frågor & Svar #2 → Fråga``."""
    parts: List[str] = []
    for segment in path:
        if isinstance(segment, int):
            if parts:
                parts[-1] += f" #{segment + 1}"
            else:
                parts.append(f"#{segment + 1}")
        else:
            parts.append(FIELD_LABELS.get(segment, segment))
    return " → ".join(parts)


def format_validation_errors(issues: Sequence[Dict[str, Any]]) -> List[dict]:
    formatted = []
    for issue in issues:
        loc = list(issue.get("loc", ()))
        # FastAPI prefixes request errors with where the value came from
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        msg = issue.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        formatted.append({"field": field_label(loc), "message": msg, "path": loc})
    return formatted


def validation_summary(errors: Sequence[dict]) -> str:
    if not errors:
        return "Validation failed"
    if len(errors) == 1:
        return f"Valideringsfel: {errors[0]['field']}"
    return f"{len(errors)} valideringsfel hittades"


def validation_error_from(exc: PydanticValidationError, status: int = 422) -> ApiError:
    """Convert a pydantic error raised by ``model_validate`` into an API error."""
    errors = format_validation_errors(exc.errors())
    cls = ValidationError if status == 422 else BadRequestError
    return cls(validation_summary(errors), errors=errors)


# -----------------
# Handlers
# -----------------

def _error_body(message: str, errors: Optional[List[dict]] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


async def api_error_handler(request: Request, exc: StarletteHTTPException):
    errors = getattr(exc, "errors", None)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, errors),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = format_validation_errors(exc.errors())
    logger.warning("Rejected %s %s: %d validation error(s)", request.method, request.url.path, len(errors))
    return JSONResponse(status_code=400, content=_error_body(validation_summary(errors), errors))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
