"""Translate failures into response envelopes.

Structured errors keep their code and body. Anything else becomes an
opaque 500 so handler internals never reach the remote peer.
"""

from __future__ import annotations

import logging

from ..errors import PipeError
from .envelopes import PipeRequest, PipeResponse, PipeResponseCode

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR_BODY = {"message": "Internal server error"}


def error_to_response(request_id: str, error: BaseException) -> PipeResponse:
    """Build the response for a handler that raised `error`."""
    if isinstance(error, PipeError):
        logger.debug(f"Request {request_id} failed with structured error {error.code}")
        body = error.body if error.body is not None else dict(INTERNAL_SERVER_ERROR_BODY)
        return PipeResponse(id=request_id, code=error.code, body=body)

    logger.error(
        f"Unhandled error while processing request {request_id}",
        exc_info=(type(error), error, error.__traceback__),
    )
    return PipeResponse(
        id=request_id,
        code=PipeResponseCode.INTERNAL_SERVER_ERROR,
        body=dict(INTERNAL_SERVER_ERROR_BODY),
    )


def not_found_response(request: PipeRequest) -> PipeResponse:
    """Build the 404 response for a request no route accepted."""
    return PipeResponse(
        id=request.id,
        code=PipeResponseCode.NOT_FOUND,
        body={"message": f"{request.method.value} {request.path} is not found"},
    )
