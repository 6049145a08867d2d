"""Exception hierarchy for the Pipe layer.

Shared by the router, dispatcher, correlator and handlers so every
module raises and catches the same types.

Structured errors (PipeError and subclasses) travel to the remote peer
as response envelopes. Everything else stays local.
"""

from __future__ import annotations

from typing import Any


class ForestError(Exception):
    """Base for all forest-pipe errors."""

    def __init__(self, code: int | str, message: str, meta: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = meta


class PipeError(ForestError):
    """An error that maps directly to a response code and body.

    Raise from a route handler to control the response sent back to
    the requester. Both ``code`` and ``body`` are transmitted verbatim.
    """

    def __init__(self, code: int, body: Any = None) -> None:
        super().__init__(code, f"Pipe error: {body}", {"code": code, "body": body})
        self.body = body


class PipeValidationError(PipeError):
    """400 - request body or params failed validation."""

    def __init__(self, issues: list[dict[str, Any]], message: str = "Validation error") -> None:
        super().__init__(400, {"message": message, "body": issues})
        self.issues = issues


class NotAuthorizedError(PipeError):
    """401 - requester is not allowed to perform the operation."""

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(401, {"message": message})


class NotFoundError(PipeError):
    """404 - requested resource does not exist."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(404, {"message": message})


class InternalServerError(PipeError):
    """500 raised deliberately by a handler, with a caller-chosen message."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(500, {"message": message})


class PipeTimeoutError(ForestError, TimeoutError):
    """No matching response arrived before the deadline.

    Local to the caller of ``send``; never placed on the wire.
    """

    def __init__(self, request_id: str, timeout: float) -> None:
        super().__init__(
            "timeout",
            f"Timeout achieved, no response received for request id {request_id}",
            {"request_id": request_id, "timeout": timeout},
        )
        self.request_id = request_id
        self.timeout = timeout


class MalformedMessageError(ForestError, ValueError):
    """Raw transport payload could not be decoded into an envelope."""

    def __init__(self, reason: str, content: str | None = None) -> None:
        super().__init__("malformed", f"Malformed message: {reason}", {"content": content})
        self.reason = reason


class NotInitializedError(ForestError, RuntimeError):
    """An entity was used before ``init()`` was called on it."""

    def __init__(self, entity: str) -> None:
        super().__init__("not_initialized", f"{entity} is not initialized yet")
        self.entity = entity
