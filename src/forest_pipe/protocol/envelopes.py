"""Envelope definitions for the Pipe protocol.

Requests and responses travel between peers as JSON text:

    request:  {"id": "...", "method": "GET", "path": "/offers/42", "body": ..., "params": {...}}
    response: {"id": "...", "code": 200, "body": ...}

The response `id` always echoes the request `id`; that is the only
link between the two on a transport with no ordering guarantees.
"""

from __future__ import annotations

import json
from enum import Enum, IntEnum
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import DEFAULT_QUERY_BASE
from ..errors import MalformedMessageError


class PipeMethod(str, Enum):
    """Request methods understood by the router."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class PipeResponseCode(IntEnum):
    """Pre-defined response codes for Pipe responses."""

    OK = 200
    BAD_REQUEST = 400
    NOT_AUTHORIZED = 401
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500


class PipeRequest(BaseModel):
    """A request as seen by route handlers.

    `requester` is filled in by the dispatcher from the transport's
    sender identity; whatever the sender put there is discarded.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    method: PipeMethod
    path: str
    requester: str | None = None
    body: Any = None

    # Query params. Also parsed from the path's query string.
    params: dict[str, Any] = Field(default_factory=dict)

    path_params: dict[str, str] = Field(default_factory=dict, alias="pathParams")

    @classmethod
    def from_wire(cls, content: str | bytes) -> PipeRequest:
        """Decode a raw transport payload into a request.

        Raises:
            MalformedMessageError: payload is not JSON or not a request
        """
        data = _load_object(content)
        data.pop("requester", None)
        for key in ("params", "pathParams", "path_params"):
            if key in data and data[key] is None:
                del data[key]
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedMessageError(f"not a request envelope: {e}", _text(content)) from e


class PipeResponse(BaseModel):
    """A response envelope.

    Extra keys set by a route handler travel with the envelope.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    code: int
    body: Any = None

    def to_wire(self) -> str:
        data = self.model_dump(mode="json")
        if data["body"] is None:
            del data["body"]
        return json.dumps(data)

    @classmethod
    def from_wire(cls, content: str | bytes) -> PipeResponse:
        """Decode a raw transport payload into a response.

        Raises:
            MalformedMessageError: payload is not JSON or not a response
        """
        data = _load_object(content)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedMessageError(f"not a response envelope: {e}", _text(content)) from e


class PipeSendRequest(BaseModel):
    """Content of an outbound request, as passed to ``Pipe.send``."""

    method: PipeMethod
    path: str
    body: Any = None

    # Seconds to wait for the response; falls back to the pipe config.
    # Never transmitted.
    timeout: float | None = Field(default=None, gt=0)

    # Query params. Can also be included inside the path.
    params: dict[str, Any] | None = None

    def to_wire(self, request_id: str) -> str:
        """Encode this request for transmission under `request_id`."""
        fields = self.model_dump(mode="json", exclude={"timeout"})
        data: dict[str, Any] = {"id": request_id}
        data.update((key, value) for key, value in fields.items() if value is not None)
        return json.dumps(data)


class PipeRouteHandlerResponse(BaseModel):
    """What a route handler may return."""

    code: int = PipeResponseCode.OK
    body: Any = None


def normalize_request(request: PipeRequest, base: str = DEFAULT_QUERY_BASE) -> PipeRequest:
    """Return a copy of `request` with a canonical path and merged params.

    The path gains a leading slash when missing and loses its query
    string; query parameters are merged over the declared `params`.
    """
    path = request.path if request.path.startswith("/") else f"/{request.path}"

    # A neutral scheme and host so relative paths parse the same way
    url = urlsplit(f"{base}{path}")
    query = dict(parse_qsl(url.query, keep_blank_values=True))

    return request.model_copy(
        update={
            "path": url.path or "/",
            "params": {**request.params, **query},
        }
    )


def _text(content: str | bytes) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _load_object(content: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessageError(f"invalid JSON: {e}", _text(content)) from e
    if not isinstance(data, dict):
        raise MalformedMessageError("envelope must be a JSON object", _text(content))
    return data
