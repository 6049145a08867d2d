"""Transport-agnostic Pipe protocol layer.

Synthesizes HTTP-like request/response exchanges on top of a
peer-to-peer messaging transport.

Key concepts:
- Envelopes: JSON requests and responses linked by a correlation id
- Router: first-match path routing with `:name` captures
- Dispatcher: inbound requests -> handlers -> responses
- Correlator: outbound request -> the one response with its id
"""

from .correlator import ResponseCorrelator, generate_request_id
from .dispatcher import RequestDispatcher
from .envelopes import (
    PipeMethod,
    PipeRequest,
    PipeResponse,
    PipeResponseCode,
    PipeRouteHandlerResponse,
    PipeSendRequest,
    normalize_request,
)
from .error_mapper import error_to_response, not_found_response
from .router import CompiledPath, RouteHandler, RouteMatch, Router, compile_path
from .validation import validate_body_or_params

__all__ = [
    # Envelopes
    "PipeMethod",
    "PipeRequest",
    "PipeResponse",
    "PipeResponseCode",
    "PipeRouteHandlerResponse",
    "PipeSendRequest",
    "normalize_request",
    # Routing
    "CompiledPath",
    "RouteHandler",
    "RouteMatch",
    "Router",
    "compile_path",
    # Exchange
    "RequestDispatcher",
    "ResponseCorrelator",
    "generate_request_id",
    # Errors
    "error_to_response",
    "not_found_response",
    "validate_body_or_params",
]
