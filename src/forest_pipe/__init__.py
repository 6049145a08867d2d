"""forest-pipe - HTTP-like request/response over peer-to-peer messaging.

Usage:
    from forest_pipe import Pipe, PipeMethod
    from forest_pipe.transport import MemoryNetwork

    network = MemoryNetwork()

    provider = Pipe()
    provider.route(PipeMethod.GET, "/offers/:id", lambda req: {"body": {"id": req.path_params["id"]}})
    await provider.init(network.connect("0xprovider"))

    user = Pipe()
    await user.init(network.connect("0xuser"))
    response = await user.send("0xprovider", method="GET", path="/offers/42")
"""

from .config import PipeConfig
from .errors import (
    ForestError,
    InternalServerError,
    MalformedMessageError,
    NotAuthorizedError,
    NotFoundError,
    NotInitializedError,
    PipeError,
    PipeTimeoutError,
    PipeValidationError,
)
from .pipe import Pipe
from .protocol import (
    PipeMethod,
    PipeRequest,
    PipeResponse,
    PipeResponseCode,
    PipeRouteHandlerResponse,
    PipeSendRequest,
    validate_body_or_params,
)

__all__ = [
    # Pipe
    "Pipe",
    "PipeConfig",
    # Envelopes
    "PipeMethod",
    "PipeRequest",
    "PipeResponse",
    "PipeResponseCode",
    "PipeRouteHandlerResponse",
    "PipeSendRequest",
    "validate_body_or_params",
    # Errors
    "ForestError",
    "PipeError",
    "PipeValidationError",
    "NotAuthorizedError",
    "NotFoundError",
    "InternalServerError",
    "PipeTimeoutError",
    "MalformedMessageError",
    "NotInitializedError",
]
