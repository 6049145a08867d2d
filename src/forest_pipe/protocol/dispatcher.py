"""Request Dispatcher - inbound side of the Pipe.

Consumes the transport's process-wide message stream, turns each
message into a request, runs the matching route handler, and sends
exactly one response back to the sender.

Per message:
    self-authored      -> dropped before parsing
    malformed          -> dropped, logged, no reply (no id to reply to)
    matched            -> handler runs, its result (or error) is sent back
    unmatched          -> 404 sent back

Every message is handled in its own task, so a slow handler never
blocks the listener and responses may go out in any order.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from ..config import DEFAULT_QUERY_BASE
from ..errors import MalformedMessageError
from ..transport.base import InboundMessage, MessageSubscription, PeerTransport
from .envelopes import PipeRequest, PipeResponse, PipeResponseCode, normalize_request
from .error_mapper import error_to_response, not_found_response
from .router import HandlerResult, Router

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Routes inbound requests to handlers and replies.

    Usage:
        dispatcher = RequestDispatcher(transport, router, is_self)
        listener = asyncio.create_task(dispatcher.listen())
    """

    def __init__(
        self,
        transport: PeerTransport,
        router: Router,
        is_self: Callable[[str], bool],
        query_base: str = DEFAULT_QUERY_BASE,
    ) -> None:
        self._transport = transport
        self._router = router
        self._is_self = is_self
        self._query_base = query_base
        self._tasks: set[asyncio.Task[PipeResponse | None]] = set()

    @property
    def pending(self) -> int:
        """Number of inbound messages still being handled."""
        return len(self._tasks)

    async def listen(self, subscription: MessageSubscription | None = None) -> None:
        """Consume inbound messages until cancelled or the stream ends.

        Pass an already attached `subscription` to make sure nothing sent
        after it was created is missed; otherwise one is opened here.
        """
        if subscription is None:
            subscription = await self._transport.subscribe_all()
        logger.info(f"Pipe listener started for {self._transport.identity}")
        try:
            async for message in subscription:
                self.dispatch(message)
        finally:
            await subscription.close()
            logger.info(f"Pipe listener stopped for {self._transport.identity}")

    def dispatch(self, message: InboundMessage) -> asyncio.Task[PipeResponse | None] | None:
        """Schedule handling of one message without waiting for it."""
        if self._is_self(message.sender):
            return None

        task = asyncio.create_task(self.handle_message(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle_message(self, message: InboundMessage) -> PipeResponse | None:
        """Handle one inbound message end to end.

        Returns the response that was sent, or None if the message was
        dropped. Never raises except on cancellation.
        """
        try:
            request = PipeRequest.from_wire(message.content)
        except MalformedMessageError as e:
            logger.warning(f"Dropping malformed message from {message.sender}: {e.reason}")
            return None

        try:
            response = await self.process_request(message.sender, request)
            await self._reply(message.sender, response)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Failed to respond to request {request.id} from {message.sender}")
            return None
        return response

    async def process_request(self, sender: str, request: PipeRequest) -> PipeResponse:
        """Route `request` and produce its response. Does not transmit."""
        request = normalize_request(request, self._query_base)
        logger.debug(f"Request {request.id}: {request.method.value} {request.path} from {sender}")

        match = self._router.match(request.method, request.path)
        if match is None:
            return not_found_response(request)

        request = request.model_copy(
            update={"requester": sender, "path_params": match.path_params}
        )
        try:
            result = match.handler(request)
            if inspect.isawaitable(result):
                result = await result
            return _merge_result(request.id, result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return error_to_response(request.id, e)

    async def drain(self) -> None:
        """Wait for all in-flight handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_pending(self) -> None:
        """Cancel in-flight handlers and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _reply(self, peer: str, response: PipeResponse) -> None:
        channel = await self._transport.open_channel(peer)
        await channel.send(response.to_wire())
        logger.debug(f"Response {response.id} ({response.code}) sent to {peer}")


def _merge_result(request_id: str, result: HandlerResult) -> PipeResponse:
    """Shallow-merge a handler result over the default 200 response.

    Keys besides ``code`` and ``body`` in a dict result are kept and
    sent alongside them.
    """
    data: dict[str, Any] = {"code": PipeResponseCode.OK}
    if isinstance(result, BaseModel):
        data.update(result.model_dump(exclude_unset=True))
    elif isinstance(result, dict):
        data.update(result)
    elif result is not None:
        raise TypeError(f"Route handler returned unsupported type {type(result).__name__}")

    # Always answer under the request's id
    data["id"] = request_id
    response = PipeResponse.model_validate(data)

    # Raises here if the body cannot be encoded for the wire
    response.to_wire()
    return response
