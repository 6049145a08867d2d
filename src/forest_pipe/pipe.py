"""Pipe - HTTP-like request/response between two peers.

A Pipe owns one endpoint on a peer-to-peer transport. It can serve
routes (inbound requests) and send requests (outbound), or both.

Lifecycle:
    pipe = Pipe()
    await pipe.init(transport)     # bind the transport
    pipe.route("GET", "/offers/:id", get_offer)   # first route starts the listener
    response = await pipe.send("0xprovider", method="GET", path="/offers/42")
    await pipe.close()             # stop listener, close transport

Routes may also be registered before ``init``; the listener then
starts as part of ``init``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from .config import PipeConfig
from .errors import NotInitializedError
from .protocol.correlator import ResponseCorrelator
from .protocol.dispatcher import RequestDispatcher
from .protocol.envelopes import PipeMethod, PipeResponse, PipeSendRequest
from .protocol.router import RouteHandler, Router
from .transport.base import MessageSubscription, PeerTransport

logger = logging.getLogger(__name__)


class Pipe:
    """Request/response endpoint over a peer-to-peer transport."""

    def __init__(
        self,
        config: PipeConfig | None = None,
        *,
        is_self: Callable[[str], bool] | None = None,
    ) -> None:
        """Create an uninitialized pipe.

        Args:
            config: Timeouts and parsing settings (default: PipeConfig())
            is_self: Identity check used to drop this endpoint's own
                messages. Defaults to equality with the transport identity.
        """
        self.config = config or PipeConfig()
        self.router = Router()
        self._is_self_override = is_self
        self._transport: PeerTransport | None = None
        self._dispatcher: RequestDispatcher | None = None
        self._correlator: ResponseCorrelator | None = None
        self._listener: asyncio.Task[None] | None = None
        self._startup: asyncio.Task[None] | None = None
        self._subscription: MessageSubscription | None = None
        self._auto_start = True

    @property
    def is_initialized(self) -> bool:
        return self._transport is not None

    @property
    def is_listening(self) -> bool:
        return self._listener is not None and not self._listener.done()

    @property
    def transport(self) -> PeerTransport:
        if self._transport is None:
            raise NotInitializedError("Pipe")
        return self._transport

    @property
    def dispatcher(self) -> RequestDispatcher:
        if self._dispatcher is None:
            raise NotInitializedError("Pipe")
        return self._dispatcher

    async def init(self, transport: PeerTransport) -> None:
        """Bind the pipe to a transport.

        Starts the listener right away if routes were registered earlier.
        """
        if self._transport is not None:
            raise RuntimeError("Pipe is already initialized")

        identity = transport.identity
        is_self = self._is_self_override or (lambda sender: sender == identity)

        self._transport = transport
        self._dispatcher = RequestDispatcher(
            transport, self.router, is_self, query_base=self.config.query_base
        )
        self._correlator = ResponseCorrelator(
            transport,
            is_self,
            default_timeout=self.config.timeout,
            grace_delay=self.config.grace_delay,
        )
        logger.info(f"Pipe initialized for {identity}")

        if len(self.router):
            await self.start()

    def route(
        self,
        method: PipeMethod | str,
        path: str,
        handler: RouteHandler | None = None,
    ) -> Any:
        """Set up a handler for a `path` and `method` pair.

        The handler receives the PipeRequest and may return None, a
        PipeRouteHandlerResponse, or a ``{"code", "body"}`` dict, sync or
        async. Other keys in a returned dict are sent with the response.
        Outside a running event loop the listener is left for start().
        Without `handler`, returns a decorator:

            @pipe.route("GET", "/offers/:id")
            async def get_offer(req): ...
        """
        if handler is None:

            def decorator(func: RouteHandler) -> RouteHandler:
                self.route(method, path, func)
                return func

            return decorator

        self.router.register(method, path, handler)
        logger.debug(f"Route registered: {PipeMethod(method).value} {path}")

        # The first route on an initialized pipe starts the listener
        if self.is_initialized and self._auto_start and self._startup is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop, listener waits for start()")
                return handler
            self._auto_start = False
            self._startup = loop.create_task(self._start_listener())
            self._startup.add_done_callback(self._on_listener_done)
        return handler

    async def start(self) -> None:
        """Start the inbound listener. Does nothing if already running.

        Returns once the listener is attached to the transport.
        """
        self._check_init()
        self._auto_start = False
        if self._startup is None:
            self._startup = asyncio.create_task(self._start_listener())
        await self._startup

    async def stop(self) -> None:
        """Stop the listener and cancel in-flight handlers."""
        startup, self._startup = self._startup, None
        if startup is not None and not startup.done():
            startup.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await startup

        listener, self._listener = self._listener, None
        if listener is not None:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener

        # A listener cancelled before its first step never closes its subscription
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

        if self._dispatcher is not None:
            await self._dispatcher.cancel_pending()

    async def send(
        self,
        to: str,
        request: PipeSendRequest | None = None,
        **fields: Any,
    ) -> PipeResponse:
        """Send a request to `to` and wait for its response.

        Pass either a PipeSendRequest or its fields as keywords
        (method, path, body, params, timeout).

        Raises:
            PipeTimeoutError: no response within the timeout
            NotInitializedError: init() has not been called
        """
        if self._correlator is None:
            raise NotInitializedError("Pipe")
        if request is None:
            request = PipeSendRequest(**fields)
        elif fields:
            raise TypeError("Pass either a PipeSendRequest or keyword fields, not both")
        return await self._correlator.send(to, request)

    async def close(self) -> None:
        """Close the pipe and its transport."""
        transport = self.transport
        await self.stop()
        await transport.close()

    async def __aenter__(self) -> Pipe:
        self._check_init()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _start_listener(self) -> None:
        dispatcher = self.dispatcher
        # Attach before spawning so messages sent from now on are buffered
        subscription = await self.transport.subscribe_all()
        self._subscription = subscription
        self._listener = asyncio.create_task(dispatcher.listen(subscription))
        self._listener.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Pipe listener crashed",
                exc_info=(type(error), error, error.__traceback__),
            )

    def _check_init(self) -> None:
        if self._transport is None:
            raise NotInitializedError("Pipe")
