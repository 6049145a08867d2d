"""Response Correlator - outbound side of the Pipe.

Each ``send`` owns a private subscription on the channel to its
target and waits there for the one response carrying its request id.
There is no shared table of pending requests: concurrent sends never
see each other's state, so they cannot resolve each other.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable

from ..config import DEFAULT_GRACE_DELAY, DEFAULT_TIMEOUT
from ..errors import MalformedMessageError, PipeTimeoutError
from ..transport.base import Channel, MessageSubscription, PeerTransport
from .envelopes import PipeResponse, PipeSendRequest

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    """Create a unique request id that sorts by creation time.

    32 hex chars: nanosecond timestamp followed by random bits.
    """
    return f"{time.time_ns():016x}{uuid.uuid4().hex[:16]}"


class ResponseCorrelator:
    """Sends requests and waits for their correlated responses."""

    def __init__(
        self,
        transport: PeerTransport,
        is_self: Callable[[str], bool],
        default_timeout: float = DEFAULT_TIMEOUT,
        grace_delay: float = DEFAULT_GRACE_DELAY,
    ) -> None:
        self._transport = transport
        self._is_self = is_self
        self._default_timeout = default_timeout
        self._grace_delay = grace_delay

    async def send(self, target: str, request: PipeSendRequest) -> PipeResponse:
        """Send `request` to `target` and return its response.

        Raises:
            PipeTimeoutError: no matching response within the timeout
        """
        request_id = generate_request_id()
        timeout = request.timeout or self._default_timeout

        channel = await self._transport.open_channel(target)

        # Attach before transmitting so a fast reply cannot be missed
        subscription = await channel.subscribe()
        try:
            return await asyncio.wait_for(
                self._exchange(channel, subscription, request_id, request),
                timeout=timeout,
            )
        except TimeoutError:
            logger.warning(
                f"No response from {target} for request {request_id} within {timeout}s"
            )
            raise PipeTimeoutError(request_id, timeout) from None
        finally:
            await subscription.close()

    async def _exchange(
        self,
        channel: Channel,
        subscription: MessageSubscription,
        request_id: str,
        request: PipeSendRequest,
    ) -> PipeResponse:
        # Give the transport's listener machinery time to come up
        if self._grace_delay > 0:
            await asyncio.sleep(self._grace_delay)

        await channel.send(request.to_wire(request_id))
        logger.debug(
            f"Request {request_id} sent to {channel.peer}: "
            f"{request.method.value} {request.path}"
        )
        return await self._wait_for_response(subscription, request_id)

    async def _wait_for_response(
        self, subscription: MessageSubscription, request_id: str
    ) -> PipeResponse:
        async for message in subscription:
            if self._is_self(message.sender):
                continue
            try:
                response = PipeResponse.from_wire(message.content)
            except MalformedMessageError:
                continue
            if response.id == request_id:
                logger.debug(f"Response {request_id} received from {message.sender}")
                return response

        # Only reachable if the transport closed the subscription
        raise ConnectionError(f"Subscription closed before response to {request_id}")
