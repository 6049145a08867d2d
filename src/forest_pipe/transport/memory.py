"""In-process broadcast network.

Behaves like a hosted chat network as seen from the Pipe:
- every message posted to a conversation reaches every subscription on
  that conversation, the author's own included
- every participant's process-wide stream sees the message too
- nothing is ordered or acknowledged beyond in-process queueing

Useful for tests, local demos, and running several endpoints in one process.

Usage:
    network = MemoryNetwork()
    provider = network.connect("0xprovider")
    user = network.connect("0xuser")

    channel = await user.open_channel("0xprovider")
    await channel.send('{"id": "1", "method": "GET", "path": "/ping"}')
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable

from .base import InboundMessage

logger = logging.getLogger(__name__)

_CLOSED = object()


def conversation_id(a: str, b: str) -> str:
    """Stable identifier of the conversation between two identities."""
    first, second = sorted((a, b))
    return f"{first}:{second}"


class MemorySubscription:
    """Queue-backed subscription. Attached from construction."""

    def __init__(self, on_close: Callable[[MemorySubscription], None]) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, message: InboundMessage) -> None:
        if not self._closed:
            self._queue.put_nowait(message)

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        return self

    async def __anext__(self) -> InboundMessage:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)
        self._queue.put_nowait(_CLOSED)


class MemoryChannel:
    """Conversation between a transport's identity and one peer."""

    def __init__(self, transport: MemoryTransport, peer: str) -> None:
        self._transport = transport
        self._peer = peer

    @property
    def peer(self) -> str:
        return self._peer

    @property
    def conversation(self) -> str:
        return conversation_id(self._transport.identity, self._peer)

    async def send(self, content: str) -> None:
        self._transport.check_open()
        self._transport.network.deliver(self._transport.identity, self._peer, content)

    async def subscribe(self) -> MemorySubscription:
        self._transport.check_open()
        return self._transport.network.subscribe_conversation(self.conversation, self._transport)


class MemoryTransport:
    """One identity's connection to a MemoryNetwork."""

    def __init__(self, network: MemoryNetwork, identity: str) -> None:
        self.network = network
        self._identity = identity
        self._channels: dict[str, MemoryChannel] = {}
        self._subscriptions: set[MemorySubscription] = set()
        self._closed = False

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def is_closed(self) -> bool:
        return self._closed

    def check_open(self) -> None:
        if self._closed:
            raise ConnectionError(f"Transport for {self._identity} is closed")

    async def open_channel(self, peer: str) -> MemoryChannel:
        self.check_open()
        channel = self._channels.get(peer)
        if channel is None:
            channel = MemoryChannel(self, peer)
            self._channels[peer] = channel
        return channel

    async def subscribe_all(self) -> MemorySubscription:
        self.check_open()
        return self.network.subscribe_identity(self._identity, self)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in list(self._subscriptions):
            await subscription.close()
        self._channels.clear()
        self.network.disconnect(self._identity)
        logger.debug(f"Memory transport {self._identity} closed")

    def track(self, subscription: MemorySubscription) -> None:
        self._subscriptions.add(subscription)

    def untrack(self, subscription: MemorySubscription) -> None:
        self._subscriptions.discard(subscription)


class MemoryNetwork:
    """Registry of identities, conversations, and their subscribers."""

    def __init__(self) -> None:
        self._transports: dict[str, MemoryTransport] = {}
        self._by_conversation: dict[str, list[MemorySubscription]] = {}
        self._by_identity: dict[str, list[MemorySubscription]] = {}

    def connect(self, identity: str) -> MemoryTransport:
        """Return the live transport for `identity`, creating it if needed."""
        transport = self._transports.get(identity)
        if transport is None or transport.is_closed:
            transport = MemoryTransport(self, identity)
            self._transports[identity] = transport
        return transport

    def disconnect(self, identity: str) -> None:
        self._transports.pop(identity, None)

    def subscribe_conversation(
        self, conversation: str, owner: MemoryTransport
    ) -> MemorySubscription:
        return self._subscribe(self._by_conversation, conversation, owner)

    def subscribe_identity(self, identity: str, owner: MemoryTransport) -> MemorySubscription:
        return self._subscribe(self._by_identity, identity, owner)

    def deliver(self, sender: str, recipient: str, content: str) -> None:
        """Fan a message out to everyone who can observe it."""
        conversation = conversation_id(sender, recipient)
        message = InboundMessage(sender=sender, content=content, conversation=conversation)

        targets = list(self._by_conversation.get(conversation, []))
        targets.extend(self._by_identity.get(sender, []))
        if recipient != sender:
            targets.extend(self._by_identity.get(recipient, []))

        logger.debug(f"Delivering message {sender} -> {recipient} to {len(targets)} subscriptions")
        for subscription in targets:
            subscription.put(message)

    def inject(self, sender: str, recipient: str, content: str) -> None:
        """Post a raw message as `sender` without a transport (for testing)."""
        self.deliver(sender, recipient, content)

    def _subscribe(
        self,
        table: dict[str, list[MemorySubscription]],
        key: str,
        owner: MemoryTransport,
    ) -> MemorySubscription:
        def on_close(subscription: MemorySubscription) -> None:
            subscribers = table.get(key)
            if subscribers and subscription in subscribers:
                subscribers.remove(subscription)
                if not subscribers:
                    del table[key]
            owner.untrack(subscription)

        subscription = MemorySubscription(on_close)
        table.setdefault(key, []).append(subscription)
        owner.track(subscription)
        return subscription
