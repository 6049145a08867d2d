"""Transport abstraction for the Pipe.

The Pipe only needs three things from a peer-to-peer messaging network:
- open a channel (conversation) with a peer identified by an opaque string
- send a text payload on that channel
- subscribe to inbound messages, per channel or process-wide

Subscriptions are attached when they are created: a message delivered
after ``subscribe()`` returns is buffered until it is read, never lost.
Networks of this kind echo a peer's own messages back to it, so every
consumer filters on ``InboundMessage.sender``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class InboundMessage:
    """A raw message received from the network."""

    sender: str
    content: str

    # Identifier of the conversation the message was posted to
    conversation: str | None = None


@runtime_checkable
class MessageSubscription(Protocol):
    """An attached, unbounded stream of inbound messages.

    Iteration ends only after ``close()``.
    """

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        ...

    async def __anext__(self) -> InboundMessage:
        ...

    async def close(self) -> None:
        """Detach from the network. Safe to call more than once."""
        ...


@runtime_checkable
class Channel(Protocol):
    """A logical bidirectional link to one peer."""

    @property
    def peer(self) -> str:
        ...

    async def send(self, content: str) -> None:
        """Post a text payload to the conversation."""
        ...

    async def subscribe(self) -> MessageSubscription:
        """Subscribe to every message posted to this conversation."""
        ...


@runtime_checkable
class PeerTransport(Protocol):
    """A connection to the network under one identity."""

    @property
    def identity(self) -> str:
        ...

    async def open_channel(self, peer: str) -> Channel:
        """Open (or reuse) the channel to `peer`. Idempotent."""
        ...

    async def subscribe_all(self) -> MessageSubscription:
        """Subscribe to every message in every conversation of this identity."""
        ...

    async def close(self) -> None:
        """Disconnect and end all subscriptions."""
        ...
