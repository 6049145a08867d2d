"""Transport boundary.

The Pipe talks to the network only through the protocols in
``base``. ``memory`` provides an in-process implementation.
"""

from .base import Channel, InboundMessage, MessageSubscription, PeerTransport
from .memory import MemoryChannel, MemoryNetwork, MemorySubscription, MemoryTransport

__all__ = [
    # Base abstractions
    "Channel",
    "InboundMessage",
    "MessageSubscription",
    "PeerTransport",
    # In-memory implementation
    "MemoryChannel",
    "MemoryNetwork",
    "MemorySubscription",
    "MemoryTransport",
]
