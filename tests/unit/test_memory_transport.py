"""Unit tests for the in-process MemoryNetwork transport."""

from __future__ import annotations

import asyncio

import pytest

from forest_pipe.transport.base import Channel, MessageSubscription, PeerTransport
from forest_pipe.transport.memory import MemoryNetwork, conversation_id


class TestProtocols:
    """Memory classes satisfy the transport protocols."""

    @pytest.mark.anyio
    async def test_runtime_checkable(self, network: MemoryNetwork) -> None:
        """Transport, channel and subscription match their protocols."""
        transport = network.connect("a")
        channel = await transport.open_channel("b")
        subscription = await channel.subscribe()

        assert isinstance(transport, PeerTransport)
        assert isinstance(channel, Channel)
        assert isinstance(subscription, MessageSubscription)


class TestConnect:
    """Tests for identities and channels."""

    def test_connect_is_idempotent(self, network: MemoryNetwork) -> None:
        """Connecting twice returns the same live transport."""
        assert network.connect("a") is network.connect("a")

    @pytest.mark.anyio
    async def test_open_channel_is_cached(self, network: MemoryNetwork) -> None:
        """Opening a channel to the same peer reuses it."""
        transport = network.connect("a")

        first = await transport.open_channel("b")
        second = await transport.open_channel("b")

        assert first is second
        assert first.peer == "b"

    def test_conversation_id_is_symmetric(self) -> None:
        """Both sides compute the same conversation id."""
        assert conversation_id("a", "b") == conversation_id("b", "a")


class TestDelivery:
    """Tests for message fan-out."""

    @pytest.mark.anyio
    async def test_conversation_subscribers_see_both_sides(self, network: MemoryNetwork) -> None:
        """A conversation subscription sees own and peer messages."""
        alice = network.connect("alice")
        bob = network.connect("bob")
        alice_channel = await alice.open_channel("bob")
        bob_channel = await bob.open_channel("alice")

        subscription = await alice_channel.subscribe()
        await alice_channel.send("hi")
        await bob_channel.send("hello")

        first = await asyncio.wait_for(subscription.__anext__(), 1)
        second = await asyncio.wait_for(subscription.__anext__(), 1)

        assert (first.sender, first.content) == ("alice", "hi")
        assert (second.sender, second.content) == ("bob", "hello")
        assert first.conversation == conversation_id("alice", "bob")

    @pytest.mark.anyio
    async def test_subscribe_all_sees_every_conversation(self, network: MemoryNetwork) -> None:
        """The process-wide stream covers all conversations of an identity."""
        hub = network.connect("hub")
        stream = await hub.subscribe_all()

        for name in ("x", "y"):
            peer = network.connect(name)
            channel = await peer.open_channel("hub")
            await channel.send(f"from {name}")

        received = [await asyncio.wait_for(stream.__anext__(), 1) for _ in range(2)]

        assert [m.sender for m in received] == ["x", "y"]

    @pytest.mark.anyio
    async def test_subscribe_all_echoes_own_messages(self, network: MemoryNetwork) -> None:
        """An identity's own messages show up in its process-wide stream."""
        alice = network.connect("alice")
        stream = await alice.subscribe_all()

        channel = await alice.open_channel("bob")
        await channel.send("echo")

        message = await asyncio.wait_for(stream.__anext__(), 1)
        assert message.sender == "alice"

    @pytest.mark.anyio
    async def test_other_conversations_not_visible(self, network: MemoryNetwork) -> None:
        """A conversation subscription ignores unrelated conversations."""
        alice = network.connect("alice")
        subscription = await (await alice.open_channel("bob")).subscribe()

        network.inject("carol", "alice", "not for this channel")
        network.inject("bob", "alice", "for this channel")

        message = await asyncio.wait_for(subscription.__anext__(), 1)
        assert message.content == "for this channel"

    @pytest.mark.anyio
    async def test_messages_before_subscribe_are_not_replayed(
        self, network: MemoryNetwork
    ) -> None:
        """Subscriptions only see messages delivered after they attach."""
        alice = network.connect("alice")
        network.inject("bob", "alice", "early")
        stream = await alice.subscribe_all()
        network.inject("bob", "alice", "late")

        message = await asyncio.wait_for(stream.__anext__(), 1)
        assert message.content == "late"


class TestClose:
    """Tests for closing subscriptions and transports."""

    @pytest.mark.anyio
    async def test_closed_subscription_ends_iteration(self, network: MemoryNetwork) -> None:
        """Iteration stops after close, even for a waiting reader."""
        stream = await network.connect("a").subscribe_all()

        async def consume() -> list[str]:
            return [m.content async for m in stream]

        reader = asyncio.create_task(consume())
        network.inject("b", "a", "one")
        await asyncio.sleep(0)
        await stream.close()

        assert await asyncio.wait_for(reader, 1) == ["one"]

    @pytest.mark.anyio
    async def test_closed_subscription_gets_nothing(self, network: MemoryNetwork) -> None:
        """Messages after close are not queued."""
        stream = await network.connect("a").subscribe_all()
        await stream.close()
        await stream.close()

        network.inject("b", "a", "ignored")

        assert stream.closed
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.anyio
    async def test_transport_close(self, network: MemoryNetwork) -> None:
        """Closing a transport ends its subscriptions and blocks sending."""
        transport = network.connect("a")
        channel = await transport.open_channel("b")
        stream = await transport.subscribe_all()

        await transport.close()

        assert transport.is_closed
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        with pytest.raises(ConnectionError):
            await channel.send("late")
        with pytest.raises(ConnectionError):
            await transport.open_channel("b")

    @pytest.mark.anyio
    async def test_reconnect_after_close(self, network: MemoryNetwork) -> None:
        """A closed identity can connect again with a new transport."""
        first = network.connect("a")
        await first.close()

        second = network.connect("a")

        assert second is not first
        assert not second.is_closed
