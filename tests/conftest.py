"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from forest_pipe.config import PipeConfig
from forest_pipe.transport.base import InboundMessage, MessageSubscription
from forest_pipe.transport.memory import MemoryNetwork

ReadFrom = Callable[..., Awaitable[InboundMessage]]


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def network() -> MemoryNetwork:
    """Fresh in-process network per test."""
    return MemoryNetwork()


@pytest.fixture
def fast_config() -> PipeConfig:
    """Pipe config without the subscription grace delay."""
    return PipeConfig(timeout=2.0, grace_delay=0.0)


async def _read_from(
    subscription: MessageSubscription, sender: str, timeout: float = 1.0
) -> InboundMessage:
    """Return the next message on `subscription` authored by `sender`."""

    async def scan() -> InboundMessage:
        async for message in subscription:
            if message.sender == sender:
                return message
        raise AssertionError("subscription closed")

    return await asyncio.wait_for(scan(), timeout=timeout)


@pytest.fixture
def read_from() -> ReadFrom:
    """Helper that waits for the next message from a given sender."""
    return _read_from
