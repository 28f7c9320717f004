"""Tests for the push WebSocket server."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from aiohttp import WSMsgType
from aiohttp.test_utils import TestClient, TestServer

from guildrelay.push import ClientRegistry, FanoutBroadcaster, PushServer, create_push_app
from guildrelay.gateway import ChannelFilter
from tests.harness import TARGET, RelayTestHarness


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestPushApp:
    @pytest.mark.asyncio
    async def test_connect_registers_and_close_unregisters(self):
        # Arrange
        registry = ClientRegistry()
        async with TestClient(TestServer(create_push_app(registry))) as client:
            # Act
            ws = await client.ws_connect("/")
            await _wait_for(lambda: len(registry) == 1)
            conn = registry.snapshot()[0]

            # Assert
            assert conn.alive
            assert conn.remote is not None

            await ws.close()
            await _wait_for(lambda: len(registry) == 0)
            assert conn.alive is False

    @pytest.mark.asyncio
    async def test_broadcast_frames_reach_socket(self):
        registry = ClientRegistry()
        broadcaster = FanoutBroadcaster(registry, ChannelFilter(TARGET))
        async with TestClient(TestServer(create_push_app(registry))) as client:
            ws = await client.ws_connect("/")
            await _wait_for(lambda: len(registry) == 1)

            delivered = await broadcaster.on_gateway_event(RelayTestHarness.gateway_event("hi"))
            frame = await ws.receive_json(timeout=1)

            assert delivered == 1
            assert frame == {"username": "alice", "content": "hi"}
            await ws.close()

    @pytest.mark.asyncio
    async def test_client_frames_are_ignored(self):
        registry = ClientRegistry()
        async with TestClient(TestServer(create_push_app(registry))) as client:
            ws = await client.ws_connect("/")
            await ws.send_str("hello server")
            await ws.send_json({"message": "ignored"})
            await asyncio.sleep(0.05)

            assert len(registry) == 1
            assert not ws.closed
            await ws.close()

    @pytest.mark.asyncio
    async def test_two_clients_one_disconnects(self):
        registry = ClientRegistry()
        broadcaster = FanoutBroadcaster(registry, ChannelFilter(TARGET))
        async with TestClient(TestServer(create_push_app(registry))) as client:
            a = await client.ws_connect("/")
            b = await client.ws_connect("/")
            await _wait_for(lambda: len(registry) == 2)

            await a.close()
            await _wait_for(lambda: len(registry) == 1)
            delivered = await broadcaster.on_gateway_event(RelayTestHarness.gateway_event("later"))

            assert delivered == 1
            assert await b.receive_json(timeout=1) == {"username": "alice", "content": "later"}
            await b.close()


    @pytest.mark.asyncio
    async def test_failed_send_closes_client_socket(self):
        # Arrange
        registry = ClientRegistry()
        broadcaster = FanoutBroadcaster(registry, ChannelFilter(TARGET), send_timeout=1.0)
        async with TestClient(TestServer(create_push_app(registry))) as client:
            ws = await client.ws_connect("/")
            await _wait_for(lambda: len(registry) == 1)
            conn = registry.snapshot()[0]
            conn.handle.send_json = AsyncMock(side_effect=ConnectionResetError("peer gone"))

            # Act
            fanout = asyncio.create_task(broadcaster.on_gateway_event(RelayTestHarness.gateway_event("hi")))
            msg = await ws.receive(timeout=1)
            delivered = await fanout

            # Assert
            assert delivered == 0
            assert msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED)
            assert conn.alive is False
            await _wait_for(lambda: ws.closed)
            assert len(registry) == 0

class TestPushServer:
    @pytest.mark.asyncio
    async def test_start_stop(self):
        server = PushServer(ClientRegistry(), host="127.0.0.1", port=0)
        assert server.name == "push"
        await server.start()
        await server.stop()
        await server.stop()
