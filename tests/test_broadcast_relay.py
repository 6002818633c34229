from __future__ import annotations

import asyncio

import pytest
from aiohttp import WSCloseCode

from devicedash.consumer.relay import BroadcastRelay


class _FakeConnection:
    def __init__(self, *, closed: bool = False, fail: bool = False, delay: float = 0.0) -> None:
        self.closed = closed
        self.sent: list[str] = []
        self.close_code: int | None = None
        self._fail = fail
        self._delay = delay

    async def send_str(self, data: str) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, *, code: int = WSCloseCode.OK, message: bytes = b"") -> bool:
        self.closed = True
        self.close_code = code
        return True


@pytest.mark.asyncio
async def test_broadcast_reaches_every_open_connection_verbatim() -> None:
    relay = BroadcastRelay()
    first, second = _FakeConnection(), _FakeConnection()
    relay.register(first)
    relay.register(second)
    payload = '[{"id":1,"updated":"T","status":3}]'

    assert relay.broadcast(payload) == 2
    await relay.wait_idle()

    assert first.sent == [payload]
    assert second.sent == [payload]


@pytest.mark.asyncio
async def test_broadcast_skips_closed_connections() -> None:
    relay = BroadcastRelay()
    open_conn, closed_conn = _FakeConnection(), _FakeConnection(closed=True)
    relay.register(open_conn)
    relay.register(closed_conn)

    assert relay.broadcast("[]") == 1
    await relay.wait_idle()

    assert open_conn.sent == ["[]"]
    assert closed_conn.sent == []


@pytest.mark.asyncio
async def test_failing_or_slow_client_does_not_block_others() -> None:
    relay = BroadcastRelay()
    broken = _FakeConnection(fail=True)
    slow = _FakeConnection(delay=0.05)
    healthy = _FakeConnection()
    for connection in (broken, slow, healthy):
        relay.register(connection)

    relay.broadcast("[1]")
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert healthy.sent == ["[1]"]
    assert slow.sent == []

    await relay.wait_idle()
    assert slow.sent == ["[1]"]
    assert broken.sent == []


@pytest.mark.asyncio
async def test_unregistered_connection_receives_nothing() -> None:
    relay = BroadcastRelay()
    connection = _FakeConnection()
    relay.register(connection)
    relay.unregister(connection)
    relay.unregister(connection)

    assert relay.client_count == 0
    assert relay.broadcast("[]") == 0


@pytest.mark.asyncio
async def test_broadcast_without_clients_is_a_no_op() -> None:
    assert BroadcastRelay().broadcast('[{"id":1}]') == 0


@pytest.mark.asyncio
async def test_close_shuts_down_open_connections() -> None:
    relay = BroadcastRelay()
    connection = _FakeConnection()
    relay.register(connection)

    await relay.close()

    assert connection.closed
    assert connection.close_code == WSCloseCode.GOING_AWAY
    assert relay.client_count == 0


class _ExplodingConnection(_FakeConnection):
    async def send_str(self, data: str) -> None:
        raise ValueError("unexpected frame state")


@pytest.mark.asyncio
async def test_unexpected_send_error_is_logged_and_dropped(caplog: pytest.LogCaptureFixture) -> None:
    relay = BroadcastRelay()
    exploding, healthy = _ExplodingConnection(), _FakeConnection()
    relay.register(exploding)
    relay.register(healthy)

    relay.broadcast("[2]")
    await relay.wait_idle()

    assert healthy.sent == ["[2]"]
    assert "WebSocket send failed, message dropped: unexpected frame state" in caplog.text
    assert "exception was never retrieved" not in caplog.text
