import asyncio
import json

import pytest

from padrelay.connection import ChannelClosed, Connection
from padrelay.registry import Registry
from padrelay.relay import Relay
from padrelay.router import MessageRouter
from padrelay.session import SessionLoop
from padrelay.stats import StatsManager

_CLOSE = object()
_DROP = object()


class FakeChannel:
    """In-memory Channel: tests feed inbound frames and inspect what was sent."""

    def __init__(self, remote: str = "peer:0") -> None:
        self.remote = remote
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.open = True
        self.fail_sends = False
        self._closed_exc: ChannelClosed | None = None
        self._sent_cond = asyncio.Condition()

    def feed(self, *frames) -> None:
        for frame in frames:
            self.inbox.put_nowait(frame)

    def peer_close(self) -> None:
        self.inbox.put_nowait(_CLOSE)

    def drop(self) -> None:
        self.inbox.put_nowait(_DROP)

    async def receive(self):
        if self._closed_exc is not None:
            raise self._closed_exc
        item = await self.inbox.get()
        if item is _CLOSE or item is _DROP:
            self.open = False
            self._closed_exc = ChannelClosed("peer gone", clean=item is _CLOSE)
            raise self._closed_exc
        return item

    async def send(self, frame) -> None:
        if not self.open:
            raise ConnectionError("channel is closed")
        if self.fail_sends:
            raise ConnectionResetError("broken pipe")
        async with self._sent_cond:
            self.sent.append(frame)
            self._sent_cond.notify_all()

    async def close(self, code: int, reason: str) -> None:
        if self.closed_with is None:
            self.closed_with = (code, reason)
        self.open = False
        if self._closed_exc is None:
            self._closed_exc = ChannelClosed("closed locally", clean=True)
            self.inbox.put_nowait(_CLOSE)

    def is_open(self) -> bool:
        return self.open

    def messages(self) -> list[dict]:
        return [json.loads(f) for f in self.sent]

    def messages_of(self, msg_type: str) -> list[dict]:
        return [m for m in self.messages() if m.get("type") == msg_type]

    async def wait_sent(self, count: int, timeout: float = 1.0) -> list[dict]:
        async def _wait():
            async with self._sent_cond:
                await self._sent_cond.wait_for(lambda: len(self.sent) >= count)

        await asyncio.wait_for(_wait(), timeout=timeout)
        return self.messages()


class Harness:
    def __init__(self, slots: int = 2, send_timeout_s: float = 0.0) -> None:
        self.stats = StatsManager()
        self.registry = Registry(slots)
        self.relay = Relay(self.registry, stats=self.stats, send_timeout_s=send_timeout_s)
        self.router = MessageRouter()

    def session(self, channel: FakeChannel, **kwargs) -> SessionLoop:
        return SessionLoop(
            Connection(channel),
            registry=self.registry,
            relay=self.relay,
            router=self.router,
            server_ip="10.0.0.5",
            server_port=4200,
            stats=self.stats,
            **kwargs,
        )

    def spawn(self, channel: FakeChannel, **kwargs) -> tuple[asyncio.Task, SessionLoop]:
        session = self.session(channel, **kwargs)
        return asyncio.create_task(session.run()), session


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def harness() -> Harness:
    return Harness()


@pytest.fixture
def make_harness():
    return Harness
