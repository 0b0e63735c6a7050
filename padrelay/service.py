from __future__ import annotations

import asyncio
import logging
import signal
from http import HTTPStatus

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from . import __version__
from .config import RelayRuntimeConfig, validate_config
from .connection import Connection, WebSocketChannel
from .netinfo import discover_host_ip
from .registry import Registry
from .relay import Relay
from .router import MessageRouter
from .session import SessionLoop
from .stats import StatsManager


class RelayService:
    def __init__(self, config: RelayRuntimeConfig) -> None:
        validate_config(config)
        self.config = config
        self.log = logging.getLogger("padrelay.service")

        self.stats_manager = StatsManager()
        self.registry = Registry(config.player_slots)
        self.relay = Relay(
            self.registry,
            stats=self.stats_manager,
            send_timeout_s=config.send_timeout_s,
        )
        self.router = MessageRouter()

        self.server_ip: str | None = None
        self.bound_port: int | None = None

        self._server: Server | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown: asyncio.Event | None = None
        self._stats_task: asyncio.Task | None = None

    @property
    def advertised_port(self) -> int:
        if self.config.advertised_port:
            return int(self.config.advertised_port)
        if self.bound_port:
            return int(self.bound_port)
        return int(self.config.port)

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Response | None:
        path = request.path.split("?", 1)[0]
        if self.config.ws_path and path != self.config.ws_path:
            self.log.debug("Rejecting upgrade path=%r", request.path)
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handle(self, ws: ServerConnection) -> None:
        conn = Connection(WebSocketChannel(ws), outbox_size=self.config.send_queue_frames)
        session = SessionLoop(
            conn,
            registry=self.registry,
            relay=self.relay,
            router=self.router,
            server_ip=self.server_ip or "127.0.0.1",
            server_port=self.advertised_port,
            stats=self.stats_manager,
            negotiation_timeout_s=self.config.negotiation_timeout_s,
        )
        await session.run()

    async def serve(self, ready: asyncio.Event | None = None) -> None:
        """Run the WebSocket server until stop() is called."""
        self._loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        self.stats_manager.set_start_time()
        self.server_ip = discover_host_ip(self.config.advertised_host)

        ping_interval = self.config.ping_interval_s or None
        ping_timeout = self.config.ping_timeout_s or None

        async with serve(
            self._handle,
            self.config.host,
            self.config.port,
            process_request=self._process_request,
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            max_size=self.config.max_frame_bytes,
        ) as server:
            self._server = server
            sockets = list(server.sockets)
            if sockets:
                self.bound_port = int(sockets[0].getsockname()[1])

            self.log.info(
                "padrelay %s listening host=%s port=%s path=%s advertised=%s:%s",
                __version__,
                self.config.host,
                self.bound_port,
                self.config.ws_path or "*",
                self.server_ip,
                self.advertised_port,
            )
            self.log.info(
                "Policy player_slots=%s ping_interval_s=%s ping_timeout_s=%s "
                "send_timeout_s=%s send_queue_frames=%s negotiation_timeout_s=%s",
                self.config.player_slots,
                self.config.ping_interval_s,
                self.config.ping_timeout_s,
                self.config.send_timeout_s,
                self.config.send_queue_frames,
                self.config.negotiation_timeout_s,
            )

            if self.config.stats_log_interval_s and self.config.stats_log_interval_s > 0:
                self._stats_task = asyncio.create_task(self._stats_loop())

            if ready is not None:
                ready.set()

            await self._shutdown.wait()
            self.log.info("Shutting down; closing %s connection(s)", len(self.registry))

        if self._stats_task is not None:
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass
            self._stats_task = None

        self._server = None
        self.log.info("%s", self.stats_manager.format_stats(self.registry))

    async def _stats_loop(self) -> None:
        period = float(self.config.stats_log_interval_s)
        while True:
            await asyncio.sleep(period)
            self.log.info("%s", self.stats_manager.format_stats(self.registry))

    def stop(self) -> None:
        """Request shutdown. Safe to call from signal handlers and other threads."""
        if self._loop is None or self._shutdown is None:
            return
        self._loop.call_soon_threadsafe(self._shutdown.set)

    def run_forever(self) -> None:
        asyncio.run(self._main())

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, lambda *_: self.stop())
        await self.serve()
