"""Connection factories. Every call builds a fresh channel and adapter."""

import asyncio
import logging
from typing import Any, Callable

from framelink.adapter import DuplexAdapter
from framelink.channel import StreamChannel
from framelink.codec import Codec, get_codec
from framelink.config import AdapterConfig
from framelink.consumer import Consumer
from framelink.metrics import AdapterMetrics

logger = logging.getLogger(__name__)


def _build(
    config: AdapterConfig,
    codec: Codec | None,
    consumer: Consumer | None,
    metrics: AdapterMetrics | None,
) -> tuple[StreamChannel, DuplexAdapter]:
    channel = StreamChannel(write_high_water=config.write_high_water)
    adapter = DuplexAdapter(
        codec or get_codec(config.codec),
        consumer,
        max_frame_size=config.max_frame_size,
        idle_timeout=config.idle_timeout or None,
        metrics=metrics,
    )
    adapter.attach(channel)
    return channel, adapter


async def connect(
    host: str | None = None,
    port: int | None = None,
    *,
    codec: Codec | None = None,
    consumer: Consumer | None = None,
    config: AdapterConfig | None = None,
    metrics: AdapterMetrics | None = None,
) -> DuplexAdapter:
    """Open a TCP connection and return an attached adapter.

    *host* and *port* default to the config values. Raises OSError if the
    connection cannot be established.
    """
    config = config or AdapterConfig()
    host = host or config.host
    port = port if port is not None else config.port

    channel, adapter = _build(config, codec, consumer, metrics)
    loop = asyncio.get_running_loop()
    await loop.create_connection(lambda: channel, host, port)
    logger.info("Connected to %s:%d", host, port)
    return adapter


async def serve(
    on_connect: Callable[[DuplexAdapter], Any],
    host: str | None = None,
    port: int | None = None,
    *,
    codec_factory: Callable[[], Codec] | None = None,
    consumer_factory: Callable[[], Consumer] | None = None,
    config: AdapterConfig | None = None,
    metrics: AdapterMetrics | None = None,
) -> asyncio.AbstractServer:
    """Listen for connections; call *on_connect* with each new adapter.

    *on_connect* runs when the connection is established. If it returns a
    coroutine, the coroutine is scheduled as a task. Use *consumer_factory*
    to give every adapter its consumer before any frame can arrive.
    """
    config = config or AdapterConfig()
    host = host or config.host
    port = port if port is not None else config.port
    loop = asyncio.get_running_loop()
    tasks: set[asyncio.Task] = set()

    def _handler_done(task: asyncio.Task) -> None:
        tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Connection handler failed", exc_info=task.exception())

    def protocol_factory() -> StreamChannel:
        codec = codec_factory() if codec_factory is not None else None
        consumer = consumer_factory() if consumer_factory is not None else None
        channel, adapter = _build(config, codec, consumer, metrics)

        def connected() -> None:
            result = on_connect(adapter)
            if asyncio.iscoroutine(result):
                task = loop.create_task(result)
                tasks.add(task)
                task.add_done_callback(_handler_done)

        adapter.once("connected", connected)
        return channel

    server = await loop.create_server(protocol_factory, host, port)
    addrs = ", ".join(str(sock.getsockname()) for sock in server.sockets)
    logger.info("Listening on %s", addrs)
    return server
