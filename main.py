"""Command line entry point: echo server, message sender and MQTT packet sender."""

import argparse
import asyncio
import dataclasses
import json
import logging
import signal
import sys

from framelink.client import connect, serve
from framelink.codec import RawCodec
from framelink.config import CODECS, LOG_LEVELS, AdapterConfig, load_config
from framelink.consumer import MessageQueue
from framelink.errors import FramelinkError
from framelink.metrics import AdapterMetrics
from framelink.packets import build_disconnect, build_publish, build_subscribe

try:
    import uvloop
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
except ImportError:
    pass

logger = logging.getLogger("framelink")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Length-prefixed message adapter")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--codec", choices=CODECS, default=None)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=None)

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("serve", help="echo every message back to its sender")

    send = commands.add_parser("send", help="send messages and print the replies")
    send.add_argument("messages", nargs="+")
    send.add_argument("--timeout", type=float, default=5.0)

    publish = commands.add_parser("publish", help="send an MQTT PUBLISH packet")
    publish.add_argument("topic")
    publish.add_argument("data")
    publish.add_argument("--qos", type=int, choices=(0, 1, 2), default=0)
    publish.add_argument("--packet-id", type=int, default=None)
    publish.add_argument("--retain", action="store_true", default=False)

    subscribe = commands.add_parser("subscribe", help="send an MQTT SUBSCRIBE packet")
    subscribe.add_argument("topic")
    subscribe.add_argument("--qos", type=int, choices=(0, 1, 2), default=0)
    subscribe.add_argument("--packet-id", type=int, default=1)
    return parser


def resolve_config(args: argparse.Namespace) -> AdapterConfig:
    """Config file and env vars first, then command line overrides."""
    config = load_config(args.config)
    overrides = {
        "host": args.host,
        "port": args.port,
        "codec": args.codec,
        "log_level": args.log_level,
    }
    return dataclasses.replace(
        config, **{k: v for k, v in overrides.items() if v is not None}
    )


def parse_message(text: str, codec: str):
    if codec == "raw":
        return text.encode("utf-8")
    if codec == "json":
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def format_message(message) -> str:
    if isinstance(message, bytes):
        return message.hex(" ")
    if isinstance(message, str):
        return message
    return json.dumps(message)


async def run_server(config: AdapterConfig) -> None:
    metrics = AdapterMetrics()
    shutdown = asyncio.Event()

    async def echo(adapter) -> None:
        async for message in adapter.consumer:
            await adapter.send_and_drain(message)

    server = await serve(
        echo,
        config=config,
        consumer_factory=lambda: MessageQueue(config.queue_high_water),
        metrics=metrics,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    async with server:
        await shutdown.wait()

    logger.info("Server stopped")
    print("\n--- Adapter Statistics ---")
    for key, value in metrics.snapshot().items():
        print(f"  {key}: {value}")


async def run_send(config: AdapterConfig, texts: list[str], timeout: float) -> None:
    adapter = await connect(config=config)
    replies = adapter.messages(config.queue_high_water)
    try:
        for text in texts:
            await adapter.send_and_drain(parse_message(text, config.codec))
        for _ in texts:
            reply = await asyncio.wait_for(replies.get(), timeout)
            print(format_message(reply))
    finally:
        adapter.close()
        await adapter.wait_closed()


async def run_packets(config: AdapterConfig, packets: list[bytes]) -> None:
    adapter = await connect(config=config, codec=RawCodec())
    for packet in packets:
        await adapter.send_and_drain(packet)
    adapter.close(farewell=build_disconnect())
    await adapter.wait_closed()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = resolve_config(args)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        if args.command == "serve":
            asyncio.run(run_server(config))
        elif args.command == "send":
            asyncio.run(run_send(config, args.messages, args.timeout))
        elif args.command == "publish":
            packet = build_publish(
                args.topic, args.data, args.qos, args.packet_id, retain=args.retain
            )
            asyncio.run(run_packets(config, [packet]))
        elif args.command == "subscribe":
            packet = build_subscribe(args.packet_id, args.topic, args.qos)
            asyncio.run(run_packets(config, [packet]))
    except KeyboardInterrupt:
        pass
    except (OSError, asyncio.TimeoutError, FramelinkError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    except ValueError as e:
        logger.error("Invalid arguments: %s", e)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
