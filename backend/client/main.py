"""
Command-line channel client.

Responsibilities:
- Load .env and environment configuration
- Build one channel and hold it open until interrupted
- Log every received message as a JSONL event

Usage:
    channel-client wss://example.test/ws --heartbeat-interval-ms 15000
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
from dataclasses import replace
from typing import Any

from dotenv import load_dotenv

from config import AppConfig
from observability import logger
from session.binding import LifecycleBinding, create_channel
from session.observable import ObservableValue


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Hold a resilient channel open and log what arrives."
    )
    parser.add_argument(
        "endpoint",
        nargs="?",
        help="ws:// or wss:// URI (default: $CHANNEL_ENDPOINT)",
    )
    parser.add_argument("--heartbeat-interval-ms", type=int, default=None)
    parser.add_argument("--reconnect-interval-ms", type=int, default=None)
    parser.add_argument("--max-reconnect-attempts", type=int, default=None)
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> AppConfig:
    """Environment first, command line overrides."""
    if args.endpoint:
        os.environ["CHANNEL_ENDPOINT"] = args.endpoint

    config = AppConfig.load_from_env()

    overrides: dict[str, Any] = {}
    if args.heartbeat_interval_ms is not None:
        overrides["heartbeat_interval_ms"] = args.heartbeat_interval_ms
    if args.reconnect_interval_ms is not None:
        overrides["reconnect_base_interval_ms"] = args.reconnect_interval_ms
    if args.max_reconnect_attempts is not None:
        overrides["max_reconnect_attempts"] = args.max_reconnect_attempts

    if overrides:
        config = replace(config, channel=replace(config.channel, **overrides))
    return config


async def run(config: AppConfig) -> None:
    """Run one channel until SIGINT/SIGTERM."""
    session_flag: ObservableValue[bool] = ObservableValue(False, name="session_flag")
    binding: LifecycleBinding = create_channel(config.channel, session_flag=session_flag)

    def _on_message(message: Any) -> None:
        binding.manager.log({
            "event_type": "message",
            "message": message,
        })

    unsubscribe = binding.latest_message.subscribe(_on_message)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            pass

    session_flag.set(True)
    try:
        await stop.wait()
    finally:
        unsubscribe()
        session_flag.set(False)
        binding.close()
        await binding.manager.shutdown()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = _parse_args(argv)
    config = load_config(args)
    logger.configure(enabled=config.enable_json_logs)
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
