from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m queue_caller.app display [--gui] [--audio]
#     python -m queue_caller.app counter --counter-id N
#
# Without --gui the viewer prints its screen to the terminal every time it
# changes (useful on headless boxes and when debugging the server).

import argparse
import asyncio
import logging
from pathlib import Path

from .config import TRANSPORTS, CallerConfig
from .context import CallerContext, Screen


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Queue call viewer (SSE/MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--server", default="http://127.0.0.1:8080", help="ticketing server base URL")
        p.add_argument("--transport", choices=TRANSPORTS, default="sse", help="push channel")
        p.add_argument("--mqtt-host", default="127.0.0.1")
        p.add_argument("--mqtt-port", type=int, default=1883)
        p.add_argument("--namespace", default="queue/v1")
        p.add_argument("--reconnect-delay", type=float, default=None, help="seconds before reconnecting")
        p.add_argument("--poll-interval", type=float, default=None, help="seconds between fallback polls")
        p.add_argument("--pull-interval", type=float, default=None, help="seconds between full resyncs")
        p.add_argument("--gui", action="store_true", help="open Tkinter board")
        p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    p_display = sub.add_parser("display", help="Public board: announces calls")
    add_common_args(p_display)
    audio = p_display.add_mutually_exclusive_group()
    audio.add_argument("--audio", dest="audio", action="store_true", default=None, help="start with sound on")
    audio.add_argument("--no-audio", dest="audio", action="store_false", help="start muted")
    p_display.add_argument("--recent", type=int, default=5, help="recent calls shown")
    p_display.add_argument("--history", type=int, default=20, help="history entries kept")
    p_display.add_argument("--preferences", type=Path, default=None, help="audio preference file")

    p_counter = sub.add_parser("counter", help="Counter screen: tracks one counter")
    add_common_args(p_counter)
    p_counter.add_argument("--counter-id", type=int, required=True)

    return parser


def config_from_args(args: argparse.Namespace) -> CallerConfig:
    overrides: dict[str, object] = {
        "server_url": args.server,
        "transport": args.transport,
        "mqtt_host": args.mqtt_host,
        "mqtt_port": args.mqtt_port,
        "namespace": args.namespace,
    }
    for name in ("reconnect_delay", "poll_interval", "pull_interval"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value

    if args.cmd == "counter":
        return CallerConfig.for_counter(args.counter_id, audio_enabled=False, **overrides)

    overrides.update(
        audio_enabled=args.audio,
        recent_capacity=args.recent,
        history_capacity=args.history,
        preferences_path=args.preferences,
    )
    return CallerConfig.for_display(**overrides)


def print_screen(screen: Screen) -> None:
    print(screen.as_text(), flush=True)


async def run_headless(config: CallerConfig) -> None:
    context = CallerContext.create(config, renderer=print_screen)
    await context.start()
    try:
        await asyncio.Event().wait()
    finally:
        await context.dispose()


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = config_from_args(args)
    except ValueError as e:
        raise SystemExit(f"invalid configuration: {e}")

    print(f"[{config.role}] server={config.server_url}, transport={config.transport}")

    if args.gui:
        from .gui import DisplayBoardApp

        DisplayBoardApp(config=config).start()
        return

    try:
        asyncio.run(run_headless(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
