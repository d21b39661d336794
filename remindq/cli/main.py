"""
CLI entry point for remindq.

Usage:
    remindq [--config PATH] [--log-level LEVEL] [--output-file PATH] <command> ...

Commands:
    put    schedule a reminder
    list   show all reminders and which are due
    cron   fire due reminders and retire the delivered ones
    watch  run cron on an interval until interrupted
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from remindq import __version__
from remindq.config.config_loader import init_config_loader
from remindq.config.settings import Settings, load_settings
from remindq.delivery import DeliveryDispatcher, create_agent_client, create_notifier
from remindq.engine import QueueEngine
from remindq.errors import ReminderQueueError, truncate_error
from remindq.lease import create_lease
from remindq.logging_config import setup_logging
from remindq.outputs import cron_outputs, emit, list_outputs, put_outputs
from remindq.scheduler import CronWatcher
from remindq.store import create_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remindq",
        description="Schedule one-shot reminders that ping an agent session.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ... (default: LOG_LEVEL or INFO)")
    parser.add_argument(
        "--output-file",
        default=os.getenv("REMINDQ_OUTPUT_FILE"),
        help="Also append outputs to this file as key<<DELIM blocks",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--timezone", dest="display_timezone", help="Display timezone (IANA name)")
    common.add_argument("--lock-mode", choices=["auto", "none", "always"], help="When to take the lease")
    common.add_argument("--store-backend", choices=["file", "postgres", "memory"])
    common.add_argument("--store-path", help="Directory for the file backend")
    common.add_argument("--store-name", help="Logical name of the reminder blob")
    common.add_argument("--lock-timeout", type=float, help="Seconds to wait for the lease")

    delivery = argparse.ArgumentParser(add_help=False)
    delivery.add_argument("--credential", help="Agent API credential")
    delivery.add_argument("--agent-api-base", help="Agent API base URL")
    delivery.add_argument(
        "--cc", action="append", default=None, help="Default cc target added to every notification"
    )
    delivery.add_argument("--notify-provider", choices=["none", "slack", "ntfy"])
    delivery.add_argument("--channel", help="Notification channel (Slack channel or ntfy topic)")
    delivery.add_argument("--notify-token", help="Notification credential")

    sub = parser.add_subparsers(dest="command", required=True)

    put = sub.add_parser("put", parents=[common], help="Schedule a reminder")
    when = put.add_mutually_exclusive_group(required=True)
    when.add_argument("--remind-at", help="ISO 8601 timestamp with offset, e.g. 2025-01-15T09:00:00+01:00")
    when.add_argument("--in-minutes", type=float, dest="delay_minutes", help="Minutes from now")
    put.add_argument("--message", required=True, help="Text delivered to the agent")
    put.add_argument("--session", dest="session_ref", required=True, help="Agent session URL")
    put.add_argument("--cc", action="append", default=[], help="User or tag to mention (repeatable)")

    sub.add_parser("list", parents=[common], help="List reminders and which are due")

    sub.add_parser("cron", parents=[common, delivery], help="Fire due reminders")

    watch = sub.add_parser("watch", parents=[common, delivery], help="Run cron on an interval")
    watch.add_argument("--interval-seconds", type=float, default=60.0)

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {
        "display_timezone": args.display_timezone,
        "lock_mode": args.lock_mode,
        "store_backend": args.store_backend,
        "store_path": args.store_path,
        "store_name": args.store_name,
        "lock_timeout": args.lock_timeout,
    }
    if getattr(args, "command", None) in ("cron", "watch") and args.cc:
        overrides["default_cc"] = args.cc
    return load_settings(**overrides)


def _build_dispatcher(args: argparse.Namespace, settings: Settings) -> DeliveryDispatcher:
    agent = create_agent_client(token=args.credential, api_base=args.agent_api_base)
    notifier = create_notifier(
        provider=args.notify_provider,
        channel=args.channel,
        token=args.notify_token,
    )
    return DeliveryDispatcher(
        agent=agent,
        notifier=notifier,
        display_timezone=settings.display_timezone,
        default_cc=settings.default_cc,
    )


def _raise_system_exit(signum, frame):
    # Turn SIGTERM into SystemExit so lease release runs in finally blocks.
    raise SystemExit(128 + signum)


def _run_watch(engine: QueueEngine, interval: float, output_file: Optional[str]) -> None:
    def on_result(result):
        emit(cron_outputs(result), sys.stdout, output_file)

    async def _main():
        watcher = CronWatcher(engine, interval_seconds=interval, on_result=on_result)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, watcher.stop)
            except NotImplementedError:
                pass
        await watcher.run()

    asyncio.run(_main())


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return the exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, command=args.command)
    signal.signal(signal.SIGTERM, _raise_system_exit)

    try:
        loader = init_config_loader(args.config)
        logging_cfg = loader.get_logging_config()
        level = args.log_level or os.getenv("LOG_LEVEL") or logging_cfg.get("level")
        if level or logging_cfg.get("format"):
            setup_logging(level=level, fmt=logging_cfg.get("format"), command=args.command)

        settings = _settings_from_args(args)
        engine = QueueEngine(
            store=create_store(settings),
            settings=settings,
            lease=create_lease(settings),
        )

        if args.command == "put":
            result = engine.put(
                message=args.message,
                session_ref=args.session_ref,
                remind_at=args.remind_at,
                delay_minutes=args.delay_minutes,
                cc_targets=args.cc,
            )
            emit(put_outputs(result, settings.display_timezone), sys.stdout, args.output_file)
        elif args.command == "list":
            result = engine.list()
            emit(list_outputs(result, settings.display_timezone), sys.stdout, args.output_file)
        elif args.command == "cron":
            engine.dispatcher = _build_dispatcher(args, settings)
            result = asyncio.run(engine.cron())
            emit(cron_outputs(result), sys.stdout, args.output_file)
        elif args.command == "watch":
            engine.dispatcher = _build_dispatcher(args, settings)
            _run_watch(engine, args.interval_seconds, args.output_file)
    except ReminderQueueError as e:
        message = truncate_error(str(e), 500)
        logger.error(f"{args.command} failed: {message}")
        print(f"error: {message}", file=sys.stderr)
        return e.exit_code
    return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
