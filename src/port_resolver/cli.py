"""
cli.py — Command-line entry point for the port resolver.

  port-resolver scan    [--port P | --range A-B] [--json]
  port-resolver kill    <port> [--force]
  port-resolver resolve <port> [--check | --allocate P]
  port-resolver watch   <port> [--interval S]

Exit status: 0 on success (including every structured kill outcome),
1 on an operational error, 2 on invalid arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from typing import Callable, List, Optional, Sequence

from dotenv import find_dotenv, load_dotenv

from .config import MAX_PORT, MIN_PORT, settings
from .directory import ProcessDirectory
from .models import PortEntry, ResolutionOutcome, ResolutionResult
from .resolver import ConflictResolver

logger = logging.getLogger(__name__)

_RULE = "═" * 70


# ══════════════════════════════════════════════════════════════════════════════
# Argument parsing
# ══════════════════════════════════════════════════════════════════════════════


def port_arg(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise argparse.ArgumentTypeError(f"port {port} out of range ({MIN_PORT}-{MAX_PORT})")
    return port


def range_arg(value: str) -> tuple[int, int]:
    """'3000-4000' -> (3000, 4000)."""
    start, sep, end = value.partition("-")
    if not sep:
        raise argparse.ArgumentTypeError(f"invalid range: {value!r} (expected START-END)")
    low, high = port_arg(start.strip()), port_arg(end.strip())
    if low > high:
        raise argparse.ArgumentTypeError(f"invalid range: {value!r} (start > end)")
    return low, high


def interval_arg(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r}") from None
    if seconds <= 0:
        raise argparse.ArgumentTypeError("interval must be positive")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="port-resolver",
        description="Automatically detects and resolves port conflicts across local development services.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan for ports in use")
    target = scan.add_mutually_exclusive_group()
    target.add_argument("-p", "--port", type=port_arg, help="Scan specific port")
    target.add_argument("-r", "--range", type=range_arg, help="Scan port range (e.g. 3000-4000)")
    scan.add_argument("-j", "--json", action="store_true", help="Output as JSON")

    kill = sub.add_parser("kill", help="Kill process using a specific port")
    kill.add_argument("port", type=port_arg, help="Port number")
    kill.add_argument("-f", "--force", action="store_true", help="Force kill without confirmation")

    resolve = sub.add_parser("resolve", help="Resolve port conflict by finding an alternative port")
    resolve.add_argument("port", type=port_arg, help="Port that has conflict")
    mode = resolve.add_mutually_exclusive_group()
    mode.add_argument("-a", "--allocate", type=port_arg, help="Try to allocate specific port")
    mode.add_argument("-c", "--check", action="store_true", help="Check if port is available")

    watch = sub.add_parser("watch", help="Watch for port changes and notify")
    watch.add_argument("port", type=port_arg, help="Port to watch")
    watch.add_argument(
        "-i",
        "--interval",
        type=interval_arg,
        default=None,
        help="Check interval in seconds (default: $PORT_RESOLVER_WATCH_INTERVAL or 5)",
    )
    return parser


# ══════════════════════════════════════════════════════════════════════════════
# Output helpers
# ══════════════════════════════════════════════════════════════════════════════


def ask_confirmation(prompt: str, input_fn: Callable[[str], str] = input) -> bool:
    """Read a yes/no answer; only 'y' / 'yes' count as yes. EOF means no."""
    try:
        answer = input_fn(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def render_ports_table(entries: List[PortEntry]) -> str:
    if not entries:
        return "No ports found."
    lines = [
        "",
        _RULE,
        " Port    PID       Protocol  Address     State      Command",
        _RULE,
    ]
    for e in entries:
        lines.append(
            f" {str(e.port):<7} {str(e.pid or 'N/A'):<9} {e.protocol:<8} "
            f"{e.address:<10} {e.state:<10} {e.display_command}"
        )
    lines.append(_RULE)
    lines.append(f" Total: {len(entries)} port(s) in use\n")
    return "\n".join(lines)


def render_json(entries: List[PortEntry]) -> str:
    return json.dumps([e.model_dump() for e in entries], indent=2)


def describe_result(result: ResolutionResult) -> str:
    port = result.port
    if result.outcome is ResolutionOutcome.RESOLVED:
        return (
            f"✓ Successfully killed process on port {port}\n"
            f"  PID: {result.pid}, Name: {result.process_name}"
        )
    if result.outcome is ResolutionOutcome.NOT_IN_USE:
        return f"No process found on port {port}"
    if result.outcome is ResolutionOutcome.CANCELLED:
        return f"Cancelled. {result.process_name} (PID: {result.pid}) left running on port {port}"
    if result.outcome is ResolutionOutcome.STILL_RUNNING:
        return (
            f"⚠ Signal sent to {result.process_name} (PID: {result.pid}) "
            f"but port {port} is still in use"
        )
    return f"✗ Failed to kill process on port {port}: {result.message}"


def _timestamp() -> str:
    return time.strftime("%H:%M:%S")


# ══════════════════════════════════════════════════════════════════════════════
# Commands
# ══════════════════════════════════════════════════════════════════════════════


def _build_services() -> tuple[ProcessDirectory, ConflictResolver]:
    directory = ProcessDirectory()
    resolver = ConflictResolver(directory=directory, confirm=ask_confirmation)
    return directory, resolver


async def _cmd_scan(args: argparse.Namespace, directory: ProcessDirectory) -> int:
    if args.port is not None:
        entries = await directory.scan_port(args.port)
    elif args.range is not None:
        entries = await directory.scan_range(*args.range)
    else:
        entries = await directory.scan_common_ports()
    print(render_json(entries) if args.json else render_ports_table(entries))
    return 0


async def _cmd_kill(args: argparse.Namespace, resolver: ConflictResolver) -> int:
    result = await resolver.kill_port(args.port, force=args.force)
    print(describe_result(result))
    return 0


async def _cmd_resolve(
    args: argparse.Namespace, directory: ProcessDirectory, resolver: ConflictResolver
) -> int:
    if args.check:
        if resolver.is_port_available(args.port):
            print(f"✓ Port {args.port} is available")
        else:
            print(f"✗ Port {args.port} is in use")
            print(render_ports_table(await directory.scan_port(args.port)))
        return 0

    if args.allocate is not None:
        target = args.allocate
        if resolver.is_port_available(target):
            print(f"✓ Port {target} is available and ready to use")
        else:
            print(f"✗ Port {target} is in use")
            print(f"  Suggestion: Try port {resolver.find_available_port(target)}")
            print(render_ports_table(await directory.scan_port(target)))
        return 0

    available = resolver.find_available_port(args.port)
    if available == args.port:
        print(f"✓ Port {args.port} is available")
    else:
        print(f"Port {args.port} is in use.")
        print(f"  Suggested alternative: {available}")
    return 0


async def watch_port(
    directory: ProcessDirectory,
    port: int,
    interval: float,
    iterations: Optional[int] = None,
    emit: Callable[[str], None] = print,
) -> None:
    """Report the port's state every `interval` seconds (forever unless `iterations`)."""
    emit(f"Watching port {port}... (Press Ctrl+C to stop)")
    emit(f"Check interval: {interval:g} seconds\n")
    count = 0
    while iterations is None or count < iterations:
        await asyncio.sleep(interval)
        entries = await directory.scan_port(port)
        if entries:
            emit(f"[{_timestamp()}] Port {port} is now in use:")
            emit(render_ports_table(entries))
        else:
            emit(f"[{_timestamp()}] Port {port} is now available")
        count += 1


async def _dispatch(args: argparse.Namespace) -> int:
    directory, resolver = _build_services()
    if args.command == "scan":
        return await _cmd_scan(args, directory)
    if args.command == "kill":
        return await _cmd_kill(args, resolver)
    if args.command == "resolve":
        return await _cmd_resolve(args, directory, resolver)
    interval = args.interval if args.interval is not None else settings.watch_interval
    await watch_port(directory, args.port, interval)
    return 0


# ══════════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════════


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(find_dotenv(usecwd=True), override=False)
    settings.reload()

    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose or settings.debug else getattr(
        logging, settings.log_level.upper(), logging.WARNING
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    try:
        return asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        print("\n\nStopped watching." if args.command == "watch" else "\nInterrupted.")
        return 0 if args.command == "watch" else 1
    except Exception as exc:  # pylint: disable=broad-except
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error ({args.command}): {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
