"""
directory.py — Process directory: who is listening on which port.

Responsibilities:
  • Run the platform's socket-listing command (ss / lsof / netstat)
  • Parse its text output into canonical PortEntry rows
  • De-duplicate on (port, pid) and sort by port
  • Resolve the owning process of a port into a ProcessHandle, looking up
    the process name and command line through psutil

The text formats are isolated in the *Enumerator classes; nothing outside
this module knows which command produced a listing.

Dependencies: psutil (process name / command line lookup)
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from typing import Awaitable, Callable, List, Optional, Sequence

import psutil

from .config import COMMON_PORTS, settings
from .models import PortEntry, PortSummary, ProcessHandle

logger = logging.getLogger(__name__)

UNKNOWN_PROCESS = "Unknown"

CommandRunner = Callable[[Sequence[str], float], Awaitable[str]]

_TRAILING_PORT_RE = re.compile(r":(\d+)$")


def _split_address(local: str) -> Optional[tuple[str, int]]:
    """'0.0.0.0:3000' -> ('0.0.0.0', 3000); '[::]:80' -> ('[::]', 80)."""
    match = _TRAILING_PORT_RE.search(local)
    if not match:
        return None
    port = int(match.group(1))
    if port > 65535:
        return None
    return local[: match.start()] or "*", port


# ══════════════════════════════════════════════════════════════════════════════
# Enumerators — one per listing command
# ══════════════════════════════════════════════════════════════════════════════


class PortEnumerator:
    """A listing command plus a parser for its output."""

    name: str = "base"
    command: tuple[str, ...] = ()

    def parse(self, output: str) -> List[PortEntry]:
        raise NotImplementedError


class SsEnumerator(PortEnumerator):
    """Linux ``ss -tulpn``.

    ``tcp LISTEN 0 511 0.0.0.0:3000 0.0.0.0:* users:(("node",pid=1234,fd=20))``
    """

    name = "ss"
    command = ("ss", "-tulpn")

    _PID_RE = re.compile(r"pid=(\d+)")
    _COMMAND_RE = re.compile(r'users:\(\("([^"]+)"')

    def parse(self, output: str) -> List[PortEntry]:
        entries: List[PortEntry] = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 5 or parts[1] != "LISTEN":
                continue
            split = _split_address(parts[4])
            if split is None:
                continue
            address, port = split
            pid_match = self._PID_RE.search(line)
            cmd_match = self._COMMAND_RE.search(line)
            entries.append(
                PortEntry(
                    port=port,
                    pid=int(pid_match.group(1)) if pid_match else 0,
                    protocol=parts[0],
                    address=address,
                    state=parts[1],
                    command=cmd_match.group(1) if cmd_match else "",
                )
            )
        return entries


class LsofEnumerator(PortEnumerator):
    """macOS ``lsof -i -P -n``.

    ``node 12345 user 24u IPv4 0x1234 0t0 TCP *:3000 (LISTEN)``
    """

    name = "lsof"
    command = ("lsof", "-i", "-P", "-n")

    _LISTEN_RE = re.compile(r":(\d+)\s*\(LISTEN\)")
    _PROTO_RE = re.compile(r"(TCP|UDP)\s+(\S+)")

    def parse(self, output: str) -> List[PortEntry]:
        entries: List[PortEntry] = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 9:
                continue
            listen = self._LISTEN_RE.search(line)
            if not listen or not parts[1].isdigit():
                continue
            port = int(listen.group(1))
            if port > 65535:
                continue
            proto = self._PROTO_RE.search(line)
            address = "*"
            if proto:
                split = _split_address(proto.group(2))
                address = split[0] if split else proto.group(2)
            entries.append(
                PortEntry(
                    port=port,
                    pid=int(parts[1]),
                    protocol=proto.group(1) if proto else "TCP",
                    address=address,
                    state="LISTENING",
                    command=parts[0],
                )
            )
        return entries


class NetstatEnumerator(PortEnumerator):
    """Windows ``netstat -ano``.

    ``TCP    0.0.0.0:3000    0.0.0.0:0    LISTENING    12345``
    """

    name = "netstat"
    command = ("netstat", "-ano")

    def parse(self, output: str) -> List[PortEntry]:
        entries: List[PortEntry] = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 5 or parts[0].upper() != "TCP" or parts[3] != "LISTENING":
                continue
            split = _split_address(parts[1])
            if split is None or not parts[4].isdigit():
                continue
            address, port = split
            pid = int(parts[4])
            if pid <= 0:
                continue
            entries.append(
                PortEntry(port=port, pid=pid, protocol="TCP", address=address, state="LISTENING")
            )
        return entries


def enumerator_for_platform(platform: str | None = None) -> PortEnumerator:
    """Pick the listing command for `platform` (defaults to sys.platform)."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        return NetstatEnumerator()
    if platform == "darwin":
        return LsofEnumerator()
    return SsEnumerator()


def dedupe_entries(entries: List[PortEntry]) -> List[PortEntry]:
    """Drop repeated (port, pid) rows, keeping the first, and sort by port."""
    seen: set[tuple[int, int]] = set()
    unique: List[PortEntry] = []
    for entry in entries:
        key = (entry.port, entry.pid)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return sorted(unique, key=lambda e: e.port)


# ══════════════════════════════════════════════════════════════════════════════
# Command execution
# ══════════════════════════════════════════════════════════════════════════════


async def run_command(argv: Sequence[str], timeout: float) -> str:
    """Run `argv` and return its stdout.

    Listing commands exit non-zero for benign reasons (e.g. lsof with no
    matches), so whatever stdout was produced is returned regardless of the
    exit status.  A command that cannot be started or times out yields "".
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.warning("Cannot run %s: %s", argv[0], exc)
        return ""

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # exited right at the deadline
        await proc.wait()
        logger.warning("%s timed out after %.1fs", argv[0], timeout)
        return ""

    if proc.returncode:
        logger.debug(
            "%s exited with %s: %s",
            argv[0],
            proc.returncode,
            stderr.decode(errors="replace").strip(),
        )
    return stdout.decode(errors="replace")


# ══════════════════════════════════════════════════════════════════════════════
# ProcessDirectory
# ══════════════════════════════════════════════════════════════════════════════


def lookup_process_name(pid: int) -> str:
    """Process name for `pid`, or "Unknown" when it cannot be read."""
    try:
        return psutil.Process(pid).name() or UNKNOWN_PROCESS
    except psutil.Error as exc:
        logger.debug("Name lookup for pid %d failed: %s", pid, exc)
        return UNKNOWN_PROCESS


def lookup_process_args(pid: int) -> Optional[str]:
    try:
        args = psutil.Process(pid).cmdline()
    except psutil.Error as exc:
        logger.debug("Command line lookup for pid %d failed: %s", pid, exc)
        return None
    return " ".join(args) or None


class ProcessDirectory:
    """
    Maps listening ports to the processes that own them.

    Usage::

        directory = ProcessDirectory()
        owner = await directory.get_owning_process(3000)
        entries = await directory.scan_range(3000, 3999)
    """

    def __init__(
        self,
        enumerator: PortEnumerator | None = None,
        runner: CommandRunner | None = None,
        timeout: float | None = None,
    ) -> None:
        self.enumerator = enumerator or enumerator_for_platform()
        self._run = runner or run_command
        self._timeout = timeout if timeout is not None else settings.command_timeout

    # ── Listings ────────────────────────────────────────────────────────────

    async def get_active_ports(self) -> List[PortEntry]:
        output = await self._run(self.enumerator.command, self._timeout)
        entries = dedupe_entries(self.enumerator.parse(output))
        logger.debug("%s reported %d listening sockets", self.enumerator.name, len(entries))
        return entries

    async def scan_port(self, port: int) -> List[PortEntry]:
        return [e for e in await self.get_active_ports() if e.port == port]

    async def scan_range(self, start: int, end: int) -> List[PortEntry]:
        return [e for e in await self.get_active_ports() if start <= e.port <= end]

    async def scan_common_ports(self) -> List[PortEntry]:
        common = set(COMMON_PORTS)
        return [e for e in await self.get_active_ports() if e.port in common]

    async def get_summary(self) -> PortSummary:
        return PortSummary.from_entries(await self.get_active_ports())

    # ── Ownership ───────────────────────────────────────────────────────────

    async def get_process_info(self, port: int) -> Optional[PortEntry]:
        """First listener on `port`, enriched with process name and arguments."""
        entries = await self.scan_port(port)
        if not entries:
            return None
        entry = entries[0]
        if entry.pid <= 0:
            return entry.model_copy(update={"process_name": entry.command or UNKNOWN_PROCESS})
        return entry.model_copy(
            update={
                "process_name": lookup_process_name(entry.pid),
                "process_args": lookup_process_args(entry.pid),
            }
        )

    async def get_owning_process(self, port: int) -> Optional[ProcessHandle]:
        """The process listening on `port`, or None when nobody (visible) is."""
        entries = await self.scan_port(port)
        owned = [e for e in entries if e.pid > 0]
        if not owned:
            if entries:
                logger.warning(
                    "Port %d is listed but its owner is hidden (try running with elevated privileges)",
                    port,
                )
            return None

        entry = owned[0]
        name = lookup_process_name(entry.pid)
        if name == UNKNOWN_PROCESS and entry.command:
            name = entry.command
        return ProcessHandle(
            pid=entry.pid,
            name=name,
            command_line=lookup_process_args(entry.pid),
        )
