"""
resolver.py — Port conflict resolution (core engine).

Combines:
  • is_port_available   — bind-probe, never cached
  • ProcessDirectory    — who owns a port
  • ProcessTerminator   — graceful / forceful termination
  • a confirmation callable (injected; the CLI asks on stdin)

Free-port search:

  1.  Probe the requested port; return it if free
  2.  Probe start+1, start+2, … in increasing order
  3.  Stop at the first free port, past 65535, or after max_attempts probes
      in total → ExhaustedSearch

Kill and verify:

  1.  Resolve the owner        → NotInUse if nobody listens
  2.  Confirm unless forced    → Cancelled if declined (no signal sent)
  3.  Graceful signal, escalate to forceful if that fails
                               → Failed if neither could be delivered
  4.  Wait KILL_GRACE_SECONDS, ask the directory again
                               → StillRunning if the port is still owned
  5.                           → Resolved
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Protocol

from .config import (
    FRAMEWORK_FALLBACK_BASE_PORT,
    FRAMEWORK_PORTS,
    KILL_GRACE_SECONDS,
    MAX_PORT,
    framework_ports,
    settings,
)
from .directory import ProcessDirectory
from .models import ProcessHandle, ResolutionOutcome, ResolutionResult, SignalKind
from .prober import is_port_available, validate_port
from .terminator import ProcessTerminator, TerminationError

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class OwnerLookup(Protocol):
    async def get_owning_process(self, port: int) -> Optional[ProcessHandle]: ...


class SignalSender(Protocol):
    def send_signal(self, pid: int, kind: SignalKind) -> None: ...


class ExhaustedSearch(RuntimeError):
    """No free port was found within the search bound."""

    def __init__(self, start_port: int, max_attempts: int) -> None:
        super().__init__(
            f"Could not find available port within {max_attempts} attempts starting at {start_port}"
        )
        self.start_port = start_port
        self.max_attempts = max_attempts


class ConflictResolver:
    """
    Finds free ports and frees busy ones.

    Usage::

        resolver = ConflictResolver(confirm=ask_confirmation)
        port = resolver.find_available_port(3000)
        result = await resolver.kill_port(3000, force=False)
        if result.outcome is ResolutionOutcome.STILL_RUNNING:
            ...
    """

    def __init__(
        self,
        directory: OwnerLookup | None = None,
        terminator: SignalSender | None = None,
        confirm: Confirm | None = None,
        probe: Callable[[int], bool] | None = None,
    ) -> None:
        self.directory = directory if directory is not None else ProcessDirectory()
        self.terminator = terminator if terminator is not None else ProcessTerminator()
        self.confirm = confirm
        self._probe = probe or is_port_available

    # ── Availability ────────────────────────────────────────────────────────

    def is_port_available(self, port: int) -> bool:
        return self._probe(validate_port(port))

    def find_available_port(
        self, start_port: int | None = None, max_attempts: int | None = None
    ) -> int:
        """Return `start_port` or the nearest free port above it.

        Probes at most `max_attempts` ports in total, never below
        `start_port` and never above 65535.
        """
        start_port = validate_port(settings.default_base_port if start_port is None else start_port)
        max_attempts = settings.max_attempts if max_attempts is None else max_attempts
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        if self.is_port_available(start_port):
            return start_port

        for offset in range(1, max_attempts):
            candidate = start_port + offset
            if candidate > MAX_PORT:
                break
            if self.is_port_available(candidate):
                logger.info("Port %d busy, %d is free", start_port, candidate)
                return candidate

        raise ExhaustedSearch(start_port, max_attempts)

    def used_ports_in_range(self, start: int, end: int) -> List[int]:
        """Ports in [start, end] that fail the bind-probe, ascending."""
        validate_port(start)
        validate_port(end)
        return [port for port in range(start, end + 1) if not self.is_port_available(port)]

    # ── Framework conventions ───────────────────────────────────────────────

    @staticmethod
    def framework_suggestions() -> dict[str, list[int]]:
        return {name: list(ports) for name, ports in FRAMEWORK_PORTS.items()}

    def find_port_for_framework(self, framework: str) -> int:
        """First free conventional port for `framework`, else a general search from 3000."""
        for port in framework_ports(framework):
            if self.is_port_available(port):
                return port
        logger.info("No conventional port free for %s, searching from %d", framework, FRAMEWORK_FALLBACK_BASE_PORT)
        return self.find_available_port(FRAMEWORK_FALLBACK_BASE_PORT)

    # ── Kill and verify ─────────────────────────────────────────────────────

    async def kill_port(self, port: int, force: bool = False) -> ResolutionResult:
        validate_port(port)
        process = await self.directory.get_owning_process(port)
        if process is None:
            return ResolutionResult(
                outcome=ResolutionOutcome.NOT_IN_USE,
                port=port,
                message="No process found on this port",
            )

        if not force and not await self._confirmed(port, process):
            return ResolutionResult.for_process(
                ResolutionOutcome.CANCELLED, port, process, "Cancelled by user"
            )

        try:
            self._terminate(process.pid)
        except TerminationError as exc:
            logger.warning("Failed to terminate %s (PID %d): %s", process.name, process.pid, exc)
            return ResolutionResult.for_process(ResolutionOutcome.FAILED, port, process, str(exc))

        # Socket release is not atomic with the signal; re-check after a fixed delay.
        await asyncio.sleep(KILL_GRACE_SECONDS)
        if await self.directory.get_owning_process(port) is not None:
            return ResolutionResult.for_process(
                ResolutionOutcome.STILL_RUNNING, port, process, "Process may still be running"
            )

        logger.info("Freed port %d (killed %s, PID %d)", port, process.name, process.pid)
        return ResolutionResult.for_process(
            ResolutionOutcome.RESOLVED, port, process, "Process killed successfully"
        )

    async def kill_ports(self, ports: Iterable[int], force: bool = False) -> List[ResolutionResult]:
        """kill_port for each port in turn; one failure never stops the rest."""
        results: List[ResolutionResult] = []
        for port in ports:
            try:
                results.append(await self.kill_port(port, force=force))
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Error resolving port %s: %s", port, exc)
                results.append(
                    ResolutionResult(outcome=ResolutionOutcome.FAILED, port=port, message=str(exc))
                )
        return results

    async def auto_resolve(self, port: int, force: bool = False) -> ResolutionResult:
        """Free `port` if someone holds it; NotInUse otherwise."""
        if await self.directory.get_owning_process(validate_port(port)) is None:
            return ResolutionResult(
                outcome=ResolutionOutcome.NOT_IN_USE, port=port, message="Port is not in use"
            )
        return await self.kill_port(port, force=force)

    # ── Helpers ─────────────────────────────────────────────────────────────

    async def _confirmed(self, port: int, process: ProcessHandle) -> bool:
        if self.confirm is None:
            logger.warning("No confirmation prompt configured; refusing to kill PID %d", process.pid)
            return False
        prompt = (
            f"Are you sure you want to kill process {process.name} "
            f"(PID: {process.pid}) on port {port}? (y/N): "
        )
        # Blocking prompts (input()) run in a worker thread, off the event loop.
        return bool(await asyncio.to_thread(self.confirm, prompt))

    def _terminate(self, pid: int) -> None:
        try:
            self.terminator.send_signal(pid, SignalKind.GRACEFUL)
        except TerminationError as exc:
            logger.debug("Graceful termination of PID %d failed (%s), escalating", pid, exc)
            self.terminator.send_signal(pid, SignalKind.FORCEFUL)
