"""
terminator.py — Deliver termination signals to a process.

Graceful maps to ``psutil.Process.terminate()`` (SIGTERM on POSIX) and
forceful to ``psutil.Process.kill()`` (SIGKILL on POSIX).  On Windows both
end in TerminateProcess.
"""

from __future__ import annotations

import logging

import psutil

from .models import SignalKind

logger = logging.getLogger(__name__)


class TerminationError(Exception):
    """Signal could not be delivered to the process."""

    def __init__(self, pid: int, kind: SignalKind, reason: str) -> None:
        super().__init__(f"Could not send {kind.value} signal to PID {pid}: {reason}")
        self.pid = pid
        self.kind = kind
        self.reason = reason


class ProcessTerminator:
    def send_signal(self, pid: int, kind: SignalKind) -> None:
        """Send `kind` to `pid`. Raises TerminationError on any failure."""
        try:
            proc = psutil.Process(pid)
            if kind is SignalKind.FORCEFUL:
                proc.kill()
            else:
                proc.terminate()
        except psutil.NoSuchProcess as exc:
            raise TerminationError(pid, kind, "no such process") from exc
        except psutil.AccessDenied as exc:
            raise TerminationError(pid, kind, "access denied") from exc
        except (psutil.Error, OSError) as exc:
            raise TerminationError(pid, kind, str(exc) or type(exc).__name__) from exc
        logger.info("Sent %s signal to PID %d", kind.value, pid)
