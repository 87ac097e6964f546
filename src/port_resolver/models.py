"""
models.py — Pydantic schemas and enumerations for the port resolver.

Two layers:
  1. Resolution types   (ResolutionOutcome, ResolutionResult, ProcessHandle)
  2. Listing types      (PortEntry, PortSummary) produced by the process directory
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import MAX_PORT, MIN_PORT


# ══════════════════════════════════════════════════════════════════════════════
# Enumerations
# ══════════════════════════════════════════════════════════════════════════════


class ResolutionOutcome(str, Enum):
    RESOLVED      = "resolved"       # signal sent and the port was released
    NOT_IN_USE    = "not_in_use"     # nobody owned the port
    CANCELLED     = "cancelled"      # user declined the confirmation
    STILL_RUNNING = "still_running"  # signal sent, owner still present after grace period
    FAILED        = "failed"         # signal delivery itself errored


class SignalKind(str, Enum):
    GRACEFUL = "graceful"   # SIGTERM / polite request
    FORCEFUL = "forceful"   # SIGKILL / TerminateProcess


# ══════════════════════════════════════════════════════════════════════════════
# Resolution types
# ══════════════════════════════════════════════════════════════════════════════


class ProcessHandle(BaseModel):
    """The process currently listening on a port."""

    model_config = ConfigDict(frozen=True)

    pid: int = Field(..., gt=0)
    name: str = "Unknown"
    command_line: Optional[str] = None


class ResolutionResult(BaseModel):
    """Outcome of a kill / resolve request. Immutable, never persisted."""

    model_config = ConfigDict(frozen=True)

    outcome: ResolutionOutcome
    port: int
    pid: Optional[int] = None
    process_name: Optional[str] = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.outcome is ResolutionOutcome.RESOLVED

    @classmethod
    def for_process(
        cls,
        outcome: ResolutionOutcome,
        port: int,
        process: ProcessHandle,
        message: str,
    ) -> "ResolutionResult":
        return cls(
            outcome=outcome,
            port=port,
            pid=process.pid,
            process_name=process.name,
            message=message,
        )


# ══════════════════════════════════════════════════════════════════════════════
# Listing types
# ══════════════════════════════════════════════════════════════════════════════


class PortEntry(BaseModel):
    """One listening socket as reported by ss / lsof / netstat."""

    port: int = Field(..., ge=MIN_PORT, le=MAX_PORT)
    pid: int = 0                      # 0 when the OS hides the owner
    protocol: str = "TCP"
    address: str = "*"
    state: str = "LISTENING"
    command: str = ""
    process_name: Optional[str] = None
    process_args: Optional[str] = None

    @field_validator("protocol", mode="before")
    @classmethod
    def normalise_protocol(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @property
    def display_command(self) -> str:
        return self.command or self.process_name or ""


class PortSummary(BaseModel):
    total: int
    ports: List[int] = Field(default_factory=list)
    by_port: Dict[int, List[PortEntry]] = Field(default_factory=dict)

    @classmethod
    def from_entries(cls, entries: List[PortEntry]) -> "PortSummary":
        by_port: Dict[int, List[PortEntry]] = {}
        for entry in entries:
            by_port.setdefault(entry.port, []).append(entry)
        return cls(total=len(entries), ports=[e.port for e in entries], by_port=by_port)
