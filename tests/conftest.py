"""Shared fixtures: in-memory collaborators and real listening sockets."""

from __future__ import annotations

import socket
from typing import Dict, List, Optional

import pytest

from port_resolver.models import ProcessHandle, SignalKind
from port_resolver.terminator import TerminationError


class FakeDirectory:
    """Owner lookup backed by a dict; `owners_after_kill` models what the
    re-check sees once a signal has been sent."""

    def __init__(
        self,
        owners: Optional[Dict[int, ProcessHandle]] = None,
        owners_after_kill: Optional[Dict[int, ProcessHandle]] = None,
    ) -> None:
        self.owners = dict(owners or {})
        self.owners_after_kill = owners_after_kill
        self.lookups: List[int] = []
        self.killed = False

    async def get_owning_process(self, port: int) -> Optional[ProcessHandle]:
        self.lookups.append(port)
        if self.killed and self.owners_after_kill is not None:
            return self.owners_after_kill.get(port)
        return self.owners.get(port)


class FakeTerminator:
    def __init__(self, directory: Optional[FakeDirectory] = None, fail: tuple = ()) -> None:
        self.directory = directory
        self.fail = set(fail)
        self.calls: List[tuple] = []

    def send_signal(self, pid: int, kind: SignalKind) -> None:
        self.calls.append((pid, kind))
        if kind in self.fail:
            raise TerminationError(pid, kind, "operation not permitted")
        if self.directory is not None:
            self.directory.killed = True


@pytest.fixture
def listener():
    """Factory for real listening sockets on 127.0.0.1; all closed at teardown."""
    opened: List[socket.socket] = []

    def _open(port: int = 0) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", port))
        sock.listen(1)
        opened.append(sock)
        return sock

    yield _open
    for sock in opened:
        sock.close()


@pytest.fixture
def no_grace(monkeypatch):
    """Skip the post-signal grace delay."""
    import port_resolver.resolver as resolver_mod

    monkeypatch.setattr(resolver_mod, "KILL_GRACE_SECONDS", 0.0)
