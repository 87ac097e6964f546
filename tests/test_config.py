"""
Config and model tests for the port resolver.

Run with:  python -m pytest tests/test_config.py -v
"""

from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        from port_resolver.config import Settings

        with patch.dict(os.environ, {}, clear=True):
            s = Settings()
        self.assertEqual(s.probe_host, "127.0.0.1")
        self.assertEqual(s.default_base_port, 3000)
        self.assertEqual(s.max_attempts, 100)
        self.assertEqual(s.command_timeout, 10.0)
        self.assertEqual(s.watch_interval, 5.0)
        self.assertEqual(s.log_level, "WARNING")
        self.assertFalse(s.debug)

    def test_env_override_and_reload(self):
        from port_resolver.config import Settings

        s = Settings()
        with patch.dict(
            os.environ,
            {
                "PORT_RESOLVER_PROBE_HOST": "0.0.0.0",
                "PORT_RESOLVER_MAX_ATTEMPTS": "7",
                "PORT_RESOLVER_COMMAND_TIMEOUT": "2.5",
                "DEBUG": "yes",
            },
        ):
            s.reload()
            self.assertEqual(s.probe_host, "0.0.0.0")
            self.assertEqual(s.max_attempts, 7)
            self.assertEqual(s.command_timeout, 2.5)
            self.assertTrue(s.debug)

    def test_malformed_numbers_fall_back_to_defaults(self):
        from port_resolver.config import Settings

        with patch.dict(os.environ, {"PORT_RESOLVER_BASE_PORT": "three thousand"}):
            self.assertEqual(Settings().default_base_port, 3000)

    def test_grace_period_is_half_a_second(self):
        from port_resolver.config import KILL_GRACE_SECONDS

        self.assertEqual(KILL_GRACE_SECONDS, 0.5)


class TestCatalogues(unittest.TestCase):
    def test_framework_ports_are_valid_and_non_empty(self):
        from port_resolver.config import FRAMEWORK_PORTS, MAX_PORT

        for name, ports in FRAMEWORK_PORTS.items():
            self.assertTrue(ports, f"No ports for {name}")
            for port in ports:
                self.assertTrue(0 < port <= MAX_PORT, f"{name}: bad port {port}")

    def test_framework_lookup(self):
        from port_resolver.config import DEFAULT_FRAMEWORK_PORTS, framework_ports

        self.assertEqual(framework_ports("Next.js"), [3000, 3001, 3002, 3003])
        self.assertEqual(framework_ports("next.JS"), [3000, 3001, 3002, 3003])
        self.assertEqual(framework_ports("Unheard Of"), DEFAULT_FRAMEWORK_PORTS)

    def test_common_ports_include_dev_defaults(self):
        from port_resolver.config import COMMON_PORTS

        for port in (3000, 5173, 8000, 8080, 5432, 6379):
            self.assertIn(port, COMMON_PORTS)


class TestModels(unittest.TestCase):
    def test_resolution_result_is_immutable(self):
        from port_resolver.models import ResolutionOutcome, ResolutionResult

        result = ResolutionResult(outcome=ResolutionOutcome.NOT_IN_USE, port=3000)
        with self.assertRaises(ValidationError):
            result.port = 3001  # type: ignore[misc]

    def test_success_only_for_resolved(self):
        from port_resolver.models import ResolutionOutcome, ResolutionResult

        for outcome in ResolutionOutcome:
            result = ResolutionResult(outcome=outcome, port=1)
            self.assertEqual(result.success, outcome is ResolutionOutcome.RESOLVED)

    def test_process_handle_requires_positive_pid(self):
        from port_resolver.models import ProcessHandle

        with self.assertRaises(ValidationError):
            ProcessHandle(pid=0, name="x")
        self.assertEqual(ProcessHandle(pid=1).name, "Unknown")

    def test_port_entry_range_and_protocol(self):
        from port_resolver.models import PortEntry

        with self.assertRaises(ValidationError):
            PortEntry(port=70000)
        self.assertEqual(PortEntry(port=80, protocol="udp").protocol, "UDP")

    def test_summary_from_entries(self):
        from port_resolver.models import PortEntry, PortSummary

        summary = PortSummary.from_entries([PortEntry(port=80, pid=1), PortEntry(port=80, pid=2)])
        self.assertEqual(summary.total, 2)
        self.assertEqual(len(summary.by_port[80]), 2)
