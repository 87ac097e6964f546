"""
config.py — Centralised configuration for the port resolver.

Tunable knobs come from environment variables; the port catalogues
(common development ports, framework conventions) are static lookup tables
that live here so nothing deeper in the stack hard-codes a port number.
"""

from __future__ import annotations

import os


def _env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key, "").lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """
    Simple settings object populated from environment variables.

    Modules share the singleton ``settings``; call ``settings.reload()``
    after changing the environment (the CLI does so once ``.env`` has been
    loaded).
    """

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        # Probing
        self.probe_host: str = os.getenv("PORT_RESOLVER_PROBE_HOST", "127.0.0.1")
        self.default_base_port: int = _env_int("PORT_RESOLVER_BASE_PORT", 3000)
        self.max_attempts: int = _env_int("PORT_RESOLVER_MAX_ATTEMPTS", 100)

        # Enumeration (ss / lsof / netstat)
        self.command_timeout: float = _env_float("PORT_RESOLVER_COMMAND_TIMEOUT", 10.0)

        # CLI
        self.watch_interval: float = _env_float("PORT_RESOLVER_WATCH_INTERVAL", 5.0)
        self.log_level: str = os.getenv("LOG_LEVEL", "WARNING")
        self.debug: bool = _env_bool("DEBUG", False)


settings = Settings()


# ══════════════════════════════════════════════════════════════════════════════
# Fixed protocol constants
# ══════════════════════════════════════════════════════════════════════════════

MIN_PORT: int = 0
MAX_PORT: int = 65535

# Delay between sending a termination signal and re-checking the port owner.
# Not configurable: the kill-and-verify protocol relies on a single re-check.
KILL_GRACE_SECONDS: float = 0.5


# ══════════════════════════════════════════════════════════════════════════════
# Port catalogues
# ══════════════════════════════════════════════════════════════════════════════

# Ports scanned by `port-resolver scan` when neither --port nor --range is set.
COMMON_PORTS: tuple[int, ...] = (
    80, 443, 3000, 3001, 3002, 3003, 3004, 3005, 3006, 3007, 3008, 3009,
    3010, 4000, 4001, 4200, 5000, 5001, 5173, 5174, 5175, 5176, 5177,
    5178, 5179, 5180, 5500, 6000, 7000, 8000, 8080, 8081, 8082, 8083,
    8084, 8085, 8086, 8087, 8088, 8089, 8090, 8443, 8888, 9000, 9001,
    9200, 9300, 27017, 27018, 27019, 5432, 6379, 3306, 11211,
)

# Conventional ports per framework, in order of preference.
FRAMEWORK_PORTS: dict[str, list[int]] = {
    "React/Vite": [5173, 5174, 5175, 5180],
    "Next.js": [3000, 3001, 3002, 3003],
    "Create React App": [3000, 3001, 3002],
    "Vue CLI/Vite": [5173, 5174, 5175, 8080],
    "Angular": [4200, 4201],
    "Express": [3000, 4000, 5000, 8080],
    "FastAPI": [8000, 8001, 8080],
    "Flask": [5000, 5001, 8000],
    "Django": [8000, 8001, 8080],
    "Ruby on Rails": [3000, 5000],
    "Laravel": [8000, 8001],
    "Node.js": [3000, 4000, 5000, 8080],
    "NestJS": [3000, 4000, 5000],
    "Gatsby": [8000, 8001],
    "Hugo": [1313, 1314],
    "Spring Boot": [8080, 8081, 8443],
    "ASP.NET Core": [5000, 5001, 8080],
    "Docker": [2375, 2376, 5000, 8080],
    "PostgreSQL": [5432, 5433],
    "MySQL": [3306, 3307],
    "MongoDB": [27017, 27018, 27019],
    "Redis": [6379, 6380],
    "Elasticsearch": [9200, 9300],
}

# Used for framework names missing from FRAMEWORK_PORTS.
DEFAULT_FRAMEWORK_PORTS: list[int] = [3000, 4000, 5000, 8000]

# Base port for the general search when no conventional port is free.
FRAMEWORK_FALLBACK_BASE_PORT: int = 3000


def framework_ports(name: str) -> list[int]:
    """Return the preferred ports for `name` (exact match, then case-insensitive).

    Unknown frameworks get DEFAULT_FRAMEWORK_PORTS.
    """
    ports = FRAMEWORK_PORTS.get(name)
    if ports is None:
        lowered = name.strip().lower()
        ports = next(
            (v for k, v in FRAMEWORK_PORTS.items() if k.lower() == lowered),
            DEFAULT_FRAMEWORK_PORTS,
        )
    return list(ports)
