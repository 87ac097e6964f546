"""Public package surface for port_resolver.

Expose the primary entry points used by consumers of the package.
"""

__version__ = "0.1.0"

from port_resolver.config import FRAMEWORK_PORTS, settings
from port_resolver.directory import ProcessDirectory
from port_resolver.models import (
    PortEntry,
    ProcessHandle,
    ResolutionOutcome,
    ResolutionResult,
    SignalKind,
)
from port_resolver.prober import is_port_available
from port_resolver.resolver import ConflictResolver, ExhaustedSearch
from port_resolver.terminator import ProcessTerminator, TerminationError

__all__ = [
    "FRAMEWORK_PORTS",
    "ConflictResolver",
    "ExhaustedSearch",
    "PortEntry",
    "ProcessDirectory",
    "ProcessHandle",
    "ProcessTerminator",
    "ResolutionOutcome",
    "ResolutionResult",
    "SignalKind",
    "TerminationError",
    "__version__",
    "is_port_available",
    "settings",
]
