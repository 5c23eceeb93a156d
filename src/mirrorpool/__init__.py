"""MirrorPool -- a reflection graph over short natural-language thoughts.

Direct Python API -- no MCP server required::

    from mirrorpool import reflect, trace_ripples
    reflect("I want to grow")
    reflect("I want to change")
    waves = trace_ripples("I want to grow")

For MCP clients run ``mirrorpool serve`` (stdio) or ``mirrorpool serve --http``.
"""

__version__ = "0.3.0"

from mirrorpool.sqlite_store import SQLiteStore
from mirrorpool.engine import ReflectionEngine
from mirrorpool.config import EngineConfig
from mirrorpool.errors import (
    MirrorPoolError,
    ValidationError,
    StageLockedError,
    InvalidReferenceError,
    NotFoundError,
)
from mirrorpool.bridge import (
    reflect,
    find_undercurrents,
    trace_evolution,
    discover_patterns,
    trace_ripples,
    synthesis_moments,
    record_synthesis,
    track_state,
    depth_diving,
    clarity_emergence,
    status,
    export_thoughts,
    import_thoughts,
)

__all__ = [
    "SQLiteStore",
    "ReflectionEngine",
    "EngineConfig",
    # Errors
    "MirrorPoolError",
    "ValidationError",
    "StageLockedError",
    "InvalidReferenceError",
    "NotFoundError",
    # Ingestion & queries
    "reflect",
    "find_undercurrents",
    "trace_evolution",
    "discover_patterns",
    "trace_ripples",
    # Synthesis & depth
    "synthesis_moments",
    "record_synthesis",
    "track_state",
    "depth_diving",
    "clarity_emergence",
    # Maintenance
    "status",
    "export_thoughts",
    "import_thoughts",
    # Meta
    "__version__",
]
