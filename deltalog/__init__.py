"""Transaction-log primitives for Delta tables: actions, file names, checkpoints, history and replay."""

__version__ = "0.1.0"

__all__ = [
    "actions",
    "checkpoint",
    "clock",
    "config",
    "errors",
    "filenames",
    "history",
    "isolation",
    "iterators",
    "lazy",
    "log_segment",
    "operations",
    "paths",
    "replay",
]