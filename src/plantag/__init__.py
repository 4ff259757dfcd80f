"""plantag – plant tag tokenization, disposition and hierarchy toolkit."""

from ._version import __version__

__all__ = [
    "__version__",
    "config",
    "disposition",
    "errors",
    "hierarchy",
    "pipeline",
    "registry",
    "tokenization",
    "utils",
]
