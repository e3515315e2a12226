"""Adventure orchestration engine for small-context text generators."""

__version__ = "0.1.0"
