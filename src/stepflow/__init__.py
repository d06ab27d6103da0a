"""stepflow - JSON-driven pipeline execution engine."""

__version__ = "0.1.0"
