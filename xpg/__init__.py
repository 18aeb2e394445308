"""Connection modes and providers, pool settings and metrics, and query helpers for PostgreSQL."""

__version__ = "0.1.0"