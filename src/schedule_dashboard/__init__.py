"""Schedule dashboard: calendar synchronization and caching."""

__version__ = "0.1.0"
