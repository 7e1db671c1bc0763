"""Backend core for property, tenant and lease management."""

__version__ = "0.1.0"
