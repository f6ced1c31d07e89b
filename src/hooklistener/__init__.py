"""hook-listener - signed webhook listener backed by a PostgreSQL log."""

__version__ = "0.1.0"
