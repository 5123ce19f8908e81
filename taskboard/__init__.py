"""Task tracking API: tasks, users and the store behind them."""

__version__ = "1.0.0"
