"""quotecast: live price and close snapshots fanned out to WebSocket subscribers."""

__version__ = "0.1.0"
