"""Time-based archival of aging provider records out of the hot store."""
