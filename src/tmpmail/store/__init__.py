"""Time-bounded message storage keyed by recipient"""

from .expiring_store import ExpiringStore, DEFAULT_TTL_SECONDS

__all__ = [
    "ExpiringStore",
    "DEFAULT_TTL_SECONDS",
]
