"""
Repository layer for the Messenger Relay Service.

- snapshot_repository: whole-snapshot persistence of conversation memory
- rate_limit_repository: per-user fixed-window request counters
"""

from .exceptions import RepositoryError, PersistenceError
from .rate_limit_repository import (
    RateLimitConfig,
    RateLimitRepository,
    RateLimitResult,
    RateWindow,
)
from .snapshot_repository import (
    InMemorySnapshotRepository,
    JsonFileSnapshotRepository,
    SnapshotRepository,
    create_snapshot_repository,
)

__all__ = [
    "RepositoryError",
    "PersistenceError",
    "RateLimitConfig",
    "RateLimitRepository",
    "RateLimitResult",
    "RateWindow",
    "InMemorySnapshotRepository",
    "JsonFileSnapshotRepository",
    "SnapshotRepository",
    "create_snapshot_repository",
]
