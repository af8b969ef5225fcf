"""Column preference persistence.

Provides the two-tier preference store and its collaborators:
- KeyValueStore: pluggable string storage (in-memory, Redis, PostgreSQL)
- TeamDirectory: team membership lookup and management
- PreferenceStore: personal vs. team-shared selections with one-time migration
"""

from src.sheetsync.preferences.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    SqlKeyValueStore,
)
from src.sheetsync.preferences.store import PreferenceStore
from src.sheetsync.preferences.teams import (
    TeamDirectory,
    TeamError,
    TeamLookupError,
    TeamNotFoundError,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "SqlKeyValueStore",
    "PreferenceStore",
    "TeamDirectory",
    "TeamError",
    "TeamLookupError",
    "TeamNotFoundError",
]
