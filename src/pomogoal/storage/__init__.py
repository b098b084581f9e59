"""Storage layer: local session cache and the store database."""

from pomogoal.storage.database import Database
from pomogoal.storage.local_cache import LocalSessionCache

__all__ = ["Database", "LocalSessionCache"]
