"""
MealTracker Backend - Storage Package
======================================

Persistence of the in-memory database image:
    local_cache   LocalImageCache, the image file on local storage
    github_store  GitHubBlobStore, the copy kept in a GitHub repository
    strategy      local-only vs remote-sync persistence, chosen once at startup
    manager       DurableStore, the facade the services talk to
"""

from mealtracker.storage.manager import DurableStore, ExecuteResult, StoreState, get_store
from mealtracker.storage.strategy import PersistOutcome, build_strategy

__all__ = [
    "DurableStore",
    "ExecuteResult",
    "PersistOutcome",
    "StoreState",
    "build_strategy",
    "get_store",
]
