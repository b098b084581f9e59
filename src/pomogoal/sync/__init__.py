"""Clients for the remote goal and session stores."""

from pomogoal.sync.store_client import StoreClient, StoreResult

__all__ = ["StoreClient", "StoreResult"]
