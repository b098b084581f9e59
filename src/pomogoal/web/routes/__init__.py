"""Web routes for the goal and session store."""

from pomogoal.web.routes import analytics, api, goals

__all__ = ["analytics", "api", "goals"]
