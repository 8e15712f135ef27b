"""
Dashboard
=========

DashboardService loads stats, recent cases, upcoming hearings and recent
documents through the backend RPC functions, in that order. The first
failing call stops the load and its message is kept in `error`; data
loaded before the failure is kept.
"""

import logging
from typing import List, Optional

from .backend import BackendClient, BackendError
from .schemas import DashboardStats, RecentCase, UpcomingHearing, RecentDocument

logger = logging.getLogger(__name__)


class DashboardService:
    def __init__(self, backend: BackendClient, user_id: str, limit: int = 5):
        self.backend = backend
        self.user_id = user_id
        self.limit = limit
        self.stats: Optional[DashboardStats] = None
        self.recent_cases: List[RecentCase] = []
        self.upcoming_hearings: List[UpcomingHearing] = []
        self.recent_documents: List[RecentDocument] = []
        self.loading = False
        self.error: Optional[str] = None

    def _rpc(self, name: str, with_limit: bool = True):
        params = {"user_id": self.user_id}
        if with_limit:
            params["limit_count"] = self.limit
        return self.backend.rpc(name, params).execute().data

    def load(self) -> "DashboardService":
        self.loading = True
        self.error = None
        try:
            self.stats = DashboardStats.model_validate(self._rpc("get_dashboard_stats", with_limit=False))
            self.recent_cases = [
                RecentCase.model_validate(r) for r in self._rpc("get_recent_cases") or []
            ]
            self.upcoming_hearings = [
                UpcomingHearing.model_validate(r) for r in self._rpc("get_upcoming_hearings") or []
            ]
            self.recent_documents = [
                RecentDocument.model_validate(r) for r in self._rpc("get_recent_documents") or []
            ]
        except BackendError as e:
            logger.error(f"Error fetching dashboard data: {e.message}")
            self.error = e.message or "Failed to load dashboard data"
        finally:
            self.loading = False
        return self

    def refresh_stats(self) -> Optional[DashboardStats]:
        """Re-read the stats only."""
        self.error = None
        try:
            self.stats = DashboardStats.model_validate(self._rpc("get_dashboard_stats", with_limit=False))
        except BackendError as e:
            logger.error(f"Error refreshing stats: {e.message}")
            self.error = e.message or "Failed to refresh statistics"
        return self.stats

    def to_dict(self) -> dict:
        return {
            "stats": self.stats.model_dump() if self.stats else None,
            "recent_cases": [c.model_dump(mode="json") for c in self.recent_cases],
            "upcoming_hearings": [h.model_dump(mode="json") for h in self.upcoming_hearings],
            "recent_documents": [d.model_dump(mode="json") for d in self.recent_documents],
            "loading": self.loading,
            "error": self.error,
        }
