"""
Connection Check
================

Walks the backend the way the application uses it and reports the first
failing step:

1. table health probe (profiles)
2. authenticated user
3. profile (created when missing)
4. get_dashboard_stats RPC
5. firm settings (a missing row is normal for new users)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .backend import BackendClient, BackendError, is_not_found
from .session import default_full_name

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    name: str
    ok: bool
    detail: str = ""


@dataclass
class ConnectionReport:
    success: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
    steps: List[StepResult] = field(default_factory=list)
    user: Optional[Dict[str, Any]] = None
    profile: Optional[Dict[str, Any]] = None
    firm_settings: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "message": self.message,
            "steps": [s.__dict__ for s in self.steps],
            "user": self.user,
            "profile": self.profile,
            "firm_settings": self.firm_settings,
        }


def check_connection(backend: BackendClient, default_role: str = "attorney") -> ConnectionReport:
    """Run the checks in order. Never raises; failures end up in report.error."""
    report = ConnectionReport()

    def fail(step: str, message: str) -> ConnectionReport:
        logger.warning(f"Connection check failed at {step}: {message}")
        report.steps.append(StepResult(step, False, message))
        report.error = message
        return report

    try:
        backend.table("profiles").select("id").limit(1).execute()
        report.steps.append(StepResult("health", True, "Basic connection successful"))

        try:
            user = backend.auth.get_user()
        except BackendError as e:
            return fail("auth", e.message)
        report.user = {"id": user.id, "email": user.email}
        report.steps.append(StepResult("auth", True, f"User authenticated: {user.email}"))

        try:
            profile = backend.table("profiles").select("*").eq("id", user.id).single().execute().data
        except BackendError as e:
            if not is_not_found(e):
                return fail("profile", e.message)
            profile = None

        if profile is None:
            try:
                profile = backend.table("profiles").insert({
                    "id": user.id,
                    "email": user.email or "",
                    "full_name": default_full_name(user),
                    "role": default_role,
                }).single().execute().data
            except BackendError as e:
                return fail("profile", e.message)
            report.steps.append(StepResult("profile", True, "Profile created successfully"))
        else:
            report.steps.append(
                StepResult("profile", True, f"Profile exists: {profile.get('full_name') or profile['email']}")
            )
        report.profile = profile

        try:
            backend.rpc("get_dashboard_stats", {"user_id": user.id}).execute()
        except BackendError as e:
            return fail("dashboard_stats", f"Dashboard function error: {e.message}")
        report.steps.append(StepResult("dashboard_stats", True, "Dashboard stats function working"))

        try:
            firm = (
                backend.table("firm_settings").select("*")
                .eq("organization_id", user.id).single().execute().data
            )
        except BackendError as e:
            if not is_not_found(e):
                return fail("firm_settings", e.message)
            firm = None
        report.firm_settings = firm
        report.steps.append(StepResult(
            "firm_settings", True,
            f"Firm settings found: {firm['firm_name']}" if firm else "No firm settings found (normal for new users)",
        ))
    except BackendError as e:
        return fail("health", e.message)
    except Exception as e:
        logger.error(f"Connection check crashed: {e}", exc_info=True)
        report.error = str(e) or "Unknown error occurred"
        return report

    report.success = True
    report.message = "All connection tests passed successfully!"
    return report
