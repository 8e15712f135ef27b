"""
Application errors raised by services and mapped to HTTP responses in api.py.
"""

from typing import Dict, Optional


class LexDeskError(Exception):
    """Base class for application errors"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailed(LexDeskError):
    """Input rejected before any backend call. errors maps field -> message."""
    status_code = 422

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message or "; ".join(errors.values()) or "Invalid input")
        self.errors = dict(errors)

    def to_dict(self) -> dict:
        return {"error": self.message, "errors": self.errors}


class PrefixNotConfigured(LexDeskError):
    """No organization prefix; numbering cannot proceed."""
    status_code = 409
    settings_path = "/settings/organization"

    def __init__(self, message: str = "Organization prefix is required. Please set it up in settings first."):
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "redirect_to": self.settings_path}


class ProfileMissing(LexDeskError):
    status_code = 409

    def __init__(self, message: str = "User profile not found. Please try logging out and back in."):
        super().__init__(message)


class RecordNotFound(LexDeskError):
    status_code = 404

    def __init__(self, entity: str, record_id: str):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.record_id = record_id


class NotAuthenticated(LexDeskError):
    status_code = 401
    login_path = "/login"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "redirect_to": self.login_path}
