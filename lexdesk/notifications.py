"""
User-facing notifications (success / error messages).

State stores report outcomes here instead of raising; the API returns the
collected messages with the response.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    level: str  # "success" | "error"
    message: str
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {"level": self.level, "message": self.message, "created_at": self.created_at.isoformat()}


class Notifier:
    """Collects notifications for one request/session."""

    def __init__(self):
        self.items: List[Notification] = []

    def success(self, message: str):
        logger.info(f"Notify success: {message}")
        self.items.append(Notification("success", message))

    def error(self, message: str):
        logger.warning(f"Notify error: {message}")
        self.items.append(Notification("error", message))

    @property
    def errors(self) -> List[str]:
        return [n.message for n in self.items if n.level == "error"]

    def drain(self) -> List[dict]:
        items, self.items = self.items, []
        return [n.to_dict() for n in items]
