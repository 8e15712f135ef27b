"""
Backend Client
==============

Single entry point to the managed backend, created per request and passed
explicitly to every service:

    backend = BackendClient(db, settings, access_token=token)
    backend.auth.get_session()
    backend.table("clients").select("*").execute()
    backend.rpc("get_dashboard_stats", {"user_id": uid}).execute()
    backend.storage.from_("logos").upload(path, data)
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..config import Settings
from .auth import AuthClient
from .query import TableQuery
from .rpc import RpcCall
from .storage import StorageClient


class BackendClient:
    """Auth, tables, RPC and storage over one database session."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        access_token: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.auth = AuthClient(db, settings, access_token=access_token)
        self.storage = StorageClient(settings.storage_root, settings.public_url)

    def table(self, name: str) -> TableQuery:
        return TableQuery(self.db, name)

    def from_(self, name: str) -> TableQuery:
        return self.table(name)

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> RpcCall:
        return RpcCall(self.db, name, params, clock=self.clock)
