"""
Backend Package
===============

Managed-backend layer: auth provider, table queries, RPC functions and
file storage, all reached through BackendClient.
"""

from .client import BackendClient
from .auth import (
    AuthClient, AuthResponse, AuthSession, User, Subscription,
    SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED,
)
from .errors import (
    BackendError, RowNotFound, AuthApiError, is_not_found,
    NOT_FOUND_CODE, UNKNOWN_FUNCTION_CODE, UNKNOWN_COLUMN_CODE, UNKNOWN_TABLE_CODE,
    UNIQUE_VIOLATION_CODE,
)
from .query import APIResponse, TableQuery
from .rpc import percent_change
from .storage import StorageClient, StorageBucket

__all__ = [
    "BackendClient",
    # Auth
    "AuthClient", "AuthResponse", "AuthSession", "User", "Subscription",
    "SIGNED_IN", "SIGNED_OUT", "TOKEN_REFRESHED", "USER_UPDATED",
    # Errors
    "BackendError", "RowNotFound", "AuthApiError", "is_not_found",
    "NOT_FOUND_CODE", "UNKNOWN_FUNCTION_CODE", "UNKNOWN_COLUMN_CODE", "UNKNOWN_TABLE_CODE",
    "UNIQUE_VIOLATION_CODE",
    # Queries
    "APIResponse", "TableQuery", "percent_change",
    # Storage
    "StorageClient", "StorageBucket",
]
