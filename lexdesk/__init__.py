"""
LexDesk - Law Firm Case Management Service
==========================================

Backend for a law-firm practice dashboard:
1. Clients and cases with organization-prefixed numbering (ABC/001)
2. Dashboard statistics, billing display, documents and calendar
3. Firm settings, organization prefix and system preferences

All durable state goes through a single BackendClient (auth, tables, RPC, storage).
"""

__version__ = "1.0.0"
