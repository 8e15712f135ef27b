#!/usr/bin/env python3
"""
Quick runner for LexDesk
========================

Usage:
    python -m lexdesk.run
    # or
    python lexdesk/run.py
"""

import uvicorn

if __name__ == "__main__":
    print("Starting LexDesk...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "lexdesk.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
