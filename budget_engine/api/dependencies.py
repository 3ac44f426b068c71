"""Dependency injection for FastAPI endpoints"""

import uuid
from typing import Optional

from fastapi import Header, HTTPException, Request


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> uuid.UUID:
    """Caller identity, passed explicitly by the authenticating gateway"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
