"""
Caller identity for the goaltrack API.

Identity is established upstream (gateway or session layer); the service
trusts the X-User-Id header it forwards.
"""
from typing import Optional

from fastapi import Header

from goaltrack.core.errors import NotAuthenticatedError


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, description="Authenticated user id forwarded by the gateway"),
) -> str:
    """Return the caller's user id or raise NotAuthenticatedError (401)."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    raise NotAuthenticatedError("Missing X-User-Id header")
