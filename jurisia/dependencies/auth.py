"""
Identity dependencies for FastAPI routes.

Authentication happens upstream (the Next.js frontend); the backend trusts
the X-User-Id header it forwards.  Anonymous chat (no header) is allowed but
is not persisted.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if missing."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """Extract user ID if present, return None for anonymous requests."""
    return x_user_id or None
