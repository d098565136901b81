"""Session resolution for matcher endpoints.

The matcher is public: anonymous callers get ranked results, callers whose
organization holds pack entitlements additionally see gated fields.
"""

import asyncio
import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from match_engine.core.config import get_settings

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


class SessionContext:
    """The slice of a user session the matcher needs."""

    def __init__(self, user_id: str, org_id: Optional[str] = None):
        self.user_id = user_id
        self.org_id = org_id

    def __repr__(self) -> str:
        return f"SessionContext(user_id={self.user_id!r}, org_id={self.org_id!r})"


def _get_org_membership(user_id: str) -> Optional[str]:
    from match_engine.db.supabase_client import get_supabase

    result = (
        get_supabase()
        .table("org_memberships")
        .select("org_id")
        .eq("user_id", user_id)
        .order("created_at")
        .limit(1)
        .execute()
    )
    rows = result.data or []
    return rows[0]["org_id"] if rows else None


async def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[SessionContext]:
    """
    Resolve the caller's session from a Supabase bearer token.

    Returns None for anonymous callers and for tokens that fail verification.
    """
    if not credentials:
        return None

    try:
        from match_engine.db.supabase_client import get_supabase

        auth_response = await asyncio.to_thread(get_supabase().auth.get_user, credentials.credentials)
        if not auth_response or not auth_response.user:
            return None

        user_id = str(auth_response.user.id)
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        return None

    try:
        org_id = await asyncio.to_thread(_get_org_membership, user_id)
    except Exception as e:
        # Treat as no org: the user still gets public results
        logger.warning(f"Error loading org membership for {user_id}: {e}")
        org_id = None

    return SessionContext(user_id=user_id, org_id=org_id)


async def require_admin_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> None:
    """Require the admin API key used by the sync pipeline and internal tools."""
    expected = get_settings().ADMIN_API_KEY
    if not expected or not x_api_key or not secrets.compare_digest(x_api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin API key required",
        )
