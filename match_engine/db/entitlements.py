"""Entitlement lookups for gating paid playdate content."""

from datetime import datetime, timezone

from dateutil import parser as dateutil_parser

from match_engine.core.logging import get_logger
from match_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


class EntitlementLookupFailed(Exception):
    """Raised when an entitlement or pack membership lookup fails.

    Callers must not treat this as "nothing entitled"; doing so would hide
    paid content from paying organizations.
    """


def _is_active(entitlement: dict, now: datetime) -> bool:
    expires_at = entitlement.get("expires_at")
    if not expires_at:
        return True
    expiry = dateutil_parser.isoparse(expires_at)
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry > now


def batch_check_entitlements(org_id: str | None, playdate_ids: list[str]) -> set[str]:
    """
    Return the subset of playdate ids the organization is entitled to.

    An organization is entitled to a playdate when it holds an active
    (not revoked, not expired) entitlement to any pack containing it.
    Two set-based queries regardless of how many playdates are checked.

    Args:
        org_id: Caller's organization id, or None when anonymous
        playdate_ids: Playdate ids to check

    Returns:
        Set of entitled playdate ids (empty without an organization)

    Raises:
        EntitlementLookupFailed: If either query fails
    """
    if not org_id or not playdate_ids:
        return set()

    supabase = get_supabase()
    now = datetime.now(timezone.utc)

    try:
        grants = (
            supabase.table("entitlements")
            .select("pack_cache_id, expires_at")
            .eq("org_id", org_id)
            .is_("revoked_at", "null")
            .execute()
        )
        pack_ids = sorted(
            {g["pack_cache_id"] for g in grants.data or [] if _is_active(g, now)}
        )
        if not pack_ids:
            return set()

        links = (
            supabase.table("pack_playdates")
            .select("playdate_id")
            .in_("pack_id", pack_ids)
            .in_("playdate_id", playdate_ids)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to check entitlements for org {org_id}: {e}")
        raise EntitlementLookupFailed(f"Entitlement lookup failed: {e}") from e

    return {row["playdate_id"] for row in links.data or []}
