"""Access audit log writes."""

from match_engine.core.logging import get_logger
from match_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


def log_access(
    user_id: str,
    org_id: str | None,
    action: str,
    ip_address: str | None,
    fields_accessed: list[str],
    playdate_id: str | None = None,
    pack_id: str | None = None,
) -> None:
    """
    Record an access event for an authenticated user.

    Args:
        user_id: Acting user id
        org_id: User's organization, if any
        action: Action name (e.g. "matcher_search")
        ip_address: Client IP, if known
        fields_accessed: Names of the request fields or gated fields touched
        playdate_id: Playdate accessed, if any
        pack_id: Pack accessed, if any
    """
    try:
        supabase = get_supabase()
        supabase.table("access_audit_logs").insert({
            "user_id": user_id,
            "org_id": org_id,
            "playdate_id": playdate_id,
            "pack_id": pack_id,
            "action": action,
            "ip_address": ip_address,
            "fields_accessed": fields_accessed,
        }).execute()

    except Exception as e:
        logger.warning(f"Failed to write access audit log for user {user_id}: {e}")
        # Don't raise - auditing must not fail the request
