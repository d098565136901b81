"""Pack membership lookups."""

from match_engine.core.logging import get_logger
from match_engine.db.entitlements import EntitlementLookupFailed
from match_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


def batch_get_pack_slugs(playdate_ids: list[str]) -> dict[str, list[str]]:
    """
    Map playdate ids to the slugs of ready packs that contain them.

    Args:
        playdate_ids: Playdate ids to resolve

    Returns:
        Dict of playdate id -> sorted pack slugs (playdates in no pack are absent)

    Raises:
        EntitlementLookupFailed: If the query fails
    """
    if not playdate_ids:
        return {}

    supabase = get_supabase()

    try:
        response = (
            supabase.table("pack_playdates")
            .select("playdate_id, packs_cache!inner(slug, status)")
            .eq("packs_cache.status", "ready")
            .in_("playdate_id", playdate_ids)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to fetch pack slugs for {len(playdate_ids)} playdates: {e}")
        raise EntitlementLookupFailed(f"Pack lookup failed: {e}") from e

    slugs: dict[str, set[str]] = {}
    for row in response.data or []:
        pack = row.get("packs_cache") or {}
        if pack.get("slug"):
            slugs.setdefault(row["playdate_id"], set()).add(pack["slug"])

    return {playdate_id: sorted(s) for playdate_id, s in slugs.items()}
