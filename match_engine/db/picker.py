"""Picker vocabularies for the matcher selection UI.

Read-only and uncached; these run once per matcher page render.
"""

from typing import Any

from match_engine.core.config import get_settings
from match_engine.core.logging import get_logger
from match_engine.db.candidates import StoreUnavailable
from match_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _distinct_array_values(column: str) -> list[str]:
    """Distinct sorted values of an array column across ready public playdates."""
    settings = get_settings()

    try:
        supabase = get_supabase()
        response = (
            supabase.table("playdates_cache")
            .select(column)
            .eq("status", "ready")
            .in_("release_channel", settings.MATCHER_RELEASE_CHANNELS)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to load picker values for {column}: {e}")
        raise StoreUnavailable(f"Picker query failed for {column}: {e}") from e

    values: set[str] = set()
    for row in response.data or []:
        items = row.get(column)
        if isinstance(items, list):
            values.update(v for v in items if isinstance(v, str))

    return sorted(values)


def get_distinct_forms() -> list[str]:
    """Distinct required form tags."""
    return _distinct_array_values("required_forms")


def get_distinct_slots() -> list[str]:
    """Distinct optional slot tags."""
    return _distinct_array_values("slots_optional")


def get_distinct_contexts() -> list[str]:
    """Distinct context tags."""
    return _distinct_array_values("context_tags")


def list_picker_materials() -> list[dict[str, Any]]:
    """
    List usable materials for the material picker.

    Returns:
        Dicts with id, title, form_tag ordered by form tag then title

    Raises:
        StoreUnavailable: If the query fails
    """
    try:
        supabase = get_supabase()
        response = (
            supabase.table("materials_cache")
            .select("id, title, form_primary")
            .eq("do_not_use", False)
            .order("form_primary")
            .order("title")
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to list picker materials: {e}")
        raise StoreUnavailable(f"Material picker query failed: {e}") from e

    return [
        {"id": row["id"], "title": row["title"], "form_tag": row.get("form_primary") or ""}
        for row in response.data or []
    ]
