"""Candidate store access for the playdate matcher.

Playdates only change when the Notion sync runs, so the full candidate scan is
held in an in-memory snapshot for a short freshness window. The sync pipeline
calls invalidate_candidate_cache() when it finishes so the next matcher request
sees fresh data without waiting for the window to lapse.
"""

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable

from pydantic import ValidationError

from match_engine.core.config import get_settings
from match_engine.core.logging import get_logger, log_with_context
from match_engine.core.schemas_matcher import CandidateRow
from match_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

CANDIDATE_COLUMNS = (
    "id, slug, title, headline, primary_function, arc_emphasis, context_tags, "
    "friction_dial, start_in_120s, required_forms, slots_optional, "
    "find_again_mode, substitutions_notes, "
    "playdate_materials(materials_cache(id, title, form_primary, do_not_use))"
)


class StoreUnavailable(Exception):
    """Raised when the candidate or picker store query fails."""


# =============================================================================
# Store query
# =============================================================================


def _flatten_playdate(record: dict[str, Any]) -> list[dict[str, Any]]:
    """Expand one playdate with embedded materials into join-style rows."""
    base = {k: v for k, v in record.items() if k != "playdate_materials"}

    materials = []
    for link in record.get("playdate_materials") or []:
        material = (link or {}).get("materials_cache")
        if not material or material.get("do_not_use"):
            continue
        materials.append(material)
    materials.sort(key=lambda m: m.get("title") or "")

    if not materials:
        return [{**base, "material_id": None, "material_title": None, "material_form_primary": None}]

    return [
        {
            **base,
            "material_id": m.get("id"),
            "material_title": m.get("title"),
            "material_form_primary": m.get("form_primary"),
        }
        for m in materials
    ]


def fetch_candidate_rows() -> list[CandidateRow]:
    """
    Fetch all ready, publicly offerable playdates joined to their materials.

    Returns one row per playdate/material pair, ordered by playdate id then
    material title. Materials flagged do_not_use are left out of the join.
    Playdates are read in pages so the server's max-rows cap never truncates
    the catalogue.

    Returns:
        Validated candidate rows

    Raises:
        StoreUnavailable: If the query fails or returns malformed rows
    """
    settings = get_settings()
    page_size = settings.MATCHER_CANDIDATE_PAGE_SIZE

    records: list[dict[str, Any]] = []
    offset = 0
    try:
        supabase = get_supabase()
        while True:
            response = (
                supabase.table("playdates_cache")
                .select(CANDIDATE_COLUMNS)
                .eq("status", "ready")
                .in_("release_channel", settings.MATCHER_RELEASE_CHANNELS)
                .order("id")
                .range(offset, offset + page_size - 1)
                .execute()
            )
            page = response.data or []
            records.extend(page)
            if len(page) < page_size:
                break
            offset += page_size
    except Exception as e:
        logger.error(f"Failed to fetch matcher candidates: {e}")
        raise StoreUnavailable(f"Candidate query failed: {e}") from e

    rows: list[CandidateRow] = []
    try:
        for record in records:
            rows.extend(CandidateRow.model_validate(r) for r in _flatten_playdate(record))
    except (ValidationError, AttributeError, TypeError) as e:
        logger.error(f"Malformed candidate row from store: {e}")
        raise StoreUnavailable(f"Malformed candidate response: {e}") from e

    return rows


# =============================================================================
# Snapshot cache
# =============================================================================


@dataclass(frozen=True)
class CandidateSnapshot:
    rows: list[CandidateRow]
    fetched_at: float


class CandidateCache:
    """Holds the latest candidate snapshot and decides whether it is fresh.

    The snapshot is swapped as a single reference, so a concurrent
    invalidate() never disturbs a caller that already holds the rows.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: CandidateSnapshot | None = None

    def get(self) -> list[CandidateRow] | None:
        """Return the cached rows if they are still inside the freshness window."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self._clock() - snapshot.fetched_at >= self.ttl_seconds:
            return None
        return snapshot.rows

    def put(self, rows: list[CandidateRow]) -> None:
        self._snapshot = CandidateSnapshot(rows=rows, fetched_at=self._clock())

    def invalidate(self) -> None:
        self._snapshot = None


class CandidateStore:
    """Cached accessor over the candidate store query."""

    def __init__(
        self,
        cache: CandidateCache,
        fetch_rows: Callable[[], list[CandidateRow]] = fetch_candidate_rows,
    ):
        self._cache = cache
        self._fetch_rows = fetch_rows
        self._refresh_lock = threading.Lock()

    def get_candidates(self) -> list[CandidateRow]:
        """
        Return candidate rows, hitting the store only when the snapshot is stale.

        Raises:
            StoreUnavailable: If a refresh is needed and the store query fails
        """
        rows = self._cache.get()
        if rows is not None:
            logger.debug(f"Candidate cache hit ({len(rows)} rows)")
            return rows

        # Single-flight: concurrent cold-cache callers wait for one refresh
        with self._refresh_lock:
            rows = self._cache.get()
            if rows is not None:
                return rows

            started = time.monotonic()
            rows = self._fetch_rows()
            self._cache.put(rows)

        log_with_context(
            logger,
            logging.INFO,
            "Refreshed candidate cache",
            rows=len(rows),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return rows

    def invalidate(self) -> None:
        """Drop the snapshot so the next call re-queries the store."""
        self._cache.invalidate()
        logger.info("Invalidated candidate cache")


@lru_cache(maxsize=1)
def get_candidate_store() -> CandidateStore:
    """Get the process-wide candidate store (cached singleton)."""
    settings = get_settings()
    return CandidateStore(CandidateCache(ttl_seconds=settings.MATCHER_CANDIDATE_CACHE_TTL_SECONDS))


def invalidate_candidate_cache() -> None:
    """Invalidate the process-wide candidate snapshot. Call after each sync."""
    get_candidate_store().invalidate()
