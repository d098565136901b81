"""Playdate matcher orchestration.

Strategy: fetch all ready playdates with their materials in a single (cached)
query, then filter, score and rank in Python. Entitlements and pack slugs are
resolved with batched lookups over the surviving ids to avoid N+1 queries.

Pipeline:
1. Fetch and group candidates
2. Hard filter by context tags (all required) and energy level
3. Index materials across all candidates, bucket the user's by form
4. Score survivors and attach substitution suggestions
5. Batch entitlement check for the caller's organization
6. Batch pack slug lookup
7. Assemble results, gating paid fields on entitlement
8. Sort: score desc, friction asc (unrated last), title asc
"""

import asyncio
import logging
import time
import unicodedata
from dataclasses import dataclass
from typing import Optional

from match_engine.core.auth_middleware import SessionContext
from match_engine.core.candidate_grouping import group_candidates
from match_engine.core.logging import get_logger, log_with_context
from match_engine.core.matcher_scoring import score_activity
from match_engine.core.schemas_matcher import (
    ActivityCandidate,
    CoverageDetail,
    MaterialRef,
    MatcherMeta,
    MatcherRequest,
    MatcherResult,
    Material,
    RankedActivity,
    SubstitutionSuggestion,
)
from match_engine.db.candidates import CandidateStore, get_candidate_store
from match_engine.db.entitlements import batch_check_entitlements
from match_engine.db.packs import batch_get_pack_slugs

logger = get_logger(__name__)

# Sorts unrated playdates after every rated one (dial scale is 1-5)
UNRATED_FRICTION_SENTINEL = 6


@dataclass
class _ScoredCandidate:
    candidate: ActivityCandidate
    score: int
    coverage: CoverageDetail


@dataclass
class _MatchPass:
    scored: list[_ScoredCandidate]
    meta: MatcherMeta
    started: float

    @property
    def playdate_ids(self) -> list[str]:
        return [s.candidate.id for s in self.scored]


def passes_hard_filter(
    candidate: ActivityCandidate,
    contexts: list[str],
    energy_levels: list[str],
) -> bool:
    """Context tags must ALL be present; energy label must be one of those requested."""
    if contexts and not all(ctx in candidate.context_tags for ctx in contexts):
        return False
    if energy_levels and candidate.energy_level not in energy_levels:
        return False
    return True


def index_materials(candidates: list[ActivityCandidate]) -> dict[str, Material]:
    """Index every material that appears on any candidate by id."""
    index: dict[str, Material] = {}
    for candidate in candidates:
        for material in candidate.materials:
            index[material.id] = material
    return index


def group_user_materials_by_form(
    user_material_ids: list[str],
    material_index: dict[str, Material],
) -> dict[str, list[MaterialRef]]:
    """Bucket the user's materials by form tag. Unknown ids are skipped."""
    by_form: dict[str, list[MaterialRef]] = {}
    seen: set[str] = set()
    for material_id in user_material_ids:
        material = material_index.get(material_id)
        if material is None or material_id in seen:
            continue
        seen.add(material_id)
        by_form.setdefault(material.form_tag, []).append(
            MaterialRef(id=material.id, title=material.title)
        )
    return by_form


def suggest_substitutions(
    coverage: CoverageDetail,
    user_materials_by_form: dict[str, list[MaterialRef]],
) -> None:
    """Append same-form alternatives the user owns for each missing material."""
    for missing in coverage.materials_missing:
        alternatives = [
            alt for alt in user_materials_by_form.get(missing.form_tag, []) if alt.id != missing.id
        ]
        if alternatives:
            coverage.suggested_substitutions.append(
                SubstitutionSuggestion(
                    missing_material=missing.title,
                    available_alternatives=alternatives,
                )
            )


def title_collation_key(title: str) -> str:
    """Accent- and case-insensitive sort key, so "Éclair" files under E."""
    decomposed = unicodedata.normalize("NFKD", title)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def ranking_key(item: RankedActivity) -> tuple:
    friction = item.friction_dial if item.friction_dial is not None else UNRATED_FRICTION_SENTINEL
    return (-item.score, friction, title_collation_key(item.title), item.title)


def _score_candidates(selection: MatcherRequest, store: CandidateStore) -> _MatchPass:
    """Steps 1-4: fetch, filter, score, suggest."""
    started = time.monotonic()

    # The rows list is a snapshot; a concurrent invalidation does not affect it
    candidates = group_candidates(store.get_candidates())

    filtered = [
        c for c in candidates
        if passes_hard_filter(c, selection.contexts, selection.energy_levels)
    ]

    material_index = index_materials(candidates)
    user_materials_by_form = group_user_materials_by_form(selection.materials, material_index)

    user_material_ids = set(selection.materials)
    user_forms = set(selection.forms)
    user_slots = set(selection.slots)

    scored = []
    for candidate in filtered:
        result = score_activity(candidate, user_material_ids, user_forms, user_slots)
        suggest_substitutions(result.coverage, user_materials_by_form)
        scored.append(_ScoredCandidate(candidate=candidate, score=result.score, coverage=result.coverage))

    meta = MatcherMeta(
        context_filters_applied=list(selection.contexts),
        energy_level_filters_applied=list(selection.energy_levels),
        total_candidates=len(candidates),
        total_after_filter=len(filtered),
    )
    return _MatchPass(scored=scored, meta=meta, started=started)


def _assemble(
    match_pass: _MatchPass,
    entitled_ids: set[str],
    pack_slugs: dict[str, list[str]],
) -> MatcherResult:
    """Steps 7-8: gate paid fields and sort."""
    ranked = []
    for s in match_pass.scored:
        candidate = s.candidate
        is_entitled = candidate.id in entitled_ids
        ranked.append(
            RankedActivity(
                activity_id=candidate.id,
                slug=candidate.slug,
                title=candidate.title,
                headline=candidate.headline,
                score=s.score,
                primary_function=candidate.primary_function,
                arc_emphasis=candidate.arc_emphasis,
                friction_dial=candidate.friction_dial,
                energy_level=candidate.energy_level,
                quick_start=candidate.quick_start,
                coverage=s.coverage,
                substitution_notes=candidate.substitution_notes if is_entitled else None,
                has_repeatable_variant=candidate.variant_mode is not None,
                variant_mode_detail=candidate.variant_mode if is_entitled else None,
                is_entitled=is_entitled,
                pack_slugs=pack_slugs.get(candidate.id, []),
            )
        )

    ranked.sort(key=ranking_key)

    log_with_context(
        logger,
        logging.INFO,
        "Matcher ranked playdates",
        total_candidates=match_pass.meta.total_candidates,
        total_after_filter=match_pass.meta.total_after_filter,
        entitled=len(entitled_ids),
        elapsed_ms=int((time.monotonic() - match_pass.started) * 1000),
    )

    return MatcherResult(ranked=ranked, meta=match_pass.meta)


def perform_matching(
    selection: MatcherRequest,
    session: Optional[SessionContext],
    store: Optional[CandidateStore] = None,
) -> MatcherResult:
    """
    Run the full matcher pipeline.

    Args:
        selection: Sanitized user selection
        session: Caller's session, or None when anonymous
        store: Candidate store (defaults to the process-wide store)

    Returns:
        MatcherResult with ranked playdates and filter metadata

    Raises:
        StoreUnavailable: If candidates cannot be fetched
        EntitlementLookupFailed: If entitlement or pack lookups fail
    """
    match_pass = _score_candidates(selection, store or get_candidate_store())

    playdate_ids = match_pass.playdate_ids
    org_id = session.org_id if session else None
    entitled_ids = batch_check_entitlements(org_id, playdate_ids)
    pack_slugs = batch_get_pack_slugs(playdate_ids)

    return _assemble(match_pass, entitled_ids, pack_slugs)


async def perform_matching_async(
    selection: MatcherRequest,
    session: Optional[SessionContext],
    store: Optional[CandidateStore] = None,
) -> MatcherResult:
    """
    Async variant of perform_matching for request handlers.

    The entitlement and pack lookups are independent, so they run
    concurrently on worker threads.
    """
    match_pass = await asyncio.to_thread(
        _score_candidates, selection, store or get_candidate_store()
    )

    playdate_ids = match_pass.playdate_ids
    org_id = session.org_id if session else None
    entitled_ids, pack_slugs = await asyncio.gather(
        asyncio.to_thread(batch_check_entitlements, org_id, playdate_ids),
        asyncio.to_thread(batch_get_pack_slugs, playdate_ids),
    )

    return _assemble(match_pass, entitled_ids, pack_slugs)
