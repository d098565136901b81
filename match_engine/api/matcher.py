"""API endpoints for the playdate matcher."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from match_engine.core.auth_middleware import (
    SessionContext,
    get_optional_session,
    require_admin_api_key,
)
from match_engine.core.logging import get_logger
from match_engine.core.matcher import perform_matching_async
from match_engine.core.schemas_matcher import MatcherRequest, MatcherResult, PickerData
from match_engine.db.audit import log_access
from match_engine.db.candidates import StoreUnavailable, invalidate_candidate_cache
from match_engine.db.entitlements import EntitlementLookupFailed
from match_engine.db.picker import (
    get_distinct_contexts,
    get_distinct_forms,
    get_distinct_slots,
    list_picker_materials,
)

logger = get_logger(__name__)

router = APIRouter()

MATCHER_AUDIT_FIELDS = ["materials", "forms", "slots", "contexts", "energyLevels"]


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return None


@router.post("/matcher", response_model=MatcherResult)
async def match_playdates(
    body: MatcherRequest,
    request: Request,
    session: Optional[SessionContext] = Depends(get_optional_session),  # noqa: B008
) -> MatcherResult:
    """
    Rank playdates against the caller's materials, forms, slots and contexts.

    Public endpoint: entitled callers also receive substitution notes and
    variant detail for playdates their organization has unlocked.

    Raises:
        HTTPException 400: If no filter is supplied
        HTTPException 503: If the candidate, entitlement or pack store fails
    """
    if not body.has_any_filter():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="at least one filter is required (materials, forms, slots, contexts, or energyLevels)",
        )

    try:
        result = await perform_matching_async(body, session)
    except StoreUnavailable as e:
        logger.error(f"Matcher candidates unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Playdate catalogue is temporarily unavailable",
        ) from e
    except EntitlementLookupFailed as e:
        logger.error(f"Matcher entitlement lookup failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Entitlement lookup is temporarily unavailable",
        ) from e

    if session:
        await asyncio.to_thread(
            log_access,
            session.user_id,
            session.org_id,
            "matcher_search",
            _client_ip(request),
            MATCHER_AUDIT_FIELDS,
        )

    return result


@router.get("/matcher/picker", response_model=PickerData)
async def get_matcher_picker() -> PickerData:
    """
    Return the vocabularies that populate the matcher selection UI.

    Raises:
        HTTPException 503: If the store query fails
    """
    try:
        materials, forms, slots, contexts = await asyncio.gather(
            asyncio.to_thread(list_picker_materials),
            asyncio.to_thread(get_distinct_forms),
            asyncio.to_thread(get_distinct_slots),
            asyncio.to_thread(get_distinct_contexts),
        )
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Playdate catalogue is temporarily unavailable",
        ) from e

    return PickerData(materials=materials, forms=forms, slots=slots, contexts=contexts)


@router.post(
    "/matcher/cache/invalidate",
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(require_admin_api_key)],
)
async def invalidate_matcher_cache() -> dict:
    """Drop the cached candidate snapshot. Called by the sync pipeline after each run."""
    invalidate_candidate_cache()
    return {"status": "invalidated"}
