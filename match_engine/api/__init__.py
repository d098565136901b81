"""API router for v1 endpoints."""

from fastapi import APIRouter

from match_engine.api import matcher

router = APIRouter()

# Playdate matcher, picker vocabularies and cache invalidation hook
router.include_router(matcher.router, tags=["matcher"])
