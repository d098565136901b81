"""Pydantic models for the playdate matcher.

Three layers:
- Store rows (CandidateRow): one validated row per playdate/material pair
- Domain objects (ActivityCandidate, Material): grouped candidates used for scoring
- Wire models (MatcherRequest, MatcherResult, ...): camelCase JSON for the API
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EnergyLevel = Literal["calm", "moderate", "active"]


def _coerce_list(v: Any) -> list[str]:
    """Treat missing or malformed array columns as empty lists, dropping non-string items."""
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, str)]


# =============================================================================
# Store rows
# =============================================================================


class CandidateRow(BaseModel):
    """One playdate joined with (at most) one of its materials.

    Playdates without usable materials appear once with null material fields.
    """

    id: str
    slug: str
    title: str
    headline: str | None = None
    primary_function: str | None = None
    arc_emphasis: list[str] = Field(default_factory=list)
    context_tags: list[str] = Field(default_factory=list)
    friction_dial: int | None = None
    start_in_120s: bool = False
    required_forms: list[str] = Field(default_factory=list)
    slots_optional: list[str] = Field(default_factory=list)
    find_again_mode: str | None = None
    substitutions_notes: str | None = None
    material_id: str | None = None
    material_title: str | None = None
    material_form_primary: str | None = None

    @field_validator(
        "arc_emphasis", "context_tags", "required_forms", "slots_optional", mode="before"
    )
    @classmethod
    def coerce_list_columns(cls, v: Any) -> list[str]:
        return _coerce_list(v)

    @field_validator("start_in_120s", mode="before")
    @classmethod
    def coerce_null_flag(cls, v: Any) -> bool:
        return bool(v)


# =============================================================================
# Domain objects
# =============================================================================


class Material(BaseModel):
    """A concrete, nameable resource (e.g. "cardboard tube")."""

    id: str
    title: str
    form_tag: str


class ActivityCandidate(BaseModel):
    """A single matchable playdate with its material needs."""

    id: str
    slug: str
    title: str
    headline: str | None = None
    primary_function: str | None = None
    arc_emphasis: list[str] = Field(default_factory=list)
    context_tags: list[str] = Field(default_factory=list)
    friction_dial: int | None = None
    energy_level: EnergyLevel | None = None
    quick_start: bool = False
    required_forms: list[str] = Field(default_factory=list)
    optional_slots: list[str] = Field(default_factory=list)
    variant_mode: str | None = None
    substitution_notes: str | None = None
    materials: list[Material] = Field(default_factory=list)


# =============================================================================
# Wire models
# =============================================================================


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MaterialRef(CamelModel):
    id: str
    title: str


class MissingMaterial(CamelModel):
    id: str
    title: str
    form_tag: str


class SubstitutionSuggestion(CamelModel):
    """Materials the user already owns that share a missing material's form."""

    missing_material: str
    available_alternatives: list[MaterialRef] = Field(default_factory=list)


class CoverageDetail(CamelModel):
    """Which of a candidate's material and form needs the user can satisfy."""

    materials_covered: list[MaterialRef] = Field(default_factory=list)
    materials_missing: list[MissingMaterial] = Field(default_factory=list)
    forms_covered: list[str] = Field(default_factory=list)
    forms_missing: list[str] = Field(default_factory=list)
    suggested_substitutions: list[SubstitutionSuggestion] = Field(default_factory=list)


class ScoredActivity(BaseModel):
    """Scorer output for one candidate."""

    score: int = Field(..., ge=0, le=100)
    coverage: CoverageDetail


class MatcherRequest(CamelModel):
    """User selection submitted to the matcher.

    Arrays are sanitized rather than rejected: non-string items are dropped,
    arrays are capped in length and items are truncated.
    """

    materials: list[str] = Field(default_factory=list, description="Material ids on hand")
    forms: list[str] = Field(default_factory=list, description="Form tags the user can supply")
    slots: list[str] = Field(default_factory=list, description="Optional slot tags")
    contexts: list[str] = Field(default_factory=list, description="Context tags that must all apply")
    energy_levels: list[str] = Field(default_factory=list, description="Accepted energy levels")

    @field_validator("materials", "forms", "slots", "contexts", "energy_levels", mode="before")
    @classmethod
    def sanitize_string_array(cls, v: Any) -> list[str]:
        from match_engine.core.config import get_settings

        settings = get_settings()
        items = _coerce_list(v)
        return [
            item[: settings.MATCHER_MAX_TAG_LENGTH]
            for item in items[: settings.MATCHER_MAX_FILTER_ITEMS]
        ]

    def has_any_filter(self) -> bool:
        return any(
            [self.materials, self.forms, self.slots, self.contexts, self.energy_levels]
        )


class RankedActivity(CamelModel):
    """One ranked matcher result."""

    activity_id: str
    slug: str
    title: str
    headline: str | None = None
    score: int
    primary_function: str | None = None
    arc_emphasis: list[str] = Field(default_factory=list)
    friction_dial: int | None = None
    energy_level: str | None = None
    quick_start: bool = False
    coverage: CoverageDetail
    substitution_notes: str | None = None  # entitlement-gated
    has_repeatable_variant: bool = False
    variant_mode_detail: str | None = None  # entitlement-gated
    is_entitled: bool = False
    pack_slugs: list[str] = Field(default_factory=list)


class MatcherMeta(CamelModel):
    """Filter metadata used by the UI to explain empty results."""

    context_filters_applied: list[str] = Field(default_factory=list)
    energy_level_filters_applied: list[str] = Field(default_factory=list)
    total_candidates: int = 0
    total_after_filter: int = 0


class MatcherResult(CamelModel):
    ranked: list[RankedActivity] = Field(default_factory=list)
    meta: MatcherMeta


class PickerMaterial(CamelModel):
    id: str
    title: str
    form_tag: str


class PickerData(CamelModel):
    """Vocabularies used to populate the matcher selection UI."""

    materials: list[PickerMaterial] = Field(default_factory=list)
    forms: list[str] = Field(default_factory=list)
    slots: list[str] = Field(default_factory=list)
    contexts: list[str] = Field(default_factory=list)
