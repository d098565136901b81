"""Weighted scoring of a single matcher candidate.

Score components (sum, round half up, clamp to 0-100):
  - Materials coverage: 0-45
  - Required forms coverage: 0-30
  - Optional slots overlap: 0-10 (full credit when the user names no slots)
  - Quick-start bonus: 0 or 10
  - Friction penalty: friction_dial - 1 (0-4 deduction)
"""

import math

from match_engine.core.schemas_matcher import (
    ActivityCandidate,
    CoverageDetail,
    MaterialRef,
    MissingMaterial,
    ScoredActivity,
)

WEIGHT_MATERIALS = 45
WEIGHT_FORMS = 30
WEIGHT_SLOTS = 10
QUICK_START_BONUS = 10

MIN_SCORE = 0
MAX_SCORE = 100


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def score_activity(
    candidate: ActivityCandidate,
    user_material_ids: set[str],
    user_forms: set[str],
    user_slots: set[str],
) -> ScoredActivity:
    """
    Score one candidate against the user's selection.

    The returned coverage has an empty suggestion list; the orchestrator fills
    it because only it can see the user's whole material roster.

    Args:
        candidate: Grouped candidate
        user_material_ids: Material ids the user has on hand
        user_forms: Form tags the user can supply
        user_slots: Slot tags the user has

    Returns:
        ScoredActivity with clamped integer score and coverage detail
    """
    # Materials coverage
    materials_covered: list[MaterialRef] = []
    materials_missing: list[MissingMaterial] = []
    for material in candidate.materials:
        if material.id in user_material_ids:
            materials_covered.append(MaterialRef(id=material.id, title=material.title))
        else:
            materials_missing.append(
                MissingMaterial(id=material.id, title=material.title, form_tag=material.form_tag)
            )

    if candidate.materials:
        materials_ratio = len(materials_covered) / len(candidate.materials)
    else:
        materials_ratio = 1.0
    materials_score = materials_ratio * WEIGHT_MATERIALS

    # Required forms coverage
    forms_covered = [f for f in candidate.required_forms if f in user_forms]
    forms_missing = [f for f in candidate.required_forms if f not in user_forms]

    if candidate.required_forms:
        forms_ratio = len(forms_covered) / len(candidate.required_forms)
    else:
        forms_ratio = 1.0
    forms_score = forms_ratio * WEIGHT_FORMS

    # Slots: no preference is not a penalty
    if not user_slots:
        slots_score = float(WEIGHT_SLOTS)
    else:
        overlap = [s for s in candidate.optional_slots if s in user_slots]
        slots_score = len(overlap) / max(len(candidate.optional_slots), 1) * WEIGHT_SLOTS

    quick_start_score = QUICK_START_BONUS if candidate.quick_start else 0

    # Unset (or zero) dial carries no penalty
    friction_penalty = candidate.friction_dial - 1 if candidate.friction_dial else 0

    # Intermediate total may be negative; only the final value is clamped
    raw = _round_half_up(
        materials_score + forms_score + slots_score + quick_start_score - friction_penalty
    )
    score = max(MIN_SCORE, min(MAX_SCORE, raw))

    return ScoredActivity(
        score=score,
        coverage=CoverageDetail(
            materials_covered=materials_covered,
            materials_missing=materials_missing,
            forms_covered=forms_covered,
            forms_missing=forms_missing,
            suggested_substitutions=[],
        ),
    )
