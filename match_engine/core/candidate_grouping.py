"""Reshape flat candidate rows into one ActivityCandidate per playdate."""

from match_engine.core.schemas_matcher import ActivityCandidate, CandidateRow, EnergyLevel, Material


def energy_level_for(friction_dial: int | None) -> EnergyLevel | None:
    """Translate a friction dial into a parent-friendly energy label."""
    if friction_dial is None:
        return None
    if friction_dial <= 2:
        return "calm"
    if friction_dial == 3:
        return "moderate"
    return "active"


def group_candidates(rows: list[CandidateRow]) -> list[ActivityCandidate]:
    """
    Group join rows by playdate id, collecting materials into nested lists.

    The first row seen for a playdate supplies its scalar fields; later rows
    only contribute materials. Output keeps first-seen order.

    Args:
        rows: Validated rows, one per playdate/material pair

    Returns:
        One ActivityCandidate per distinct playdate id
    """
    grouped: dict[str, ActivityCandidate] = {}

    for row in rows:
        candidate = grouped.get(row.id)
        if candidate is None:
            candidate = ActivityCandidate(
                id=row.id,
                slug=row.slug,
                title=row.title,
                headline=row.headline,
                primary_function=row.primary_function,
                arc_emphasis=list(row.arc_emphasis or []),
                context_tags=list(row.context_tags or []),
                friction_dial=row.friction_dial,
                energy_level=energy_level_for(row.friction_dial),
                quick_start=bool(row.start_in_120s),
                required_forms=list(row.required_forms or []),
                optional_slots=list(row.slots_optional or []),
                variant_mode=row.find_again_mode,
                substitution_notes=row.substitutions_notes,
            )
            grouped[row.id] = candidate

        if row.material_id:
            candidate.materials.append(
                Material(
                    id=row.material_id,
                    title=row.material_title or "",
                    form_tag=row.material_form_primary or "",
                )
            )

    return list(grouped.values())
