"""Run the playdate matcher locally against the live store for debugging.

Prints the ranked playdates with scores and coverage, without going through
the HTTP layer or recording an access audit entry.

Usage:
    uv run python scripts/preview_matcher.py --materials <id> [<id> ...] \
        [--forms paper wood] [--slots glue] [--contexts indoors] \
        [--energy calm moderate] [--org-id <org_id>] [--dump <path>]

Examples:
    # What can we make indoors with paper?
    uv run python scripts/preview_matcher.py --forms paper --contexts indoors

    # Include gated fields for an organization
    uv run python scripts/preview_matcher.py --forms paper --org-id 3f0c... --dump /tmp/match.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure match_engine is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def run(args: argparse.Namespace) -> None:
    from match_engine.core.auth_middleware import SessionContext
    from match_engine.core.matcher import perform_matching
    from match_engine.core.schemas_matcher import MatcherRequest

    selection = MatcherRequest(
        materials=args.materials,
        forms=args.forms,
        slots=args.slots,
        contexts=args.contexts,
        energy_levels=args.energy,
    )
    session = SessionContext(user_id="preview-script", org_id=args.org_id) if args.org_id else None

    result = perform_matching(selection, session)

    meta = result.meta
    print(f"\n{'='*60}")
    print(f"Candidates: {meta.total_candidates}  after filters: {meta.total_after_filter}")
    print(f"Context filters: {meta.context_filters_applied or '-'}")
    print(f"Energy filters: {meta.energy_level_filters_applied or '-'}")
    print(f"{'='*60}")

    for item in result.ranked[: args.limit]:
        friction = item.friction_dial if item.friction_dial is not None else "-"
        flags = " [entitled]" if item.is_entitled else ""
        print(f"\n{item.score:>3}  {item.title} (friction {friction}){flags}")
        if item.coverage.materials_missing:
            missing = ", ".join(m.title for m in item.coverage.materials_missing)
            print(f"     missing: {missing}")
        for suggestion in item.coverage.suggested_substitutions:
            alts = ", ".join(a.title for a in suggestion.available_alternatives)
            print(f"     swap {suggestion.missing_material} -> {alts}")
        if item.pack_slugs:
            print(f"     packs: {', '.join(item.pack_slugs)}")

    if args.dump:
        Path(args.dump).write_text(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        print(f"\nWrote full result to {args.dump}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Preview matcher rankings")
    parser.add_argument("--materials", nargs="*", default=[], help="Material ids on hand")
    parser.add_argument("--forms", nargs="*", default=[], help="Form tags")
    parser.add_argument("--slots", nargs="*", default=[], help="Slot tags")
    parser.add_argument("--contexts", nargs="*", default=[], help="Required context tags")
    parser.add_argument("--energy", nargs="*", default=[], help="Energy levels: calm, moderate, active")
    parser.add_argument("--org-id", default=None, help="Organization id for entitlement checks")
    parser.add_argument("--limit", type=int, default=20, help="Number of results to print")
    parser.add_argument("--dump", default=None, help="Write the full JSON result to this path")
    run(parser.parse_args())


if __name__ == "__main__":
    main()
