"""
Meety CLI entrypoint.

This CLI is intended for quick local demos and debugging without a session store.
It delegates all suggestion logic to `meety.recommender.engine.SuggestionEngine`.
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from meety.config.overrides import apply_settings_overrides
from meety.config.settings import get_settings
from meety.core.logging import configure_logging
from meety.domain.models import ACTIVITY_CATEGORIES, ACTIVITY_LABELS, Coordinate, Participant
from meety.ingestion.offline_places import OfflinePlaceGenerator
from meety.ingestion.sourcing import CandidateSourcing
from meety.recommender.engine import SuggestionEngine
from meety.recommender.feed import SuggestionFeed
from meety.scoring.explain import one_line_summary


def parse_participant(raw: str, index: int) -> Participant:
    """Parse `NAME[:LAT,LNG[:ACTIVITY]]` into a participant.

    Omitted parts leave the participant not ready, which is how a late joiner looks.
    """
    parts = raw.split(":")
    if len(parts) > 3 or not parts[0].strip():
        raise ValueError(f"Invalid --participant '{raw}', expected NAME:LAT,LNG:ACTIVITY")
    name = parts[0].strip()

    location = None
    if len(parts) >= 2 and parts[1].strip():
        try:
            lat, lng = (float(v) for v in parts[1].split(","))
        except ValueError as e:
            raise ValueError(f"Invalid location in --participant '{raw}', expected LAT,LNG") from e
        location = Coordinate(lat=lat, lng=lng)

    activity = None
    if len(parts) == 3 and parts[2].strip():
        activity = parts[2].strip().lower()
        if activity not in ACTIVITY_CATEGORIES:
            raise ValueError(f"Unknown activity '{activity}'; choose from {', '.join(ACTIVITY_CATEGORIES)}")

    return Participant(id=f"p{index}", display_name=name, location=location, activity=activity)


def _cmd_suggest(args: argparse.Namespace) -> int:
    """Handle the `suggest` subcommand."""
    settings = get_settings()
    if args.seed is not None:
        settings = apply_settings_overrides(settings, {"fallback": {"seed": int(args.seed)}})

    participants = [parse_participant(raw, i) for i, raw in enumerate(args.participant, start=1)]

    sourcing = None
    if args.offline:
        sourcing = CandidateSourcing(fallback=OfflinePlaceGenerator(settings.fallback))
    engine = SuggestionEngine(settings, sourcing=sourcing)

    feed = SuggestionFeed(engine, participants, page_size=args.max_results)
    shown = feed.start()
    for _ in range(int(args.more or 0)):
        batch = feed.load_more()
        if not batch:
            break
        shown.extend(batch)
    run = feed.last_run

    if args.json:
        payload = run.model_dump(mode="json")
        payload["suggestions"] = [s.model_dump(mode="json") for s in shown]
        payload["has_more"] = feed.has_more
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(f"Meeting point: {run.meeting_point.address}")
    print(f"Source: {run.source_mode}  categories: {', '.join(run.categories)}")
    print("Suggestions:")
    for i, s in enumerate(shown, start=1):
        print(f"{i:>2}. {s.name}  {one_line_summary(s)}")
    if not shown:
        print("  (none)")
    elif feed.has_more:
        print("More available (use --more).")
    return 0


def _cmd_activities(_: argparse.Namespace) -> int:
    for category in ACTIVITY_CATEGORIES:
        print(f"{category:<14} {ACTIVITY_LABELS[category]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the Meety CLI."""
    parser = argparse.ArgumentParser(prog="meety")
    sub = parser.add_subparsers(dest="command", required=True)

    sug = sub.add_parser("suggest", help="Suggest meeting places for a group of participants.")
    sug.add_argument(
        "--participant",
        action="append",
        required=True,
        help="Repeatable. NAME:LAT,LNG:ACTIVITY (location/activity may be omitted).",
    )
    sug.add_argument("--max-results", type=int, default=None, help="Suggestions in the first page.")
    sug.add_argument("--more", type=int, default=0, help="Load-more rounds after the first page.")
    sug.add_argument("--seed", type=int, default=None, help="Seed for offline venue generation.")
    sug.add_argument("--offline", action="store_true", help="Never call the live place provider.")
    sug.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    sug.set_defaults(func=_cmd_suggest)

    act = sub.add_parser("activities", help="List activity categories.")
    act.set_defaults(func=_cmd_activities)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m meety.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except ValueError as e:
        parser.error(str(e))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
