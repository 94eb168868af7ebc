"""
PlaceRank CLI entrypoint.

This CLI is intended for local use and debugging without the HTTP API.
It delegates all ranking logic to `placerank.ranking.engine.RankingEngine`.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable

from placerank.config.settings import get_settings
from placerank.core.logging import configure_logging
from placerank.core.time import parse_datetime
from placerank.domain.errors import RankingError
from placerank.domain.models import ComparisonRequest, RatedItem
from placerank.ranking.engine import build_engine


def _describe(item: RatedItem | None) -> str:
    if item is None:
        return "(missing item)"
    category = item.category.value if item.category else "?"
    return f"{item.visit_type.value} {item.location_id} score={item.score:.2f} [{category}]"


def _ask_yes_no(question: str, read: Callable[[str], str]) -> bool:
    while True:
        answer = read(f"{question} [y/n] ").strip().lower()
        if answer in {"y", "yes"}:
            return True
        if answer in {"n", "no"}:
            return False


def _print_comparison(comparison: ComparisonRequest) -> None:
    p = comparison.progress
    print(f"Comparison {p.current + 1} of at most {p.total}:")
    print(f"  existing: {_describe(comparison.compare_visit)}")


def _cmd_rank(args: argparse.Namespace, read: Callable[[str], str] = input) -> int:
    """Handle the `rank` subcommand: an interactive comparison loop on stdin."""
    settings = get_settings()
    engine = build_engine(settings)

    location: dict[str, Any] = {
        "visit_type": args.visit_type,
        "neighborhood_name": args.neighborhood,
        "borough_name": args.area,
        "country_name": args.country,
        "visited": bool(args.visited),
        "notes": args.notes or "",
        "visit_date": parse_datetime(args.visit_date, settings.app.timezone) if args.visit_date else None,
    }
    outcome = engine.initialize_session(
        args.user,
        location,
        args.category,
        is_reranking=bool(args.rerank),
        exclude_item_id=args.rerank,
    )
    name = args.neighborhood or args.country
    while not outcome.is_complete:
        _print_comparison(outcome.comparison)
        better = _ask_yes_no(f"Is {name} better?", read)
        outcome = engine.submit_comparison(outcome.session_id, better, user_id=args.user)

    print(f"Result: score={outcome.result.score:.2f} category={outcome.result.category.value}")
    if args.save:
        item, created = engine.create_visit_from_session(outcome.session_id, user_id=args.user)
        print(f"{'Created' if created else 'Updated'} visit {item.id}")
    else:
        print(f"Session: {outcome.session_id}")
    return 0


def _cmd_rankings(args: argparse.Namespace) -> int:
    engine = build_engine()
    grouped = engine.get_user_rankings(args.user, args.visit_type, args.category, args.scope)

    if args.json:
        payload = {k: [i.model_dump(mode="json") for i in items] for k, items in grouped.items()}
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    for category, items in grouped.items():
        print(f"{category} ({len(items)})")
        for i, item in enumerate(items, start=1):
            print(f"  {i:>2}. {_describe(item)}")
    return 0


def _cmd_rebalance(args: argparse.Namespace) -> int:
    engine = build_engine()
    affected = engine.rebalance_category(args.user, args.category)
    print(f"Rebalanced {affected} visits in {args.category} category")
    return 0


def _cmd_position(args: argparse.Namespace) -> int:
    engine = build_engine()
    pos = engine.get_global_ranking_position(args.user, args.item, args.visit_type)
    print(json.dumps(pos.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def _cmd_cleanup(_: argparse.Namespace) -> int:
    engine = build_engine()
    print(f"Deleted {engine.cleanup_expired_sessions()} expired sessions")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the PlaceRank CLI."""
    parser = argparse.ArgumentParser(prog="placerank")
    sub = parser.add_subparsers(dest="command", required=True)

    rank = sub.add_parser("rank", help="Rank a new place by answering head-to-head comparisons.")
    rank.add_argument("--user", required=True)
    rank.add_argument("--visit-type", dest="visit_type", required=True, choices=["neighborhood", "country"])
    rank.add_argument("--neighborhood", default=None, help="Neighborhood name (neighborhood visits)")
    rank.add_argument("--area", default=None, help="Borough or city name (neighborhood visits)")
    rank.add_argument("--country", default=None, help="Country name (country visits)")
    rank.add_argument("--category", default=None, choices=["Good", "Mid", "Bad"])
    rank.add_argument("--visited", action="store_true")
    rank.add_argument("--notes", default=None)
    rank.add_argument("--visit-date", dest="visit_date", default=None, help="ISO date/datetime")
    rank.add_argument("--rerank", default=None, metavar="VISIT_ID", help="Re-rank an existing visit")
    rank.add_argument("--save", action="store_true", help="Write the visit when ranking completes")
    rank.set_defaults(func=_cmd_rank)

    rk = sub.add_parser("rankings", help="Show a user's visits grouped by category.")
    rk.add_argument("--user", required=True)
    rk.add_argument("--visit-type", dest="visit_type", default=None, choices=["neighborhood", "country"])
    rk.add_argument("--category", default=None, choices=["Good", "Mid", "Bad"])
    rk.add_argument("--scope", default=None, help="Borough/city, continent or country name")
    rk.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rk.set_defaults(func=_cmd_rankings)

    rb = sub.add_parser("rebalance", help="Evenly respread one category's scores.")
    rb.add_argument("--user", required=True)
    rb.add_argument("--category", required=True, choices=["Good", "Mid", "Bad"])
    rb.set_defaults(func=_cmd_rebalance)

    pos = sub.add_parser("position", help="Rank of one visit among comparable visits.")
    pos.add_argument("--user", required=True)
    pos.add_argument("--item", required=True)
    pos.add_argument("--visit-type", dest="visit_type", required=True, choices=["neighborhood", "country"])
    pos.set_defaults(func=_cmd_position)

    c = sub.add_parser("cleanup-sessions", help="Delete expired comparison sessions.")
    c.set_defaults(func=_cmd_cleanup)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m placerank.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except RankingError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
