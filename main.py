# main.py

import argparse
import json
import logging
from pathlib import Path

from stepcoach.coaching import CoachingInsightAnalyzer
from stepcoach.filter_matcher import CATALOG_FIELDS, PLAY_RECORD_FIELDS, filter_records, generate_filter_name
from stepcoach.goal_progress import GoalProgressCalculator
from stepcoach.hierarchy import reverse_transform_for
from stepcoach.mastery import PlayerMasteryAnalyzer
from stepcoach.records import load_catalog, load_play_records, validate_goal
from stepcoach.ui import TerminalUI

logger = logging.getLogger(__name__)


def _load_goals(path: str) -> list[dict]:
    with Path(path).open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)
    goals = data if isinstance(data, list) else [data]
    return [validate_goal(goal) for goal in goals]


def _load_rules(path: str) -> list[dict]:
    with Path(path).open("r", encoding="utf-8") as file_obj:
        data = json.load(file_obj)
    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of filter rules")
    return data


def run_goal(args: argparse.Namespace, ui: TerminalUI) -> int:
    records = load_play_records(args.scores)
    catalog = load_catalog(args.catalog) if args.catalog else None
    goals = _load_goals(args.goal)

    calculator = GoalProgressCalculator()
    reverse = reverse_transform_for(args.display_mode)
    for goal in goals:
        progress = calculator.evaluate(goal, records, catalog, reverse)
        ui.show_goal_progress(goal, progress, limit=args.limit)
    return 0


def run_profile(args: argparse.Namespace, ui: TerminalUI) -> int:
    records = load_play_records(args.scores)
    catalog = load_catalog(args.catalog) if args.catalog else []

    profile = PlayerMasteryAnalyzer().analyze(records, catalog)
    coach = CoachingInsightAnalyzer()
    if args.context:
        print(coach.build_profile_context(profile))
        return 0

    ui.show_profile(profile)
    ui.show_insights(coach.generate_insights(profile))
    return 0


def run_filter(args: argparse.Namespace, ui: TerminalUI) -> int:
    rules = _load_rules(args.rules)
    if args.scores:
        rows, fields = load_play_records(args.scores), PLAY_RECORD_FIELDS
    elif args.catalog:
        rows, fields = load_catalog(args.catalog), CATALOG_FIELDS
    else:
        raise ValueError("filter needs --scores or --catalog")

    matched = filter_records(rows, rules, args.match_mode, fields)
    ui.show_filter_preview(generate_filter_name(rules), matched, len(rows), limit=args.limit)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="StepCoach goal progress and mastery profiles")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--display-mode", action="store_true",
                        help="Targets and lamps use the shifted display labels")
    sub = parser.add_subparsers(dest="command", required=True)

    goal = sub.add_parser("goal", help="Evaluate goal progress")
    goal.add_argument("--scores", required=True, help="JSON file of play records")
    goal.add_argument("--catalog", help="JSON file of catalog charts")
    goal.add_argument("--goal", required=True, help="JSON file with one goal or a list of goals")
    goal.add_argument("--limit", type=int, default=10, help="Remaining charts to list")
    goal.set_defaults(handler=run_goal)

    profile = sub.add_parser("profile", help="Build a player mastery profile")
    profile.add_argument("--scores", required=True, help="JSON file of play records")
    profile.add_argument("--catalog", help="JSON file of catalog charts with pattern metrics")
    profile.add_argument("--context", action="store_true", help="Print the coaching context block only")
    profile.set_defaults(handler=run_profile)

    preview = sub.add_parser("filter", help="Preview a filter rule set")
    preview.add_argument("--rules", required=True, help="JSON file with a list of filter rules")
    preview.add_argument("--scores", help="Filter play records from this JSON file")
    preview.add_argument("--catalog", help="Filter catalog charts from this JSON file")
    preview.add_argument("--match-mode", choices=("all", "any"), default="all")
    preview.add_argument("--limit", type=int, default=10, help="Matches to list")
    preview.set_defaults(handler=run_filter)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    ui = TerminalUI(display_mode=args.display_mode)
    try:
        return args.handler(args, ui)
    except (OSError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        ui.show_error(str(e))
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
