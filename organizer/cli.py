#!/usr/bin/env python3
"""
Episode Organizer

A CLI tool for matching loosely named episode files against a reference
list, reorganizing them into series folders, and undoing the result.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from .executor import ExecuteOptions, PlanExecutor
from .formatter import NamingFormat
from .index import EpisodeIndex, load_records
from .journal import JournalError, RestorePointJournal
from .matcher import Matcher, MatchStrategy
from .models import Category
from .planner import Plan, PlanBuilder, PlanEntry
from .session import PathSafetyError, Session
from .settings import Settings

log = logging.getLogger(__name__)

REFERENCE_FILE = "episodes.json"


def print_move(entry: PlanEntry, session: Session) -> None:
    """Print a planned move."""
    print(f"  {session.relative(entry.file.path)}")
    print(f"  -> {session.relative(entry.target)}")


def print_discrepancy(entry: PlanEntry, session: Session) -> None:
    print_move(entry, session)
    print(f"     [DISCREPANCY] {entry.match.discrepancy_detail}")


def print_duplicate(entry: PlanEntry, session: Session) -> None:
    pair = entry.duplicate
    print_move(entry, session)
    print(f"     [{pair.reason.upper()}] kept: {session.relative(pair.kept.path)}")


def print_plan(plan: Plan, session: Session) -> None:
    """Print every category of the plan, followed by a count summary."""
    sections = [
        (Category.PROPOSED_RENAME, "Proposed renames", print_move),
        (Category.DISCREPANCY, "Discrepancies (applied only with --include-discrepancies)", print_discrepancy),
        (Category.DUPLICATE, "Duplicates", print_duplicate),
        (Category.UNMATCHED, "Unmatched", print_move),
    ]
    for category, heading, printer in sections:
        entries = plan.in_category(category)
        if not entries:
            continue
        print(f"{heading}:")
        for entry in entries:
            printer(entry, session)
        print()

    counts = plan.counts()
    print("-" * 50)
    print(
        f"Rename: {counts[Category.PROPOSED_RENAME]} | "
        f"Discrepancy: {counts[Category.DISCREPANCY]} | "
        f"Duplicate: {counts[Category.DUPLICATE]} | "
        f"Unmatched: {counts[Category.UNMATCHED]} | "
        f"Already organized: {counts[Category.SKIPPED]}"
    )


def confirm_proceed(prompt: str) -> bool:
    """
    Ask the user to confirm.

    Args:
        prompt: Question to show

    Returns:
        True if user confirms, False otherwise
    """
    while True:
        try:
            response = input(f"\n{prompt} (y/n): ").strip().lower()
        except EOFError:
            return False
        if response in ('y', 'yes'):
            return True
        if response in ('n', 'no'):
            return False
        print("Please enter 'y' or 'n'.")


def load_reference(path: Path) -> EpisodeIndex:
    """
    Load the reference episode list from a JSON array of records.

    Raises:
        ValueError: If the file is not a JSON array
        OSError: If the file cannot be read
    """
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path}: expected a JSON array of episode records")
    records = load_records(rows)
    log.info("Loaded %d reference records from %s", len(records), path)
    return EpisodeIndex(records)


def build_session(args: argparse.Namespace) -> Session:
    settings = Settings(args.path)
    if getattr(args, "series", None):
        settings.set("series_name", args.series)
    return Session(args.path, settings=settings)


def build_plan(args: argparse.Namespace, session: Session) -> Plan:
    settings = session.settings
    reference = args.reference or session.reference_dir / REFERENCE_FILE
    index = load_reference(reference)

    strategy = MatchStrategy.from_value(args.strategy or settings.get("match_strategy"))
    suppress = args.suppress_number_mismatch or bool(settings.get("suppress_number_mismatch"))
    naming = NamingFormat.from_key(args.format or settings.get("naming_format"))

    matcher = Matcher(
        index,
        series_name=session.series_name,
        strategy=strategy,
        suppress_number_mismatch=suppress,
    )
    return PlanBuilder(session, matcher, naming).build()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_plan(args: argparse.Namespace) -> int:
    session = build_session(args)
    plan = build_plan(args, session)
    print(f"Series: {session.series_name}")
    print(f"Found {len(plan)} video file(s)\n")
    print_plan(plan, session)
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    session = build_session(args)
    plan = build_plan(args, session)
    print(f"Series: {session.series_name}")
    print(f"Found {len(plan)} video file(s)\n")
    print_plan(plan, session)

    options = ExecuteOptions(
        include_discrepancies=args.include_discrepancies,
        move_unmatched=not args.keep_unmatched,
        move_duplicates=not args.keep_duplicates,
        prune_empty_dirs=not args.no_prune and bool(session.settings.get("prune_empty_dirs")),
        label=args.label,
    )
    executor = PlanExecutor(session, RestorePointJournal(session))
    pending = executor.selected_entries(plan, options)
    if not pending:
        print("Nothing to do.")
        return 0

    if not args.yes and not confirm_proceed(f"Proceed with moving {len(pending)} file(s)?"):
        print("Cancelled.")
        return 0

    print("\nMoving files...")
    report = executor.execute(plan, options)

    for error in report.errors:
        print(f"  [ERROR] {error.path.name}")
        print(f"          {error.message}")

    print()
    print("-" * 50)
    print(
        f"Moved: {report.moved} | Sidecars: {report.sidecars_moved} | "
        f"Skipped: {report.skipped} | Errors: {report.error_count}"
    )
    if report.restore_point is not None:
        print(f"Restore point: {report.restore_point.name}")
    if report.incomplete:
        print("Stopped: the restore point is incomplete; undo will not reverse every move.")
    return 0 if report.ok else 1


def cmd_undo(args: argparse.Namespace) -> int:
    session = build_session(args)
    journal = RestorePointJournal(session)
    point = journal.latest()
    if point is None:
        print("No restore point to undo.")
        return 0

    print(f"Latest restore point: {point.path.name} ({point.label}, {len(point.entries)} entries)")
    if not args.yes and not confirm_proceed("Undo it?"):
        print("Cancelled.")
        return 0

    report = journal.undo_latest()
    for failure in report.failures:
        print(f"  [SKIP] {failure.entry.type}: {failure.reason}")

    print("-" * 50)
    print(f"Reverted: {report.reverted} | Failed: {len(report.failures)}")
    return 0 if report.ok else 1


def cmd_history(args: argparse.Namespace) -> int:
    session = build_session(args)
    points = RestorePointJournal(session).list_restore_points()
    if not points:
        print("No restore points.")
        return 0
    for point in points:
        print(f"{point.path.name}  {point.label}  ({len(point.entries)} entries)")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _add_plan_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--reference",
        type=Path,
        default=None,
        help=f"JSON file with episode records (default: <path>/reference/{REFERENCE_FILE})"
    )
    parser.add_argument(
        "--series",
        type=str,
        default=None,
        help="Series name used for folders and filenames (default: folder name)"
    )
    parser.add_argument(
        "--format",
        type=int,
        default=None,
        choices=[fmt.key for fmt in NamingFormat],
        help="Naming format key 1-13 (default: 1)"
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        choices=[s.value for s in MatchStrategy],
        help="Match strategy (default: title)"
    )
    parser.add_argument(
        "--suppress-number-mismatch",
        action="store_true",
        help="Ignore episode-number disagreements unless matching by number"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="organizer",
        description="Match episode files against a reference list and organize them."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed debug information"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    plan = commands.add_parser("plan", help="Show what would be done")
    plan.add_argument("path", type=Path, help="Series folder to organize")
    _add_plan_arguments(plan)
    plan.set_defaults(func=cmd_plan)

    apply = commands.add_parser("apply", help="Organize files (creates a restore point)")
    apply.add_argument("path", type=Path, help="Series folder to organize")
    _add_plan_arguments(apply)
    apply.add_argument(
        "--include-discrepancies",
        action="store_true",
        help="Also move files whose name disagrees with the reference"
    )
    apply.add_argument(
        "--keep-unmatched",
        action="store_true",
        help="Leave unmatched files in place"
    )
    apply.add_argument(
        "--keep-duplicates",
        action="store_true",
        help="Leave duplicates in place"
    )
    apply.add_argument(
        "--no-prune",
        action="store_true",
        help="Keep directories emptied by the run"
    )
    apply.add_argument(
        "--label",
        type=str,
        default="organize",
        help="Restore point label (default: organize)"
    )
    apply.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    apply.set_defaults(func=cmd_apply)

    undo = commands.add_parser("undo", help="Undo the latest restore point")
    undo.add_argument("path", type=Path, help="Series folder")
    undo.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    undo.set_defaults(func=cmd_undo)

    history = commands.add_parser("history", help="List restore points, newest first")
    history.add_argument("path", type=Path, help="Series folder")
    history.set_defaults(func=cmd_history)

    return parser


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parsed_args = build_parser().parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not parsed_args.path.is_dir():
        print(f"Error: Not a directory: {parsed_args.path}")
        return 1

    try:
        return parsed_args.func(parsed_args)
    except PathSafetyError as e:
        print(f"Error: {e}")
        return 1
    except JournalError as e:
        print(f"Error: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
