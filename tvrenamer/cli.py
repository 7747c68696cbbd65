#!/usr/bin/env python3
"""
tvrenamer - TV Episode Renamer

A CLI tool for renaming TV episode files using TVDB metadata.
"""
import argparse
import logging
import sys
from pathlib import Path

from .cache import Cache
from .config import RenameConfig, load_config, load_credentials
from .engine import Engine
from .errors import AuthError, ConfigError
from .models import Outcome, OutcomeResult, PlanAction, RenamePlan, SkipReason
from .ratelimit import TokenBucket
from .tvdb import TVDBClient

log = logging.getLogger(__name__)


def print_rename_diff(old_name: str, new_name: str) -> None:
    """Print the rename diff."""
    print("Episode:")
    print(f"  {old_name}")
    print(f"  -> {new_name}")


def print_delete(old_name: str) -> None:
    print("Delete:")
    print(f"  [DEL] {old_name}")


def print_skip(old_name: str, reason: str) -> None:
    """Print skip message."""
    print("Episode:")
    print(f"  [SKIP] {old_name}")
    print(f"         Reason: {reason}")


def print_error(old_name: str, error: str) -> None:
    """Print error message."""
    print(f"  [ERROR] {old_name}")
    print(f"          {error}")


def _skip_reason(reason: SkipReason | None, detail: str) -> str:
    text = reason.value if reason else "unknown"
    return f"{text} ({detail})" if detail else text


def print_plan(plan: RenamePlan) -> None:
    name = plan.raw_entry.name
    if plan.action is PlanAction.RENAME:
        print_rename_diff(name, plan.target_path.name)
    elif plan.action is PlanAction.DELETE:
        print_delete(name)
    else:
        print_skip(name, _skip_reason(plan.skip_reason, plan.detail))
    print()  # Blank line between files


def confirm_proceed(count: int) -> bool:
    """
    Ask user to confirm proceeding with the batch.

    Args:
        count: Number of files that will be renamed or deleted

    Returns:
        True if user confirms, False otherwise
    """
    while True:
        response = input(f"\nProceed with changing {count} files? (y/n): ").strip().lower()
        if response in ('y', 'yes'):
            return True
        if response in ('n', 'no'):
            return False
        print("Please enter 'y' or 'n'.")


def build_client(config: RenameConfig, credentials_path: Path | None = None) -> TVDBClient:
    """Create a TVDB client wired with the configured limiter and cache."""
    credentials = load_credentials(credentials_path)
    return TVDBClient(
        credentials=credentials,
        limiter=TokenBucket(rate=config.rate_limit, capacity=config.rate_burst),
        cache=Cache(),
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )


def report_outcome(outcome: Outcome) -> None:
    name = outcome.raw_entry.name
    if outcome.result is OutcomeResult.RENAMED:
        print(f"  [OK]   {name} -> {outcome.new_path.name}")
    elif outcome.result is OutcomeResult.DELETED:
        print(f"  [DEL]  {name}")
    elif outcome.result is OutcomeResult.FAILED:
        print_error(name, outcome.detail)
    elif outcome.skip_reason not in (SkipReason.ALREADY_CORRECT, SkipReason.WHITELISTED):
        print(f"  [SKIP] {name}: {_skip_reason(outcome.skip_reason, outcome.detail)}")


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="tvrenamer",
        description="Rename TV episode files using TVDB metadata."
    )

    parser.add_argument(
        "path",
        type=Path,
        help="File or directory to process"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be changed without touching any file"
    )
    parser.add_argument(
        "--no-recursive",
        action="store_true",
        help="Only process the top level of the directory"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (default: app_config.json in the settings directory)"
    )
    parser.add_argument(
        "--credentials",
        type=Path,
        default=None,
        help="JSON credentials file (default: credentials.json, then TVDB_* env vars)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="N",
        help="Concurrent metadata lookups (default: from config)"
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Ask for confirmation before changing files"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed debug information"
    )

    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Validate path
    if not parsed_args.path.exists():
        print(f"Error: Path does not exist: {parsed_args.path}")
        return 1

    try:
        config = load_config(parsed_args.config)
        client = build_client(config, parsed_args.credentials)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    engine = Engine(client, config, workers=parsed_args.workers)
    recursive = not parsed_args.no_recursive

    # First pass: resolve and plan everything for preview
    try:
        plans = engine.preview(parsed_args.path, recursive=recursive)
    except AuthError as e:
        print(f"Error: TVDB authentication failed: {e}")
        return 1

    if not plans:
        print("No files found.")
        return 0

    print(f"Found {len(plans)} file(s)")
    if parsed_args.dry_run:
        print("[DRY RUN - no files will be changed]\n")
    else:
        print()

    change_count = 0
    for plan in plans:
        if plan.action is PlanAction.SKIP and plan.skip_reason is SkipReason.ALREADY_CORRECT:
            continue
        print_plan(plan)
        if plan.action is not PlanAction.SKIP:
            change_count += 1

    # If dry run, show summary and exit
    if parsed_args.dry_run:
        print("-" * 50)
        print(f"Would change: {change_count} files")
        return 0

    # If no files to change, exit
    if change_count == 0:
        print("-" * 50)
        print("No files to rename.")
        return 0

    if parsed_args.confirm:
        if not confirm_proceed(change_count):
            print("Cancelled.")
            return 0

    # Second pass: lookups are served from the cache
    print("\nRenaming files...")
    print("-" * 50)

    counts = {result: 0 for result in OutcomeResult}
    try:
        for outcome in engine.run(parsed_args.path, recursive=recursive):
            counts[outcome.result] += 1
            report_outcome(outcome)
    except AuthError as e:
        print(f"Error: TVDB authentication failed: {e}")
        return 1

    # Summary
    print()
    print("-" * 50)
    print(
        f"Renamed: {counts[OutcomeResult.RENAMED]} | "
        f"Deleted: {counts[OutcomeResult.DELETED]} | "
        f"Skipped: {counts[OutcomeResult.SKIPPED]} | "
        f"Errors: {counts[OutcomeResult.FAILED]}"
    )

    return 0 if counts[OutcomeResult.FAILED] == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
