"""CLI to update topic progress of a stored plan from a free-text note."""
import argparse
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from study_planner.cli.logging_config import configure_logging
from study_planner.tools.errors import InvalidInput
from study_planner.tools.plan_store import JsonPlanStore
from study_planner.tools.progress_extract import apply_progress_note


console = Console()


def main():
    parser = argparse.ArgumentParser(
        description="Update topic progress from a note such as \"I've mastered Memory and barely started Sleep\""
    )
    parser.add_argument(
        "plan_id",
        type=int,
        help="Id of the stored plan"
    )
    parser.add_argument(
        "note",
        type=str,
        help="Free-text progress note"
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=Path(os.getenv("PLANNER_STATE_DIR", "storage/state")),
        help="Directory holding stored plans"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the extracted progress without saving"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows which phrase set each topic)"
    )

    args = parser.parse_args()

    configure_logging(verbose=args.verbose, debug=args.debug)

    store = JsonPlanStore(args.state_dir)
    plan = store.load(args.plan_id)
    if plan is None:
        console.print(f"[red]Error: no stored plan with id {args.plan_id} in {args.state_dir}[/red]")
        sys.exit(1)

    sp = plan.study_plan
    updated = apply_progress_note(sp, args.note)

    table = Table(title=f"Progress: {sp.course_name}")
    table.add_column("Topic", style="cyan")
    table.add_column("Before", justify="right")
    table.add_column("After", style="magenta", justify="right")
    for title, before in sp.topics_progress.items():
        after = updated.topics_progress[title]
        marker = "" if after == before else " *"
        table.add_row(title, f"{before}%", f"{after}%{marker}")
    console.print(table)

    changed = {
        title: value for title, value in updated.topics_progress.items()
        if value != sp.topics_progress[title]
    }
    if not changed:
        console.print("\n[yellow]No topic matched the note; nothing to update[/yellow]")
        return
    if args.dry_run:
        console.print(f"\n[dim]Dry run: {len(changed)} topic(s) would change[/dim]")
        return

    try:
        store.update_plan_progress(args.plan_id, changed)
    except InvalidInput as e:
        console.print(f"Error: {e}", style="red", markup=False)
        sys.exit(1)
    console.print(f"\n✓ [green]Updated {len(changed)} topic(s)[/green]")


if __name__ == "__main__":
    main()
