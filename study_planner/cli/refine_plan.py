"""CLI to refine a stored study plan from student feedback."""
import argparse
import asyncio
import datetime as dt
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from study_planner.cli.logging_config import configure_logging
from study_planner.tools.errors import InvalidInput
from study_planner.tools.llm_client import GeminiTextGenerator
from study_planner.tools.plan_store import JsonPlanStore
from study_planner.tools.planner import StudyPlanEngine


console = Console()


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(
        description="Refine a stored study plan"
    )
    parser.add_argument(
        "plan_id",
        type=int,
        help="Id of the stored plan"
    )
    parser.add_argument(
        "--goals",
        type=str,
        default="",
        help='What should change, e.g. "more practice for the final exam"'
    )
    parser.add_argument(
        "--strong",
        action="append",
        default=[],
        metavar="TOPIC",
        help="Topic that needs less focus (repeatable)"
    )
    parser.add_argument(
        "--weak",
        action="append",
        default=[],
        metavar="TOPIC",
        help="Topic that needs more focus (repeatable)"
    )
    parser.add_argument(
        "--stress",
        choices=["low", "medium", "high"],
        default="medium",
        help="Current stress level"
    )
    parser.add_argument(
        "--technique",
        action="append",
        default=[],
        help="Preferred technique: spaced-repetition, active-recall, pomodoro, mind-mapping, feynman (repeatable)"
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=Path(os.getenv("PLANNER_STATE_DIR", "storage/state")),
        help="Directory holding stored plans"
    )
    parser.add_argument(
        "--today",
        type=dt.date.fromisoformat,
        help="Reference date (YYYY-MM-DD, default: today)"
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the AI path even if GOOGLE_API_KEY is set"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows AI input/output, very verbose)"
    )

    args = parser.parse_args()

    configure_logging(verbose=args.verbose, debug=args.debug)

    store = JsonPlanStore(args.state_dir)
    current = store.load(args.plan_id)
    if current is None:
        console.print(f"[red]Error: no stored plan with id {args.plan_id} in {args.state_dir}[/red]")
        sys.exit(1)

    generator = None if args.offline else GeminiTextGenerator.from_env()
    if generator is None:
        console.print("[yellow]Running offline: recommendations only, schedule unchanged[/yellow]")

    engine = StudyPlanEngine(generator=generator, repository=store)
    request = {
        "goals": args.goals,
        "strongestTopics": args.strong,
        "weakestTopics": args.weak,
        "stressLevel": args.stress,
        "preferredTechniques": args.technique,
    }

    try:
        refined = asyncio.run(engine.refine_plan(current, request, today=args.today))
    except InvalidInput as e:
        console.print(f"Error: {e}", style="red", markup=False)
        sys.exit(1)

    if refined.partial_success is False:
        console.print(f"\n[yellow]⚠ Refinement failed, plan unchanged: {refined.error}[/yellow]")
        return

    console.print(f"\n[bold green]Plan {refined.study_plan.id} refined[/bold green]")
    if refined.study_plan.summary:
        console.print(f"\n[bold]Summary:[/bold] {refined.study_plan.summary}")

    table = Table(title="Refinement History")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("When")
    table.add_column("Requested change", style="magenta")
    table.add_column("Weak topics")
    for number, record in enumerate(refined.study_plan.refinement_history, start=1):
        table.add_row(
            str(number),
            record.date.strftime("%Y-%m-%d %H:%M"),
            record.changes,
            ", ".join(record.weak_topics) or "-",
        )
    console.print(table)

    if refined.study_plan.recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for tip in refined.study_plan.recommendations:
            console.print(f"  • {tip}")


if __name__ == "__main__":
    main()
