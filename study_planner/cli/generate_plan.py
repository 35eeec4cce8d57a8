"""CLI to generate study plans from input JSON files."""
import argparse
import asyncio
import datetime as dt
import json
import os
import random
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from study_planner.cli.logging_config import configure_logging
from study_planner.models.plan import GeneratedPlan, PlanInputs
from study_planner.tools.llm_client import GeminiTextGenerator
from study_planner.tools.plan_store import JsonPlanStore
from study_planner.tools.planner import StudyPlanEngine
from study_planner.tools.study_plan import build_schedule_options


console = Console()

SCHEDULE_NAMES = {1: "Balanced", 2: "Intensive", 3: "Distributed"}


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(
        description="Generate study plans from plan input JSON files"
    )
    parser.add_argument(
        "inputs",
        type=Path,
        nargs="+",
        help="Plan input JSON file(s) (courseName, examDate, weeklyStudyTime, topics, ...)"
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
        "--seed",
        type=int,
        help="Seed for resource rotation and tip shuffling"
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the AI path even if GOOGLE_API_KEY is set"
    )
    parser.add_argument(
        "--options",
        action="store_true",
        help="Only compare balanced/intensive/distributed schedules, nothing is saved"
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

    today = args.today or dt.date.today()
    rng = random.Random(args.seed) if args.seed is not None else None

    if args.options:
        for input_path in args.inputs:
            inputs = _load_inputs(input_path)
            _show_options(inputs, build_schedule_options(inputs, today, rng=rng))
        return

    generator = None if args.offline else GeminiTextGenerator.from_env()
    if generator is None:
        console.print("[yellow]Running offline: baseline schedule only[/yellow]")

    engine = StudyPlanEngine(generator=generator, repository=JsonPlanStore(args.state_dir), rng=rng)

    plans = asyncio.run(_generate_all(engine, args.inputs, today))
    for plan in plans:
        _show_plan(plan)


async def _generate_all(engine: StudyPlanEngine, input_paths: list[Path], today: dt.date) -> list[GeneratedPlan]:
    # One event loop for the whole batch; the async client is bound to it
    plans = []
    for input_path in tqdm(input_paths, desc="Generating plans", unit="plan", disable=len(input_paths) < 2):
        inputs = _load_inputs(input_path)
        plans.append(await engine.generate_study_plan(inputs, today=today))
    return plans


def _load_inputs(input_path: Path) -> PlanInputs:
    if not input_path.exists():
        console.print(f"[red]Error: {input_path} not found[/red]")
        sys.exit(1)

    try:
        return PlanInputs.model_validate(json.loads(input_path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {input_path} is not valid JSON: {e}[/red]")
        sys.exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid plan inputs in {input_path}:[/red]")
        console.print(str(e), markup=False)
        sys.exit(1)


def _show_plan(plan: GeneratedPlan) -> None:
    sp = plan.study_plan
    console.print(f"\n[bold cyan]{sp.course_name}[/bold cyan] (plan {sp.id}, exam {sp.exam_date.isoformat()})")

    if plan.partial_success is False:
        console.print(f"[yellow]⚠ AI plan unavailable, using baseline: {plan.error}[/yellow]")

    table = Table(title="Weekly Schedule")
    table.add_column("Week", style="cyan", justify="right")
    table.add_column("Dates")
    table.add_column("Focus", style="magenta")

    for week in plan.calendar_weeks:
        table.add_row(str(week.week), week.date_range, week.focus)
    console.print(table)
    minutes = sum(t.duration for t in plan.weekly_tasks)
    console.print(f"{len(plan.weekly_tasks)} tasks, {minutes / 60:.1f} hours in total")

    if sp.summary:
        console.print(f"\n[bold]Summary:[/bold] {sp.summary}")
    if sp.recommendations:
        console.print("\n[bold]Study tips:[/bold]")
        for tip in sp.recommendations:
            console.print(f"  • {tip}")


def _show_options(inputs: PlanInputs, options: list[GeneratedPlan]) -> None:
    table = Table(title=f"Schedule Options: {inputs.course_name}")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Schedule", style="magenta")
    table.add_column("Sessions", justify="center")
    table.add_column("Hours/week", justify="right")
    table.add_column("Weeks", justify="right")
    table.add_column("Tasks", justify="right")

    for plan in options:
        sp = plan.study_plan
        table.add_row(
            str(sp.selected_schedule),
            SCHEDULE_NAMES[sp.selected_schedule],
            sp.study_preference,
            f"{sp.weekly_study_time:g}",
            str(len(plan.calendar_weeks)),
            str(len(plan.weekly_tasks)),
        )
    console.print(table)


if __name__ == "__main__":
    main()
