"""Plan persistence: the repository protocol and a JSON file store."""
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from study_planner.models.plan import GeneratedPlan, StudyPlan, Task
from study_planner.tools.errors import InvalidInput

logger = logging.getLogger(__name__)


class PlanRepository(Protocol):
    """Storage boundary used by the planning engine."""

    def next_id(self) -> int:
        ...

    def load(self, plan_id: int) -> Optional[GeneratedPlan]:
        ...

    def save(self, plan: GeneratedPlan) -> int:
        ...

    def append_history(self, plan_id: int, snapshot: GeneratedPlan) -> None:
        ...


class JsonPlanStore:
    """
    File-backed PlanRepository.

    Layout under ``state_dir``:
        plans/<id>.json      latest snapshot, written atomically
        history/<id>.jsonl   one refined snapshot per line
    """

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.plans_dir = self.state_dir / "plans"
        self.history_dir = self.state_dir / "history"

    def _plan_path(self, plan_id: int) -> Path:
        return self.plans_dir / f"{plan_id}.json"

    def _history_path(self, plan_id: int) -> Path:
        return self.history_dir / f"{plan_id}.jsonl"

    def _plan_ids(self) -> list[int]:
        if not self.plans_dir.exists():
            return []
        return sorted(int(p.stem) for p in self.plans_dir.glob("*.json") if p.stem.isdigit())

    def next_id(self) -> int:
        """Smallest id greater than every stored plan id."""
        return max(self._plan_ids(), default=0) + 1

    def load(self, plan_id: int) -> Optional[GeneratedPlan]:
        """Load a plan. Returns None if not found or invalid."""
        path = self._plan_path(plan_id)
        if not path.exists():
            return None

        try:
            return GeneratedPlan.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(f"Could not parse {path}: {e.error_count()} validation error(s)")
            return None

    def save(self, plan: GeneratedPlan) -> int:
        """Save plan to JSON file atomically (write temp then replace). Returns its id."""
        self.plans_dir.mkdir(parents=True, exist_ok=True)
        plan_id = plan.study_plan.id
        path = self._plan_path(plan_id)

        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(plan.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        temp_path.replace(path)

        logger.info(f"Saved plan {plan_id} to {path}")
        return plan_id

    def append_history(self, plan_id: int, snapshot: GeneratedPlan) -> None:
        """Append a snapshot to the plan's JSONL history."""
        self.history_dir.mkdir(parents=True, exist_ok=True)
        with self._history_path(plan_id).open("a", encoding="utf-8") as f:
            f.write(snapshot.model_dump_json(by_alias=True) + "\n")

    def load_history(self, plan_id: int) -> list[GeneratedPlan]:
        """All history snapshots for a plan, oldest first."""
        path = self._history_path(plan_id)
        if not path.exists():
            return []

        snapshots = []
        with path.open("r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    snapshots.append(GeneratedPlan.model_validate_json(line))
                except ValidationError as e:
                    logger.warning(f"Skipping history line {line_number} of {path}: {e.error_count()} error(s)")
        return snapshots

    def list_plans(self, user_id: Optional[int] = None) -> list[StudyPlan]:
        """Stored plans, optionally only those owned by ``user_id``."""
        plans = []
        for plan_id in self._plan_ids():
            plan = self.load(plan_id)
            if plan is None:
                continue
            if user_id is not None and plan.study_plan.user_id != user_id:
                continue
            plans.append(plan.study_plan)
        return plans

    def create_tasks(self, plan_id: int, tasks: list[Task]) -> list[Task]:
        """Add tasks to a stored plan, assigning fresh ids."""
        plan = self._require(plan_id)
        next_task_id = max((t.id for t in plan.weekly_tasks), default=0) + 1
        created = []
        for offset, task in enumerate(tasks):
            created.append(task.model_copy(update={"id": next_task_id + offset, "study_plan_id": plan_id}))
        plan.weekly_tasks.extend(created)
        self.save(plan)
        return created

    def update_task(self, plan_id: int, task_id: int, **changes) -> Task:
        """
        Apply a partial update to one task.

        Raises:
            InvalidInput: unknown plan or task, or changes that fail validation
        """
        plan = self._require(plan_id)
        for index, task in enumerate(plan.weekly_tasks):
            if task.id != task_id:
                continue
            try:
                updated = Task.model_validate({**task.model_dump(), **changes, "id": task_id})
            except ValidationError as e:
                raise InvalidInput(f"Invalid task update: {e}") from e
            plan.weekly_tasks[index] = updated
            self.save(plan)
            return updated
        raise InvalidInput(f"Plan {plan_id} has no task {task_id}")

    def update_plan_progress(self, plan_id: int, progress: dict[str, int]) -> StudyPlan:
        """
        Overwrite progress for the given topic titles.

        Raises:
            InvalidInput: unknown plan, unknown topic titles, or values outside [0, 100]
        """
        plan = self._require(plan_id)
        sp = plan.study_plan
        unknown = set(progress) - set(sp.topics_progress)
        if unknown:
            raise InvalidInput(f"Unknown topics: {sorted(unknown)}")

        merged = {**sp.topics_progress, **progress}
        try:
            updated = StudyPlan.model_validate({
                **sp.model_dump(),
                "topics": [t.model_copy(update={"progress": merged[t.title]}) for t in sp.topics],
                "topics_progress": merged,
            })
        except ValidationError as e:
            raise InvalidInput(f"Invalid progress update: {e}") from e

        plan.study_plan = updated
        self.save(plan)
        return updated

    def _require(self, plan_id: int) -> GeneratedPlan:
        plan = self.load(plan_id)
        if plan is None:
            raise InvalidInput(f"No stored plan with id {plan_id}")
        return plan
