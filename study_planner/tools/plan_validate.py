"""
Validate parsed model output and merge it with the deterministic baseline.

The merger is total: whatever the parser produced, the result satisfies
every plan invariant. Missing or malformed fields are substituted from the
baseline (tasks by index); if the merged plan still breaks an invariant the
baseline is returned unchanged.
"""
import datetime as dt
import logging
from functools import lru_cache
from typing import Annotated, Any, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from study_planner.models.ai_response import (
    EmptyResponse,
    ParsedResponse,
    StructuredResponse,
    TextOnlyResponse,
)
from study_planner.models.plan import AITask, GeneratedPlan, StudyPlan, Task, WeekPlan
from study_planner.tools.errors import StructuralInvariantViolation
from study_planner.tools.resource_classify import classify_resources
from study_planner.tools.study_plan import week_range_label

logger = logging.getLogger(__name__)

MAX_TIPS = 5
POST_EXAM_BUFFER_DAYS = 7
DEFAULT_TASK_TITLE = "Study Session"
DEFAULT_TASK_MINUTES = 30

# Offsets from a week's start date; "weekend" lands on Saturday like the baseline slot
DAY_OFFSETS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
    "weekend": 6,
}

# Never taken from model output
IDENTITY_FIELDS = {"id", "user_id", "created_at", "refinement_history", "topics_progress"}

_MISSING = object()

# Repair path reported when the whole merged plan was discarded for the baseline
PLAN_REJECTED = "<plan>"


@lru_cache(maxsize=None)
def _field_adapter(model_cls: type[BaseModel], name: str) -> TypeAdapter:
    """TypeAdapter for one model field, constraints included."""
    field = model_cls.model_fields[name]
    if field.metadata:
        return TypeAdapter(Annotated[(field.annotation, *field.metadata)])
    return TypeAdapter(field.annotation)


def _validated(model_cls: type[BaseModel], name: str, value: Any) -> tuple[Optional[Any], Optional[str]]:
    """Validate ``value`` for a single field. Returns (value, error)."""
    try:
        return _field_adapter(model_cls, name).validate_python(value), None
    except ValidationError as e:
        return None, f"{e.error_count()} validation error(s)"


def _lookup(raw: dict, model_cls: type[BaseModel], name: str) -> Any:
    """Read a field from a camelCase or snake_case dict."""
    alias = model_cls.model_fields[name].alias or name
    if alias in raw:
        return raw[alias]
    return raw.get(name, _MISSING)


def _date_window(plan: StudyPlan, today: dt.date) -> tuple[dt.date, dt.date]:
    """Allowed task dates: today through the exam plus the final-week buffer."""
    return today, max(plan.exam_date, today) + dt.timedelta(days=POST_EXAM_BUFFER_DAYS)


def _clamp_date(date: dt.date, window: tuple[dt.date, dt.date]) -> dt.date:
    low, high = window
    return min(max(date, low), high)


class _Repairs:
    """Records substituted fields and logs each one."""

    def __init__(self):
        self.fields: list[str] = []

    def add(self, path: str, reason: str) -> None:
        logger.warning(f"Repaired {path}: {reason}")
        self.fields.append(path)


def merge_with_baseline(
    parsed: ParsedResponse,
    baseline: GeneratedPlan,
    today: dt.date,
) -> tuple[GeneratedPlan, list[str]]:
    """
    Merge a parsed model reply into the baseline plan.

    Args:
        parsed: Output of parse_ai_response
        baseline: Deterministic plan (or the prior plan when refining)
        today: First allowed task date

    Returns:
        Tuple of (plan, repaired_field_paths). The plan always satisfies
        the structural invariants; the baseline itself is never mutated.
    """
    if isinstance(parsed, EmptyResponse):
        return baseline.model_copy(deep=True), []

    if isinstance(parsed, TextOnlyResponse):
        plan = baseline.model_copy(deep=True)
        plan.study_plan.recommendations = list(parsed.recommendations[:MAX_TIPS])
        return plan, []

    if not isinstance(parsed, StructuredResponse):
        logger.error(f"Unknown parse result {type(parsed).__name__}; keeping baseline")
        return baseline.model_copy(deep=True), []

    repairs = _Repairs()
    try:
        plan = _merge_structured(parsed.plan, baseline, today, repairs)
        # Tasks kept from a prior plan may predate today
        earliest = min([today] + [t.date for t in baseline.weekly_tasks])
        check_plan_invariants(plan, today, earliest=earliest)
    except StructuralInvariantViolation as e:
        logger.warning(f"Merged plan rejected ({e}); returning baseline")
        return baseline.model_copy(deep=True), repairs.fields + [PLAN_REJECTED]

    return plan, repairs.fields


def check_plan_invariants(plan: GeneratedPlan, today: dt.date, earliest: Optional[dt.date] = None) -> None:
    """
    Raise StructuralInvariantViolation if ``plan`` is not safe to return.

    Task dates must fall between ``earliest`` (default: today) and the exam
    date plus the final-week buffer.
    """
    sp = plan.study_plan
    titles = {t.title for t in sp.topics}
    if set(sp.topics_progress) != titles:
        raise StructuralInvariantViolation("topicsProgress keys differ from topic titles")
    if any(not 0 <= v <= 100 for v in sp.topics_progress.values()):
        raise StructuralInvariantViolation("topic progress out of range")

    if not plan.calendar_weeks:
        raise StructuralInvariantViolation("plan has no weeks")
    week_numbers = [w.week for w in plan.calendar_weeks]
    if week_numbers != list(range(1, len(week_numbers) + 1)):
        raise StructuralInvariantViolation(f"week numbers not contiguous: {week_numbers}")

    if not plan.weekly_tasks:
        raise StructuralInvariantViolation("plan has no tasks")
    ids = [t.id for t in plan.weekly_tasks]
    if len(ids) != len(set(ids)):
        raise StructuralInvariantViolation("duplicate task ids")

    low, high = _date_window(sp, today)
    if earliest is not None:
        low = min(low, earliest)
    for task in plan.weekly_tasks:
        if task.study_plan_id != sp.id:
            raise StructuralInvariantViolation(f"task {task.id} belongs to plan {task.study_plan_id}")
        if not low <= task.date <= high:
            raise StructuralInvariantViolation(f"task {task.id} dated {task.date} outside {low}..{high}")
        if not task.title or task.duration <= 0:
            raise StructuralInvariantViolation(f"task {task.id} missing title or duration")


def _merge_structured(
    data: dict,
    baseline: GeneratedPlan,
    today: dt.date,
    repairs: _Repairs,
) -> GeneratedPlan:
    study_plan = _merge_study_plan(data, baseline.study_plan, repairs)
    window = _date_window(study_plan, today)

    if "weeklyTasks" in data or "weekly_tasks" in data:
        raw_tasks = data.get("weeklyTasks", data.get("weekly_tasks"))
        tasks = _merge_tasks(raw_tasks, baseline.weekly_tasks, study_plan.id, window, repairs)
        weeks = _merge_weeks(data.get("calendarWeeks", data.get("calendar_weeks")), baseline.calendar_weeks, repairs)
    elif "weeklyPlan" in data:
        weeks, tasks = _convert_weekly_plan(data["weeklyPlan"], study_plan.id, today, window, repairs)
    else:
        logger.info("Reply carried no schedule; keeping baseline weeks and tasks")
        weeks = [w.model_copy(deep=True) for w in baseline.calendar_weeks]
        tasks = [t.model_copy(deep=True) for t in baseline.weekly_tasks]

    if not tasks:
        repairs.add("weeklyTasks", "no usable tasks, using baseline schedule")
        weeks = [w.model_copy(deep=True) for w in baseline.calendar_weeks]
        tasks = [t.model_copy(deep=True) for t in baseline.weekly_tasks]
    elif not weeks:
        repairs.add("calendarWeeks", "no usable weeks, using baseline calendar")
        weeks = [w.model_copy(deep=True) for w in baseline.calendar_weeks]

    try:
        return GeneratedPlan(study_plan=study_plan, calendar_weeks=weeks, weekly_tasks=tasks)
    except ValidationError as e:
        raise StructuralInvariantViolation(str(e)) from e


def _merge_study_plan(data: dict, baseline: StudyPlan, repairs: _Repairs) -> StudyPlan:
    """Field-by-field merge of a candidate studyPlan (plus AI summary fields) over the baseline."""
    values = {name: getattr(baseline, name) for name in StudyPlan.model_fields}

    candidate = data.get("studyPlan", data.get("study_plan"))
    if candidate is not None and not isinstance(candidate, dict):
        repairs.add("studyPlan", f"expected object, got {type(candidate).__name__}")
        candidate = None

    if candidate:
        for name in StudyPlan.model_fields:
            if name in IDENTITY_FIELDS:
                continue
            raw = _lookup(candidate, StudyPlan, name)
            if raw is _MISSING:
                continue
            value, error = _validated(StudyPlan, name, raw)
            if error:
                repairs.add(f"studyPlan.{StudyPlan.model_fields[name].alias or name}", error)
                continue
            values[name] = value

    # AI reply schema
    for key, name in (("summary", "summary"), ("finalWeekStrategy", "final_week_strategy")):
        if key in data:
            if isinstance(data[key], str) and data[key].strip():
                values[name] = data[key].strip()
            else:
                repairs.add(key, "expected non-empty text")
    if "studyTips" in data:
        tips = data["studyTips"]
        if isinstance(tips, list):
            values["recommendations"] = [str(t).strip() for t in tips if str(t).strip()][:MAX_TIPS]
        else:
            repairs.add("studyTips", "expected a list")

    candidate_progress = _lookup(candidate, StudyPlan, "topics_progress") if candidate else _MISSING
    values["topics_progress"] = _repair_progress(values["topics"], candidate_progress, baseline, repairs)
    # Classification is derived, never taken from the reply
    values["resources"] = classify_resources(values["resources"])

    try:
        return StudyPlan(**values)
    except ValidationError as e:
        raise StructuralInvariantViolation(str(e)) from e


def _repair_progress(topics, candidate: Any, baseline: StudyPlan, repairs: _Repairs) -> dict[str, int]:
    """Progress map keyed exactly by the topic titles."""
    if candidate is _MISSING:
        candidate = {}
    elif not isinstance(candidate, dict):
        repairs.add("studyPlan.topicsProgress", "expected object")
        candidate = {}

    progress = {}
    for topic in topics:
        raw = candidate.get(topic.title, _MISSING)
        if raw is not _MISSING:
            value, error = _validated(type(topic), "progress", raw)
            if error is None:
                progress[topic.title] = value
                continue
            repairs.add(f"studyPlan.topicsProgress[{topic.title!r}]", error)
        progress[topic.title] = baseline.topics_progress.get(topic.title, topic.progress)

    orphans = set(candidate) - set(progress)
    if orphans:
        repairs.add("studyPlan.topicsProgress", f"dropped unknown topics {sorted(orphans)}")
    return progress


def _merge_tasks(
    raw_tasks: Any,
    baseline_tasks: list[Task],
    plan_id: int,
    window: tuple[dt.date, dt.date],
    repairs: _Repairs,
) -> list[Task]:
    """Repair candidate tasks field by field from the baseline task at the same index."""
    if not isinstance(raw_tasks, list):
        repairs.add("weeklyTasks", "expected a list")
        return []

    next_id = max([t.id for t in baseline_tasks] + [0]) + 1
    seen_ids: set[int] = set()
    tasks = []

    for index, raw in enumerate(raw_tasks):
        fallback = baseline_tasks[index] if index < len(baseline_tasks) else None
        if not isinstance(raw, dict):
            repairs.add(f"weeklyTasks[{index}]", "expected object")
            raw = {}

        values = {}
        for name in ("id", "study_plan_id", "title", "description", "date", "duration",
                     "resource", "is_completed", "task_type"):
            raw_value = _lookup(raw, Task, name)
            if raw_value is not _MISSING:
                value, error = _validated(Task, name, raw_value)
                if error is None:
                    values[name] = value
                    continue
            elif name in ("description", "resource"):
                values[name] = None
                continue
            else:
                error = "missing"

            alias = Task.model_fields[name].alias or name
            if fallback is not None:
                values[name] = getattr(fallback, name)
            elif name == "id":
                values[name] = next_id
                next_id += 1
            else:
                values[name] = _task_default(name, plan_id, window)
            repairs.add(f"weeklyTasks[{index}].{alias}", error)

        if values["study_plan_id"] != plan_id:
            repairs.add(f"weeklyTasks[{index}].studyPlanId", f"{values['study_plan_id']} is not plan {plan_id}")
            values["study_plan_id"] = plan_id

        clamped = _clamp_date(values["date"], window)
        if clamped != values["date"]:
            repairs.add(f"weeklyTasks[{index}].date", f"{values['date']} outside allowed window")
            values["date"] = clamped

        if values["id"] in seen_ids:
            repairs.add(f"weeklyTasks[{index}].id", f"duplicate id {values['id']}")
            values["id"] = next_id
        next_id = max(next_id, values["id"] + 1)
        seen_ids.add(values["id"])

        tasks.append(Task(**values))

    return tasks


def _task_default(name: str, plan_id: int, window: tuple[dt.date, dt.date]) -> Any:
    if name == "title":
        return DEFAULT_TASK_TITLE
    if name == "duration":
        return DEFAULT_TASK_MINUTES
    if name == "is_completed":
        return False
    if name == "task_type":
        return "study"
    if name == "study_plan_id":
        return plan_id
    if name == "date":
        return window[0]
    return None


def _merge_weeks(raw_weeks: Any, baseline_weeks: list[WeekPlan], repairs: _Repairs) -> list[WeekPlan]:
    """Validate candidate weeks, substituting baseline weeks by index, and renumber."""
    if raw_weeks is None:
        return [w.model_copy(deep=True) for w in baseline_weeks]
    if not isinstance(raw_weeks, list):
        repairs.add("calendarWeeks", "expected a list")
        return [w.model_copy(deep=True) for w in baseline_weeks]

    weeks = []
    for index, raw in enumerate(raw_weeks):
        try:
            week = WeekPlan.model_validate(raw)
        except ValidationError as e:
            repairs.add(f"calendarWeeks[{index}]", f"{e.error_count()} validation error(s)")
            if index >= len(baseline_weeks):
                continue
            week = baseline_weeks[index].model_copy(deep=True)
        weeks.append(week)
    return _renumber(weeks, repairs)


def _renumber(weeks: list[WeekPlan], repairs: _Repairs) -> list[WeekPlan]:
    for number, week in enumerate(weeks, start=1):
        if week.week != number:
            repairs.add(f"calendarWeeks[{number - 1}].week", f"{week.week} renumbered to {number}")
            week.week = number
    return weeks


def _convert_weekly_plan(
    raw_weeks: Any,
    plan_id: int,
    today: dt.date,
    window: tuple[dt.date, dt.date],
    repairs: _Repairs,
) -> tuple[list[WeekPlan], list[Task]]:
    """Turn an AI weeklyPlan (week -> days -> tasks) into dated tasks and day-keyed weeks."""
    if not isinstance(raw_weeks, list):
        repairs.add("weeklyPlan", "expected a list")
        return [], []

    weeks: list[WeekPlan] = []
    tasks: list[Task] = []

    for raw_week in raw_weeks:
        if not isinstance(raw_week, dict):
            repairs.add(f"weeklyPlan[{len(weeks)}]", "expected object")
            continue
        start = today + dt.timedelta(weeks=len(weeks))
        days = _week_days(raw_week.get("days"), len(weeks), repairs)
        if not days:
            continue

        week = WeekPlan(
            week=len(weeks) + 1,
            date_range=_text(raw_week.get("dateRange")) or week_range_label(start),
            focus=_text(raw_week.get("focus")),
            days={},
        )
        for day_name, ai_tasks in days:
            week.days.setdefault(day_name, []).extend(ai_tasks)
            date = _clamp_date(start + dt.timedelta(days=DAY_OFFSETS[day_name]), window)
            for ai_task in ai_tasks:
                tasks.append(Task(
                    id=len(tasks) + 1,
                    study_plan_id=plan_id,
                    title=_ai_task_title(ai_task),
                    description=ai_task.activity or None,
                    date=date,
                    duration=ai_task.duration,
                    resource=ai_task.resource or None,
                    is_completed=False,
                    task_type=ai_task.type,
                ))
        weeks.append(week)

    return weeks, tasks


def _week_days(raw_days: Any, week_index: int, repairs: _Repairs) -> list[tuple[str, list[AITask]]]:
    """Normalize a week's days (list of {day, tasks} or {day: tasks}) to (day, tasks) pairs."""
    if isinstance(raw_days, dict):
        raw_days = [{"day": day, "tasks": day_tasks} for day, day_tasks in raw_days.items()]
    if not isinstance(raw_days, list):
        repairs.add(f"weeklyPlan[{week_index}].days", "expected a list")
        return []

    days = []
    for raw_day in raw_days:
        if not isinstance(raw_day, dict):
            continue
        day_name = _text(raw_day.get("day")).lower()
        if day_name not in DAY_OFFSETS:
            repairs.add(f"weeklyPlan[{week_index}].days", f"unknown day {raw_day.get('day')!r}")
            continue
        raw_tasks = raw_day.get("tasks")
        if not isinstance(raw_tasks, list):
            continue
        ai_tasks = [_ai_task(t, week_index, repairs) for t in raw_tasks if isinstance(t, dict)]
        if ai_tasks:
            days.append((day_name, ai_tasks))
    return days


def _ai_task(raw: dict, week_index: int, repairs: _Repairs) -> AITask:
    values = {}
    for name in AITask.model_fields:
        if name not in raw:
            continue
        value, error = _validated(AITask, name, raw[name])
        if error:
            repairs.add(f"weeklyPlan[{week_index}].task.{name}", error)
            continue
        values[name] = value
    return AITask(**values)


def _ai_task_title(ai_task: AITask) -> str:
    if ai_task.topic and ai_task.activity:
        return f"{ai_task.topic}: {ai_task.activity}"
    return ai_task.topic or ai_task.activity or DEFAULT_TASK_TITLE


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
