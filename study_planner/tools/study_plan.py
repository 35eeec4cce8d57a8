"""Deterministic week-by-week schedule construction (the baseline plan)."""
import datetime as dt
import logging
import random
from typing import Optional

from study_planner.models.plan import (
    GeneratedPlan,
    PlanInputs,
    Resource,
    StudyPlan,
    StudyRules,
    Task,
    Topic,
    WeekPlan,
    WeekTask,
)
from study_planner.tools.resource_classify import classify_resources, resources_by_type
from study_planner.tools.rule_engine import derive_study_rules

logger = logging.getLogger(__name__)

REVIEW_ONLY_THRESHOLD = 70  # topics at or above this progress only get quick reviews
QUICK_REVIEW_MINUTES = 30

# Offsets (days) from a week's start date
MONDAY, WEDNESDAY, FRIDAY, SATURDAY = 1, 3, 5, 6
OVERFLOW_OFFSETS = (2, 4, 0)  # Tuesday, Thursday, Sunday for topics beyond the slot pair

DEFAULT_RESOURCES = {
    "study": ["Textbook", "Notes"],
    "review": ["Practice Quiz"],
    "practice": ["Practice Problems"],
}

STYLE_DESCRIPTIONS = {
    "visual": "focusing on diagrams, charts, and visual materials",
    "auditory": "using lectures, podcasts, and discussions",
    "reading": "by reading textbooks, articles, and making notes",
    "kinesthetic": "through hands-on activities and practical applications",
}

# (slot, offset, title, description, duration, resource, type)
FINAL_WEEK_TASKS = [
    ("monday", MONDAY, "Final Review: All Topics", "Review all material covered in the course",
     60, "Comprehensive", "review"),
    ("wednesday", WEDNESDAY, "Final Review: Practice Test", "Take a practice test to assess your knowledge",
     60, "Multiple Choice", "practice"),
    ("friday", FRIDAY, "Final Review: Weak Areas", "Focus on areas where you need improvement",
     60, "Targeted Review", "review"),
    ("weekend", SATURDAY, "Full Practice Exam", "Take a full-length practice exam under test conditions",
     180, "Timed Test", "practice"),
]


def review_and_study_weeks(weeks_until_exam: int) -> tuple[int, int, bool]:
    """
    Split the available weeks into study and review weeks.

    Returns:
        (review_weeks, study_weeks, compressed). When the exam is too close to
        leave a study week, study_weeks is 1 and ``compressed`` is True: the
        final review week then shares that single week's dates.
    """
    review_weeks = 2 if weeks_until_exam > 4 else 1
    study_weeks = weeks_until_exam - review_weeks
    if study_weeks < 1:
        return review_weeks, 1, True
    return review_weeks, study_weeks, False


def week_range_label(start: dt.date) -> str:
    """Label such as 'Oct 19 - Oct 25'."""
    end = start + dt.timedelta(days=6)
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}"


def task_description(topic: Topic, learning_style: Optional[str]) -> str:
    """Initial-study description tailored to the learning style."""
    base = f"Study {topic.title}"
    if learning_style in STYLE_DESCRIPTIONS:
        return f"{base} {STYLE_DESCRIPTIONS[learning_style]}"
    return base


class _TaskSink:
    """Collects tasks with sequential ids for one plan."""

    def __init__(self, plan_id: int):
        self.plan_id = plan_id
        self.tasks: list[Task] = []

    def add(self, title, description, date, duration, resource, task_type) -> Task:
        task = Task(
            id=len(self.tasks) + 1,
            study_plan_id=self.plan_id,
            title=title,
            description=description,
            date=date,
            duration=duration,
            resource=resource,
            is_completed=False,
            task_type=task_type,
        )
        self.tasks.append(task)
        return task


def _resource_pool(resources: list[Resource]) -> dict[str, list[str]]:
    """Candidate resource names per task type, falling back to fixed defaults."""
    grouped = resources_by_type(resources)
    all_names = [r.name for r in resources]
    return {
        "study": grouped["learning"] or grouped["reference"] or all_names or DEFAULT_RESOURCES["study"],
        "review": grouped["review"] or DEFAULT_RESOURCES["review"],
        "practice": grouped["practice"] or DEFAULT_RESOURCES["practice"],
        "quick_review": grouped["review"] or ["Review Materials"],
    }


def _pick(candidates: list[str], position: int, rng: Optional[random.Random]) -> str:
    """Rotate through candidates; an injected rng breaks ties randomly instead."""
    if rng is not None:
        return rng.choice(candidates)
    return candidates[position % len(candidates)]


def build_baseline_plan(
    inputs: PlanInputs,
    rules: StudyRules,
    today: dt.date,
    plan_id: int = 1,
    rng: Optional[random.Random] = None,
) -> GeneratedPlan:
    """
    Build the calendar and task list without any AI involvement.

    Every topic below the review-only threshold lands in exactly one study
    week, and a fixed final review week is appended.

    Args:
        inputs: Validated plan inputs (topics, resources, weekly time)
        rules: Derived rules (weeks until exam, session type, sessions per week)
        today: First day of the plan
        plan_id: Id stamped on every task
        rng: Optional seeded generator for resource tie-breaking

    Returns:
        GeneratedPlan with contiguous 1-based weeks
    """
    resources = classify_resources(inputs.resources)
    pool = _resource_pool(resources)

    review_weeks, study_weeks, compressed = review_and_study_weeks(rules.weeks_until_exam)
    session_minutes = max(1, int(inputs.weekly_study_time * 60 // rules.sessions_per_week))

    # Lowest progress first; sorted() is stable so equal progress keeps input order
    ordered = sorted(inputs.topics, key=lambda t: t.progress)
    full_study = [t for t in ordered if t.progress < REVIEW_ONLY_THRESHOLD]
    review_only = [t for t in ordered if t.progress >= REVIEW_ONLY_THRESHOLD]

    buckets: list[list[Topic]] = [[] for _ in range(study_weeks)]
    for i, topic in enumerate(full_study):
        buckets[i % study_weeks].append(topic)

    logger.info(
        f"Scheduling {len(full_study)} topics over {study_weeks} study week(s) "
        f"(+{review_weeks} review, compressed={compressed}); {len(review_only)} review-only"
    )

    sink = _TaskSink(plan_id)
    weeks: list[WeekPlan] = []

    for week_index, bucket in enumerate(buckets):
        if not bucket:
            continue
        start = today + dt.timedelta(weeks=week_index)
        first = bucket[0]
        second = bucket[1] if len(bucket) > 1 else first

        week = WeekPlan(
            week=len(weeks) + 1,
            date_range=week_range_label(start),
            focus=", ".join(t.title for t in bucket),
        )

        resource = _pick(pool["study"], week_index, rng)
        week.monday = WeekTask(title=first.title, duration=session_minutes, resource=resource, type="study")
        sink.add(
            f"{first.title} - Initial Study",
            task_description(first, inputs.learning_style),
            start + dt.timedelta(days=MONDAY),
            session_minutes,
            resource,
            "study",
        )

        if rules.session_type == "short":
            resource = _pick(pool["study"], week_index + 1, rng)
            week.wednesday = WeekTask(title=second.title, duration=session_minutes, resource=resource, type="study")
            sink.add(
                f"{second.title} - Continue",
                f"Continue studying {second.title} using {resource}",
                start + dt.timedelta(days=WEDNESDAY),
                session_minutes,
                resource,
                "study",
            )

        resource = _pick(pool["review"], week_index, rng)
        week.friday = WeekTask(title=f"{first.title} Review", duration=session_minutes, resource=resource, type="review")
        sink.add(
            f"{first.title} Review",
            f"Review what you've learned about {first.title}",
            start + dt.timedelta(days=FRIDAY),
            session_minutes,
            resource,
            "review",
        )

        resource = _pick(pool["practice"], week_index, rng)
        week.weekend = WeekTask(title=f"{second.title} Practice", duration=session_minutes, resource=resource, type="practice")
        sink.add(
            f"{second.title} Practice",
            f"Practice applying concepts from {second.title}",
            start + dt.timedelta(days=SATURDAY),
            session_minutes,
            resource,
            "practice",
        )

        # Topics beyond the first two have no slot of their own
        for extra_index, topic in enumerate(bucket[2:]):
            resource = _pick(pool["study"], week_index + extra_index, rng)
            offset = OVERFLOW_OFFSETS[extra_index % len(OVERFLOW_OFFSETS)]
            sink.add(
                f"{topic.title} - Initial Study",
                task_description(topic, inputs.learning_style),
                start + dt.timedelta(days=offset),
                session_minutes,
                resource,
                "study",
            )

        weeks.append(week)

    if review_only:
        review_start = today + dt.timedelta(weeks=study_weeks - 1)
        for index, topic in enumerate(review_only):
            sink.add(
                f"Quick Review: {topic.title}",
                f"Brief review of {topic.title} to reinforce your knowledge",
                review_start + dt.timedelta(days=(index % 6) + 1),
                QUICK_REVIEW_MINUTES,
                _pick(pool["quick_review"], index, rng),
                "review",
            )

    final_start = today if compressed else today + dt.timedelta(weeks=study_weeks)
    final_week = WeekPlan(week=len(weeks) + 1, date_range=week_range_label(final_start), focus="Final Review")
    for slot, offset, title, description, duration, resource, task_type in FINAL_WEEK_TASKS:
        setattr(final_week, slot, WeekTask(title=title, duration=duration, resource=resource, type=task_type))
        sink.add(title, description, final_start + dt.timedelta(days=offset), duration, resource, task_type)
    weeks.append(final_week)

    study_plan = StudyPlan(
        id=plan_id,
        course_name=inputs.course_name,
        exam_date=inputs.exam_date,
        weekly_study_time=inputs.weekly_study_time,
        study_preference=inputs.study_preference,
        learning_style=inputs.learning_style,
        study_materials=list(inputs.study_materials),
        topics=[t.model_copy() for t in inputs.topics],
        topics_progress={t.title: t.progress for t in inputs.topics},
        resources=resources,
        created_at=today,
    )

    logger.info(f"Baseline plan built: {len(weeks)} weeks, {len(sink.tasks)} tasks")
    return GeneratedPlan(study_plan=study_plan, calendar_weeks=weeks, weekly_tasks=sink.tasks)


def build_schedule_options(
    inputs: PlanInputs,
    today: dt.date,
    rng: Optional[random.Random] = None,
) -> list[GeneratedPlan]:
    """
    Build balanced, intensive and distributed variants of the baseline plan.

    Intensive uses long sessions with 20% more weekly time (capped at 40 h);
    distributed uses short sessions with the same weekly time.
    """
    variants = [
        (1, inputs),
        (2, inputs.model_copy(update={
            "study_preference": "long",
            "weekly_study_time": min(inputs.weekly_study_time * 1.2, 40),
        })),
        (3, inputs.model_copy(update={"study_preference": "short"})),
    ]

    plans = []
    for schedule, variant in variants:
        rules = derive_study_rules(variant, today)
        plan = build_baseline_plan(variant, rules, today, rng=rng)
        plan.study_plan.selected_schedule = schedule
        plans.append(plan)
    return plans


def reschedule_task(task: Task, days_to_add: int) -> Task:
    """Return a copy of ``task`` moved by ``days_to_add`` days."""
    return task.model_copy(update={"date": task.date + dt.timedelta(days=days_to_add)})

