"""Derive scheduling directives and time budget from plan inputs."""
import datetime as dt
import logging
from typing import Optional

from study_planner.models.plan import PlanInputs, StudyRules
from study_planner.tools.resource_classify import classify_resources, resources_by_type

logger = logging.getLogger(__name__)

SESSION_UNIT_MINUTES = {"short": 30, "long": 75}
SESSION_DURATION_RANGE = {"short": "25-40 minutes", "long": "60-90 minutes"}
MAX_STUDY_DAYS = 6  # keep at least one rest day


def days_until(exam_date: dt.date, today: dt.date) -> int:
    """Whole days left before the exam, never less than 1."""
    return max(1, (exam_date - today).days)


def weeks_for_days(days: int) -> int:
    """Ceiling of days / 7, never less than 1."""
    return max(1, -(-days // 7))


def sessions_per_week(weekly_study_time: float, session_type: str) -> int:
    """Number of sessions that fit the weekly budget."""
    return max(1, int(weekly_study_time * 60 // SESSION_UNIT_MINUTES[session_type]))


def derive_study_rules(inputs: PlanInputs, today: Optional[dt.date] = None) -> StudyRules:
    """
    Turn plan inputs into an ordered list of directives plus derived scalars.

    Args:
        inputs: Validated plan inputs
        today: Reference date (defaults to the current date)

    Returns:
        StudyRules; identical inputs and ``today`` give identical output
    """
    today = today or dt.date.today()
    days = days_until(inputs.exam_date, today)
    weeks = weeks_for_days(days)
    session_type = inputs.study_preference

    rules: list[str] = [f"Total time available: {days} days ({weeks} weeks)."]

    # Structure & pacing
    if weeks > 1:
        rules.append(
            f"Reserve the final week (Week {weeks}) primarily for comprehensive review and practice tests."
        )
    if weeks > 4:
        rules.append("Schedule at least two full mock exams, ideally in the last 2-3 weeks.")
    elif weeks > 1:
        rules.append("Schedule at least one full mock exam in the final week.")
    rules.append(
        "Prioritize learning new topics in the earlier weeks, shifting focus towards review and practice later."
    )
    rules.append(
        "Incorporate spaced repetition: revisit topics briefly 1 day, 3 days, and 1 week after initial study."
    )

    # Session structure
    duration = SESSION_DURATION_RANGE[session_type]
    per_week = sessions_per_week(inputs.weekly_study_time, session_type)
    study_days = min(MAX_STUDY_DAYS, per_week)
    rules.append(f"Plan for approximately {per_week} sessions per week, each lasting {duration}.")
    rules.append(
        f"Distribute these sessions across roughly {study_days} days per week, leaving room for rest."
    )

    resources = classify_resources(inputs.resources)
    rules.extend(_learning_style_rules(inputs, [r.name for r in resources]))
    rules.extend(_resource_rules(resources))

    if inputs.progress_note:
        rules.append(
            f'Acknowledge the student\'s prior progress: "{inputs.progress_note}". '
            "Start the plan from the next logical topic."
        )

    logger.debug(f"Derived {len(rules)} rules: {days} days / {weeks} weeks, {per_week} sessions per week")

    return StudyRules(
        exam_date=inputs.exam_date,
        days_until_exam=days,
        weeks_until_exam=weeks,
        session_type=session_type,
        session_duration=duration,
        sessions_per_week=per_week,
        study_days_per_week=study_days,
        rules=tuple(rules),
    )


def _learning_style_rules(inputs: PlanInputs, resource_names: list[str]) -> list[str]:
    names_lower = [n.lower() for n in resource_names]
    materials = inputs.study_materials

    def mentions(*words: str) -> bool:
        return any(w in n for n in names_lower for w in words)

    style = inputs.learning_style
    rules = []
    if style == "visual":
        rules.append("Emphasize visual aids: mind maps, diagrams, and color-coded notes.")
        if "videos" in materials or mentions("video"):
            rules.append("Prioritize video resources when introducing or explaining complex topics.")
        if "flashcards" in materials:
            rules.append("Create and review visual flashcards (e.g. with diagrams).")
    elif style == "auditory":
        rules.append(
            "Incorporate auditory methods: discuss topics aloud, record self-explanations, use audio resources."
        )
        if mentions("podcast", "audio"):
            rules.append("Use the available audio resources such as podcasts or lecture recordings.")
    elif style == "reading":
        rules.append(
            "Focus on reading/writing tasks: detailed notes, chapter summaries, and written practice responses."
        )
        if mentions("textbook", "reading"):
            rules.append("Allocate significant time to textbook chapters or assigned readings.")
    elif style == "kinesthetic":
        rules.append(
            "Integrate hands-on activities: build models, use physical flashcards, take active study breaks."
        )
        if "practice_tests" in materials:
            rules.append("Emphasize working through practice problems or labs hands-on.")
    return rules


def _resource_rules(resources) -> list[str]:
    if not resources:
        return []

    rules = [f"Core resources to utilize: {', '.join(r.name for r in resources)}."]
    grouped = resources_by_type(resources)
    if grouped["learning"]:
        rules.append(
            f"Use learning resources ({', '.join(grouped['learning'])}) when first introducing topics in the early weeks."
        )
    if grouped["review"]:
        rules.append(
            f"Cycle review resources ({', '.join(grouped['review'])}) through spaced-repetition sessions from the middle weeks on."
        )
    if grouped["practice"]:
        rules.append(
            f"Assign practice resources ({', '.join(grouped['practice'])}) after initial study, concentrating them in the later weeks."
        )
    if grouped["reference"]:
        rules.append(
            f"Keep reference resources ({', '.join(grouped['reference'])}) on hand for look-ups rather than scheduled sessions."
        )
    return rules
