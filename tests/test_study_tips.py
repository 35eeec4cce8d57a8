"""Tests for study_planner.tools.study_tips."""
import datetime as dt
import random

import pytest

from study_planner.models.plan import RefinementRequest
from study_planner.tools.rule_engine import derive_study_rules
from study_planner.tools.study_plan import build_baseline_plan
from study_planner.tools.study_tips import (
    GENERAL_TIPS,
    STYLE_TIPS,
    SUBJECT_TIPS,
    generate_study_tips,
    offline_refinement_tips,
    subject_area,
)


@pytest.mark.parametrize(
    "course, area",
    [
        ("AP Psych", "behavioral science"),
        ("AP Calculus BC", "mathematics"),
        ("Microeconomics", "social studies"),
        ("SAT Prep", "standardized test prep"),
        ("Practice of Art", "academic"),
        ("Intro to Programming", "computer science"),
    ],
)
def test_subject_area(course: str, area: str) -> None:
    assert subject_area(course) == area


def test_tailored_tips_first(make_inputs) -> None:
    tips = generate_study_tips(make_inputs(learning_style="visual"))

    assert len(tips) == 5
    assert tips[:4] == STYLE_TIPS["visual"]
    assert tips[4] == SUBJECT_TIPS["behavioral science"][0]


def test_general_tips_fill_in(make_inputs) -> None:
    tips = generate_study_tips(make_inputs(course_name="Pottery", weekly_study_time=3))

    assert tips[0] == "Maximize your limited study time by focusing on high-priority topics first"
    assert tips[1] == GENERAL_TIPS[0].format(course="Pottery")


def test_seeded_tips_reproducible(make_inputs) -> None:
    inputs = make_inputs(learning_style="auditory")
    first = generate_study_tips(inputs, random.Random(11))
    assert first == generate_study_tips(inputs, random.Random(11))
    assert len(first) == 5


def test_offline_refinement_tips(ap_psych_inputs, today: dt.date) -> None:
    plan = build_baseline_plan(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today), today)
    request = RefinementRequest(
        goals="Raise my exam score",
        strongest_topics=["Topic A"],
        weakest_topics=["Topic C", "Topic D"],
        stress_level="high",
        preferred_techniques=["pomodoro"],
    )

    tips = offline_refinement_tips(plan, request, today)

    assert len(tips) == 5
    assert tips[0].startswith("With 28 days left")
    assert "Topic C, Topic D" in tips[1]
    assert "Topic A" in tips[2]
    assert tips[3].startswith("Shorten sessions")
    assert "25-minute" in tips[4]


def test_offline_refinement_tips_close_to_exam(make_inputs, today: dt.date) -> None:
    inputs = make_inputs(days_out=3, learning_style="reading")
    plan = build_baseline_plan(inputs, derive_study_rules(inputs, today), today)

    tips = offline_refinement_tips(plan, RefinementRequest(preferred_techniques=["interleaving"]), today)

    assert tips == [
        "With 3 days left, prioritize practice exams and your weakest topics",
        STYLE_TIPS["reading"][0],
        "Build your sessions around interleaving",
    ]
