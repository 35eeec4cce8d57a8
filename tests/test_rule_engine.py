"""Tests for study_planner.tools.rule_engine."""
import datetime as dt

import pytest
from pydantic import ValidationError

from study_planner.tools.rule_engine import days_until, derive_study_rules, sessions_per_week, weeks_for_days


def test_days_and_weeks_use_ceiling_and_clamp(today: dt.date) -> None:
    assert days_until(today + dt.timedelta(days=28), today) == 28
    assert weeks_for_days(28) == 4
    assert weeks_for_days(29) == 5
    assert weeks_for_days(1) == 1


def test_past_exam_date_is_clamped_to_one(make_inputs, today: dt.date) -> None:
    rules = derive_study_rules(make_inputs(days_out=-10), today)
    assert rules.days_until_exam == 1
    assert rules.weeks_until_exam == 1


def test_sessions_per_week() -> None:
    assert sessions_per_week(6, "short") == 12
    assert sessions_per_week(6, "long") == 4
    assert sessions_per_week(0.2, "long") == 1


def test_balanced_rules(ap_psych_inputs, today: dt.date) -> None:
    rules = derive_study_rules(ap_psych_inputs, today)

    assert rules.days_until_exam == 28
    assert rules.weeks_until_exam == 4
    assert rules.session_type == "short"
    assert rules.session_duration == "25-40 minutes"
    assert rules.sessions_per_week == 12
    assert rules.study_days_per_week == 6

    assert rules.rules[0] == "Total time available: 28 days (4 weeks)."
    assert any("final week (Week 4)" in r for r in rules.rules)
    assert any("at least one full mock exam" in r for r in rules.rules)
    assert any("1 day, 3 days, and 1 week" in r for r in rules.rules)


def test_two_mock_exams_beyond_four_weeks(make_inputs, today: dt.date) -> None:
    rules = derive_study_rules(make_inputs(days_out=35), today)
    assert rules.weeks_until_exam == 5
    assert any("two full mock exams" in r for r in rules.rules)


def test_single_week_has_no_final_week_reserve(make_inputs, today: dt.date) -> None:
    rules = derive_study_rules(make_inputs(days_out=5), today)
    assert not any("Reserve the final week" in r for r in rules.rules)
    assert not any("mock exam" in r for r in rules.rules)
    assert any("spaced repetition" in r for r in rules.rules)


def test_long_sessions(make_inputs, today: dt.date) -> None:
    rules = derive_study_rules(make_inputs(study_preference="long"), today)
    assert rules.session_duration == "60-90 minutes"
    assert rules.sessions_per_week == 4
    assert rules.study_days_per_week == 4


def test_learning_style_and_resource_rules(make_inputs, today: dt.date) -> None:
    inputs = make_inputs(
        learning_style="visual",
        study_materials=["videos"],
        resources=("Crash Course Videos", "Anki Deck Flashcards", "Barron's Practice Tests"),
    )
    rules = derive_study_rules(inputs, today).rules

    assert any("visual aids" in r for r in rules)
    assert any("Prioritize video resources" in r for r in rules)
    assert any(r.startswith("Core resources to utilize: Crash Course Videos") for r in rules)
    assert any("learning resources (Crash Course Videos)" in r for r in rules)
    assert any("review resources (Anki Deck Flashcards)" in r for r in rules)
    assert any("practice resources (Barron's Practice Tests)" in r for r in rules)


def test_no_style_rules_without_learning_style(ap_psych_inputs, today: dt.date) -> None:
    rules = derive_study_rules(ap_psych_inputs, today).rules
    assert not any("visual" in r.lower() or "auditory" in r.lower() for r in rules)


def test_progress_note_acknowledged_last(make_inputs, today: dt.date) -> None:
    rules = derive_study_rules(make_inputs(progress_note="Finished Topic A"), today).rules
    assert "Finished Topic A" in rules[-1]


def test_derivation_is_idempotent(ap_psych_inputs, today: dt.date) -> None:
    first = derive_study_rules(ap_psych_inputs, today)
    second = derive_study_rules(ap_psych_inputs, today)
    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_rules_are_immutable(ap_psych_inputs, today: dt.date) -> None:
    rules = derive_study_rules(ap_psych_inputs, today)
    with pytest.raises(ValidationError):
        rules.weeks_until_exam = 10
