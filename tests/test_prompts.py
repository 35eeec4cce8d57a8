"""Tests for study_planner.tools.prompts."""
import datetime as dt

from study_planner.models.plan import RefinementRequest
from study_planner.tools.prompts import compose_generation_messages, compose_refinement_messages
from study_planner.tools.rule_engine import derive_study_rules
from study_planner.tools.study_plan import build_baseline_plan


def test_generation_messages(make_inputs, today: dt.date) -> None:
    inputs = make_inputs(learning_style="visual", progress={"Topic B": 40}, progress_note="Started Topic B")
    rules = derive_study_rules(inputs, today)

    system, user = compose_generation_messages(inputs, rules)

    assert system.role == "system"
    for key in ('"summary"', '"weeklyPlan"', '"finalWeekStrategy"', '"studyTips"'):
        assert key in system.content

    assert user.role == "user"
    assert "Course Name: AP Psych" in user.content
    assert "28 days / 4 weeks remaining" in user.content
    assert "VISUAL LEARNER" in user.content
    assert "Topic B (Progress: 40%)" in user.content
    assert "Textbook (learning, early phase)" in user.content
    assert 'Reported Progress: "Started Topic B"' in user.content
    for number, rule in enumerate(rules.rules, start=1):
        assert f"{number}. {rule}" in user.content


def test_generation_messages_without_optional_fields(ap_psych_inputs, today: dt.date) -> None:
    _, user = compose_generation_messages(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today))
    assert "Learning Style: Not specified" in user.content
    assert "Reported Progress" not in user.content


def test_refinement_messages(ap_psych_inputs, today: dt.date) -> None:
    plan = build_baseline_plan(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today), today)
    request = RefinementRequest(
        goals="More practice before the exam",
        strongest_topics=["Topic A"],
        weakest_topics=["Topic C"],
        stress_level="high",
        preferred_techniques=["mind-mapping", "interleaving"],
    )

    system, user = compose_refinement_messages(plan, request, today)

    assert "SUBSTANTIAL" in system.content
    assert '"weeklyPlan"' in system.content
    assert 'PRIMARY REQUEST: "More practice before the exam"' in user.content
    assert "STRONGEST TOPICS (need less focus):\n- Topic A" in user.content
    assert "- Topic C" in user.content
    assert "STRESS LEVEL: HIGH" in user.content
    assert "Reduce the overall workload" in user.content
    assert "Mind Mapping (visual organization" in user.content
    # Unknown technique identifiers pass through verbatim
    assert "- interleaving\n" in user.content
    assert "28 days remaining" in user.content
    # Prior weekly structure is embedded as JSON
    assert '"focus": "Final Review"' in user.content
    assert '"dateRange"' in user.content


def test_refinement_messages_minimal_request(ap_psych_inputs, today: dt.date) -> None:
    plan = build_baseline_plan(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today), today)
    _, user = compose_refinement_messages(plan, RefinementRequest(), today)

    assert "STRESS LEVEL: MEDIUM" in user.content
    assert "PRIMARY REQUEST" not in user.content
    assert "PREFERRED STUDY TECHNIQUES" not in user.content
