"""Tests for study_planner.tools.plan_validate."""
import datetime as dt

import pytest

from study_planner.models.ai_response import EmptyResponse, StructuredResponse, TextOnlyResponse
from study_planner.tools.plan_validate import PLAN_REJECTED, check_plan_invariants, merge_with_baseline
from study_planner.tools.response_parse import parse_ai_response
from study_planner.tools.rule_engine import derive_study_rules
from study_planner.tools.study_plan import build_baseline_plan


@pytest.fixture
def baseline(ap_psych_inputs, today):
    return build_baseline_plan(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today), today)


def _task_dicts(plan):
    return [t.model_dump(mode="json", by_alias=True) for t in plan.weekly_tasks]


def test_empty_returns_baseline_verbatim(baseline, today: dt.date) -> None:
    plan, repairs = merge_with_baseline(parse_ai_response("Sure! {not valid json"), baseline, today)
    assert plan.model_dump() == baseline.model_dump()
    assert plan is not baseline
    assert repairs == []


def test_text_only_sets_recommendations(baseline, today: dt.date) -> None:
    parsed = TextOnlyResponse(recommendations=["Sleep well", "Review daily"])
    plan, _ = merge_with_baseline(parsed, baseline, today)
    assert plan.study_plan.recommendations == ["Sleep well", "Review daily"]
    assert _task_dicts(plan) == _task_dicts(baseline)
    assert baseline.study_plan.recommendations == []


def test_ai_weekly_plan_is_converted(baseline, today: dt.date) -> None:
    parsed = StructuredResponse(plan={
        "summary": "Focus on memory first",
        "weeklyPlan": [
            {
                "week": 1,
                "dateRange": "Oct 19-25",
                "focus": "Memory",
                "days": [
                    {"day": "Monday", "tasks": [
                        {"topic": "Topic A", "activity": "Create flashcards", "resource": "Flashcards",
                         "duration": 45, "type": "study"},
                    ]},
                    {"day": "Weekend", "tasks": [
                        {"topic": "Topic B", "activity": "Practice quiz", "duration": "60", "type": "practice"},
                    ]},
                ],
            },
            {
                "week": 2,
                "focus": "Review",
                "days": [
                    {"day": "Sunday", "tasks": [{"topic": "Topic C", "type": "bogus"}]},
                ],
            },
        ],
        "finalWeekStrategy": "Mock exams",
        "studyTips": ["1", "2", "3", "4", "5", "6", "7"],
    })

    plan, repairs = merge_with_baseline(parsed, baseline, today)

    sp = plan.study_plan
    assert sp.summary == "Focus on memory first"
    assert sp.final_week_strategy == "Mock exams"
    assert sp.recommendations == ["1", "2", "3", "4", "5"]

    assert [w.week for w in plan.calendar_weeks] == [1, 2]
    assert plan.calendar_weeks[0].date_range == "Oct 19-25"
    assert plan.calendar_weeks[1].date_range == "Oct 26 - Nov 1"
    assert list(plan.calendar_weeks[0].days) == ["monday", "weekend"]

    first, second, third = plan.weekly_tasks
    assert first.title == "Topic A: Create flashcards"
    assert first.date == today + dt.timedelta(days=1)
    assert first.duration == 45
    assert second.date == today + dt.timedelta(days=6)
    assert second.duration == 60
    assert second.resource is None
    assert third.date == today + dt.timedelta(days=7)
    assert third.task_type == "study"
    assert third.duration == 30
    assert [t.id for t in plan.weekly_tasks] == [1, 2, 3]
    assert all(t.study_plan_id == sp.id for t in plan.weekly_tasks)
    assert any("type" in r for r in repairs)


def test_full_form_tasks_repaired_by_index(baseline, today: dt.date) -> None:
    tasks = _task_dicts(baseline)
    del tasks[0]["title"]
    tasks[1]["duration"] = -5
    tasks[1]["studyPlanId"] = 99
    tasks.append({"title": "Extra session"})

    parsed = StructuredResponse(plan={"weeklyTasks": tasks})
    plan, repairs = merge_with_baseline(parsed, baseline, today)

    merged = plan.weekly_tasks
    assert len(merged) == len(baseline.weekly_tasks) + 1
    assert merged[0].title == baseline.weekly_tasks[0].title
    assert merged[1].duration == baseline.weekly_tasks[1].duration
    assert merged[1].study_plan_id == baseline.study_plan.id

    # No positional baseline task: fresh id and defaults
    extra = merged[-1]
    assert extra.title == "Extra session"
    assert extra.id == max(t.id for t in baseline.weekly_tasks) + 1
    assert extra.is_completed is False
    assert extra.task_type == "study"
    assert extra.duration == 30
    assert extra.date == today

    assert "weeklyTasks[0].title" in repairs
    assert "weeklyTasks[1].duration" in repairs
    assert "weeklyTasks[1].studyPlanId" in repairs
    # calendarWeeks absent: baseline weeks kept
    assert len(plan.calendar_weeks) == len(baseline.calendar_weeks)


def test_duplicate_ids_and_out_of_window_dates(baseline, today: dt.date) -> None:
    tasks = _task_dicts(baseline)[:3]
    tasks[1]["id"] = tasks[0]["id"]
    tasks[2]["date"] = "2031-01-01"

    plan, repairs = merge_with_baseline(StructuredResponse(plan={"weeklyTasks": tasks}), baseline, today)

    ids = [t.id for t in plan.weekly_tasks]
    assert len(ids) == len(set(ids))
    assert plan.weekly_tasks[2].date == baseline.study_plan.exam_date + dt.timedelta(days=7)
    assert "weeklyTasks[1].id" in repairs
    assert "weeklyTasks[2].date" in repairs


def test_study_plan_fields_merged_individually(baseline, today: dt.date) -> None:
    parsed = StructuredResponse(plan={
        "studyPlan": {
            "id": 500,
            "courseName": "",
            "weeklyStudyTime": 8,
            "topicsProgress": {"Topic A": 55, "Topic B": 300, "Ghost": 10},
        },
    })
    plan, repairs = merge_with_baseline(parsed, baseline, today)

    sp = plan.study_plan
    assert sp.id == baseline.study_plan.id
    assert sp.course_name == "AP Psych"
    assert sp.weekly_study_time == 8
    assert sp.topics_progress == {"Topic A": 55, "Topic B": 0, "Topic C": 0, "Topic D": 0}
    assert "studyPlan.courseName" in repairs
    assert "studyPlan.topicsProgress['Topic B']" in repairs
    assert "studyPlan.topicsProgress" in repairs


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"summary": 42, "studyTips": "not a list"},
        {"studyPlan": 5},
        {"studyPlan": {"topics": []}},
        {"weeklyTasks": "nope"},
        {"weeklyTasks": [None, 3, {"date": "yesterday"}]},
        {"weeklyTasks": [], "calendarWeeks": [{"week": -1}]},
        {"weeklyPlan": "nope"},
        {"weeklyPlan": [{"days": "x"}, 7, {"days": [{"day": "Funday", "tasks": [{}]}]}]},
        {"weeklyPlan": [{"days": {"Tuesday": [{"topic": "Topic A", "duration": 0}]}}]},
    ],
)
def test_merge_is_total(baseline, today: dt.date, payload: dict) -> None:
    plan, _ = merge_with_baseline(StructuredResponse(plan=payload), baseline, today)

    check_plan_invariants(plan, today)
    for task in plan.weekly_tasks:
        data = task.model_dump(by_alias=True)
        for field in ("id", "studyPlanId", "title", "date", "duration", "isCompleted", "taskType"):
            assert data[field] is not None
    assert plan.study_plan.course_name


def test_all_parse_outcomes_are_total(baseline, today: dt.date) -> None:
    for parsed in (EmptyResponse(), TextOnlyResponse(recommendations=["x"]), StructuredResponse(plan={})):
        plan, _ = merge_with_baseline(parsed, baseline, today)
        check_plan_invariants(plan, today)


def test_baseline_not_mutated(baseline, today: dt.date) -> None:
    before = baseline.model_dump_json()
    merge_with_baseline(StructuredResponse(plan={"weeklyTasks": [{"title": "x"}], "summary": "s"}), baseline, today)
    assert baseline.model_dump_json() == before


def test_rejected_plan_falls_back_to_baseline(baseline, today: dt.date) -> None:
    # Moving the exam earlier pushes kept baseline tasks past the allowed window
    parsed = StructuredResponse(plan={"studyPlan": {"examDate": today.isoformat()}})
    plan, repairs = merge_with_baseline(parsed, baseline, today)

    assert PLAN_REJECTED in repairs
    assert plan.model_dump() == baseline.model_dump()


def test_reply_resources_are_classified(baseline, today: dt.date) -> None:
    parsed = StructuredResponse(plan={
        "studyPlan": {
            "resources": [
                {"id": "r", "name": "Practice Exam Book"},
                {"id": "s", "name": "Flashcards", "classification": {"type": "reference", "phase": "early"}},
            ],
        },
    })
    plan, _ = merge_with_baseline(parsed, baseline, today)

    classified = [(r.name, r.classification.type, r.classification.phase) for r in plan.study_plan.resources]
    assert classified == [("Practice Exam Book", "practice", "late"), ("Flashcards", "review", "mid")]
