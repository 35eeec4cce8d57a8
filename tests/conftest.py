"""Shared fixtures: a fixed reference date and plan input factories."""
import datetime as dt

import pytest

from study_planner.models.plan import PlanInputs

TODAY = dt.date(2026, 10, 19)


@pytest.fixture
def today() -> dt.date:
    return TODAY


@pytest.fixture
def make_inputs():
    """Factory for PlanInputs with sensible defaults; keyword overrides win."""

    def _make(
        days_out: int = 28,
        topics=("Topic A", "Topic B", "Topic C", "Topic D"),
        progress=None,
        resources=("Textbook", "Flashcards"),
        **overrides,
    ) -> PlanInputs:
        progress = progress or {}
        data = {
            "course_name": "AP Psych",
            "exam_date": TODAY + dt.timedelta(days=days_out),
            "weekly_study_time": 6,
            "study_preference": "short",
            "topics": [
                {"id": str(i), "title": title, "progress": progress.get(title, 0)}
                for i, title in enumerate(topics, start=1)
            ],
            "resources": [{"id": f"r{i}", "name": name} for i, name in enumerate(resources, start=1)],
        }
        data.update(overrides)
        return PlanInputs.model_validate(data)

    return _make


@pytest.fixture
def ap_psych_inputs(make_inputs) -> PlanInputs:
    return make_inputs()
