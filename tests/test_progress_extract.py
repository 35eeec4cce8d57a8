"""Tests for study_planner.tools.progress_extract."""
import datetime as dt

import pytest

from study_planner.models.plan import Topic
from study_planner.tools.progress_extract import apply_note_to_topics, apply_progress_note, extract_topic_progress
from study_planner.tools.rule_engine import derive_study_rules
from study_planner.tools.study_plan import build_baseline_plan


def _topics(**progress):
    titles = ("Topic A", "Topic B", "Topic C", "Topic D")
    return [Topic(id=str(i), title=t, progress=progress.get(t.replace("Topic ", ""), 0)) for i, t in enumerate(titles)]


def test_mastered_and_barely() -> None:
    result = extract_topic_progress("I've mastered Topic A but barely started Topic B", _topics())
    assert result == {"Topic A": 100, "Topic B": 10, "Topic C": 0, "Topic D": 0}


def test_explicit_percentages_clamped() -> None:
    result = extract_topic_progress("Topic A is at 60%, Topic B 150%", _topics(C=25))
    assert result == {"Topic A": 60, "Topic B": 100, "Topic C": 25, "Topic D": 0}


def test_percentage_across_comma() -> None:
    result = extract_topic_progress("Topic A, around 60%", _topics())
    assert result["Topic A"] == 60


def test_percentage_beats_phrase() -> None:
    assert extract_topic_progress("Barely touched Topic A, maybe 25%", _topics())["Topic A"] == 25


def test_percentage_stays_in_its_sentence() -> None:
    result = extract_topic_progress("Topic A is going fine. I am 50% through Topic C", _topics(A=30))
    assert result["Topic A"] == 30


@pytest.mark.parametrize(
    "note, expected",
    [
        ("almost done with Topic A", 80),
        ("almost finished Topic A", 80),
        ("I'm very comfortable with Topic A", 80),
        ("somewhat comfortable with Topic A", 40),
        ("I partially covered Topic A", 40),
        ("I just started Topic A", 40),
        ("I barely started Topic A", 10),
        ("Topic A was just introduced", 10),
        ("Completely finished Topic A", 100),
    ],
)
def test_phrase_rules(note: str, expected: int) -> None:
    assert extract_topic_progress(note, _topics())["Topic A"] == expected


def test_phrases_scoped_to_topic_clause() -> None:
    result = extract_topic_progress("Topic A is going fine. I mastered Topic C", _topics(A=30))
    assert result["Topic A"] == 30
    assert result["Topic C"] == 100


def test_title_with_conjunction() -> None:
    topics = [Topic(id="1", title="Supply and Demand"), Topic(id="2", title="Elasticity", progress=50)]
    result = extract_topic_progress("Supply and Demand is mostly done, but Elasticity barely", topics)
    assert result == {"Supply and Demand": 80, "Elasticity": 10}


def test_unmatched_note_keeps_progress() -> None:
    topics = _topics(A=35, B=70)
    assert extract_topic_progress("Had a great week", topics) == {t.title: t.progress for t in topics}
    assert extract_topic_progress("", topics) == {t.title: t.progress for t in topics}
    assert extract_topic_progress(None, topics) == {t.title: t.progress for t in topics}


def test_whole_plan_notes() -> None:
    up = extract_topic_progress("Took a practice exam this weekend", _topics(A=95))
    assert up == {"Topic A": 100, "Topic B": 10, "Topic C": 10, "Topic D": 10}

    down = extract_topic_progress("I'm struggling with the final review", _topics(A=50))
    assert down == {"Topic A": 40, "Topic B": 0, "Topic C": 0, "Topic D": 0}


def test_whole_plan_moves_every_topic() -> None:
    result = extract_topic_progress("Topic B is at 60% and I took a practice exam", _topics(C=95))
    assert result == {"Topic A": 10, "Topic B": 70, "Topic C": 100, "Topic D": 10}

    mastered = extract_topic_progress("Mastered Topic A and took a practice exam", _topics(B=20))
    assert mastered == {"Topic A": 100, "Topic B": 30, "Topic C": 10, "Topic D": 10}


def test_apply_note_to_topics_copies() -> None:
    topics = _topics()
    updated = apply_note_to_topics(topics, "mastered Topic D")
    assert updated[3].progress == 100
    assert topics[3].progress == 0


def test_apply_progress_note(ap_psych_inputs, today: dt.date) -> None:
    plan = build_baseline_plan(ap_psych_inputs, derive_study_rules(ap_psych_inputs, today), today).study_plan

    updated = apply_progress_note(plan, "Topic B is at 45%")

    assert updated.topics_progress["Topic B"] == 45
    assert next(t for t in updated.topics if t.title == "Topic B").progress == 45
    assert plan.topics_progress["Topic B"] == 0
    assert updated is not plan
