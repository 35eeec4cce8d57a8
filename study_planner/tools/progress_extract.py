"""Heuristic mapping from a free-text progress note to per-topic percentages."""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from study_planner.models.plan import StudyPlan, Topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressRule:
    """A phrase pattern and the progress it implies for a topic in the same clause."""
    name: str
    pattern: re.Pattern
    progress: int


# Checked in order; the first rule matching a topic's clause wins.
PROGRESS_RULES = [
    ProgressRule("complete", re.compile(r"(?<!almost )\b(completely|finished|mastered)\b"), 100),
    ProgressRule("near", re.compile(r"\b(mostly|almost done|almost finished|very comfortable)\b"), 80),
    ProgressRule("partial", re.compile(r"(?<!barely )\b(partially|started|somewhat)\b"), 40),
    ProgressRule("minimal", re.compile(r"\b(barely|just introduced)\b"), 10),
]

WHOLE_PLAN_PATTERN = re.compile(r"\b(all topics|final review|practice exams?)\b")
SETBACK_PATTERN = re.compile(r"\b(struggl\w*|behind|forgot|haven'?t|not yet|need more|weak)\b")
WHOLE_PLAN_DELTA = 10

CLAUSE_SPLIT_PATTERN = re.compile(r"[.;,!?]|\b(?:and|but|while|though|although)\b")
# Scan stops at digits (so never past the next topic marker) and at sentence ends
PERCENT_PATTERN = r"[^0-9%.;!?]*?(\d{1,3})\s*%"
MARKER_PATTERN = re.compile(r"\x00\d+\x00")


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def _topic_pattern(title: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(title.lower())}(?!\w)")


def _placeholder(index: int) -> str:
    return f"\x00{index}\x00"


def _mask_topics(note: str, titles: list[str]) -> str:
    """
    Lower-case the note and replace each topic title with a placeholder.

    Masking keeps titles containing a conjunction or punctuation
    ("Supply and Demand") in one piece when the note is split.
    """
    masked = note.lower()
    # Longest first so "Topic AB" is not eaten by "Topic A"
    order = sorted(range(len(titles)), key=lambda i: len(titles[i]), reverse=True)
    for i in order:
        masked = _topic_pattern(titles[i]).sub(_placeholder(i), masked)
    return masked


def _topic_clauses(masked: str, titles: list[str]) -> dict[str, list[str]]:
    """Clauses of the masked note that mention each topic."""
    clauses = [c for c in CLAUSE_SPLIT_PATTERN.split(masked) if c and c.strip()]
    found: dict[str, list[str]] = {}
    for i, title in enumerate(titles):
        marker = _placeholder(i)
        matching = [c for c in clauses if marker in c]
        if matching:
            found[title] = matching
    return found


def _percent_progress(masked: str, marker: str) -> Optional[int]:
    """An explicit "<topic> ... NN%" figure, searched across clause boundaries."""
    percent = re.search(re.escape(marker) + PERCENT_PATTERN, masked)
    if percent:
        return _clamp(int(percent.group(1)))
    return None


def _clause_progress(clause: str) -> Optional[tuple[str, int]]:
    """Progress implied by the phrase rules for one clause."""
    # Other topics' markers must not satisfy word-boundary lookbehinds
    text = MARKER_PATTERN.sub(" ", clause)
    for rule in PROGRESS_RULES:
        if rule.pattern.search(text):
            return rule.name, rule.progress
    return None


def extract_topic_progress(note: Optional[str], topics: list[Topic]) -> dict[str, int]:
    """
    Estimate each topic's progress from a progress note.

    Per topic, in priority order: an explicit "<topic> ... NN%" figure, then
    the phrase rules in PROGRESS_RULES scoped to the clause that names the
    topic. Topics with no match keep their current progress. A note about
    the whole plan ("all topics", "final review", "practice exam") then
    moves every topic by 10 points: up normally, down when the note reports
    a setback.

    Args:
        note: Free-text note, e.g. "I've mastered Topic A"
        topics: Topics with their current progress

    Returns:
        Mapping of every topic title to a progress value in [0, 100]
    """
    progress = {t.title: _clamp(t.progress) for t in topics}
    if not note or not note.strip():
        return progress

    titles = [t.title for t in topics]
    masked = _mask_topics(note, titles)
    clauses = _topic_clauses(masked, titles)

    for i, title in enumerate(titles):
        value = _percent_progress(masked, _placeholder(i))
        if value is not None:
            logger.debug(f"Progress for {title!r}: {value}% (percent)")
            progress[title] = value
            continue
        for clause in clauses.get(title, []):
            result = _clause_progress(clause)
            if result:
                rule_name, value = result
                logger.debug(f"Progress for {title!r}: {value}% ({rule_name})")
                progress[title] = value
                break

    lowered = note.lower()
    if WHOLE_PLAN_PATTERN.search(lowered):
        delta = -WHOLE_PLAN_DELTA if SETBACK_PATTERN.search(lowered) else WHOLE_PLAN_DELTA
        for title in titles:
            progress[title] = _clamp(progress[title] + delta)
        logger.debug(f"Whole-plan note: {delta:+d} applied to {len(titles)} topic(s)")

    return progress


def apply_note_to_topics(topics: list[Topic], note: Optional[str]) -> list[Topic]:
    """Return copies of ``topics`` with progress updated from ``note``."""
    progress = extract_topic_progress(note, topics)
    return [t.model_copy(update={"progress": progress[t.title]}) for t in topics]


def apply_progress_note(plan: StudyPlan, note: str) -> StudyPlan:
    """
    Return a copy of ``plan`` with topic progress updated from ``note``.

    The plan's progress map is authoritative for the starting values.
    """
    current = [
        t.model_copy(update={"progress": plan.topics_progress.get(t.title, t.progress)})
        for t in plan.topics
    ]
    topics = apply_note_to_topics(current, note)
    updated = plan.model_copy(deep=True)
    updated.topics = topics
    updated.topics_progress = {t.title: t.progress for t in topics}

    changed = {t.title: t.progress for t in topics if plan.topics_progress.get(t.title) != t.progress}
    logger.info(f"Progress note updated {len(changed)} topic(s): {changed}")
    return updated
