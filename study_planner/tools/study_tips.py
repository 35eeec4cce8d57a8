"""Offline study tips and refinement recommendations (no model call)."""
import datetime as dt
import random
import re
from typing import Optional

from study_planner.models.plan import GeneratedPlan, PlanInputs, RefinementRequest

MAX_TIPS = 5

GENERAL_TIPS = [
    "Create a consistent study environment free from distractions for your {course} sessions",
    "Test yourself regularly with practice questions to reinforce your learning",
    "Use spaced repetition to review material from earlier topics throughout your study plan",
    "Break complex topics into smaller, manageable chunks to improve understanding",
    "Get adequate sleep and exercise to optimize your brain's learning capacity",
    "Teach concepts to someone else (or pretend to) to deepen your understanding",
    "Create a rewards system to stay motivated throughout your study plan",
]

STYLE_TIPS = {
    "visual": [
        "Create colorful mind maps to visualize connections between concepts",
        "Use highlighters and color-coding in your notes to organize information",
        "Convert text notes into diagrams, charts, and illustrations",
        "Watch video explanations of difficult concepts",
    ],
    "auditory": [
        "Record yourself explaining key concepts and listen during review",
        "Participate in study groups where you can discuss topics verbally",
        "Read important information aloud while studying",
        "Look for relevant podcasts or audio lectures on challenging topics",
    ],
    "reading": [
        "Write detailed summaries in your own words after each study session",
        "Create flashcards with written definitions and explanations",
        "Rewrite your notes to consolidate information",
        "Use the Cornell note-taking system for structured review",
    ],
    "kinesthetic": [
        "Take study breaks that involve physical movement",
        "Use physical flashcards you can touch and manipulate",
        "Act out processes or concepts when possible",
        "Study while standing or walking to engage your body",
    ],
}

# Checked in order; the first area with a matching keyword wins.
SUBJECT_AREAS = [
    ("mathematics", ["math", "calculus", "algebra", "geometry", "statistics"]),
    ("science", ["physics", "chemistry", "biology", "science"]),
    ("social studies", ["history", "government", "econ", "politics", "geography"]),
    ("language arts", ["english", "literature", "writing", "language"]),
    ("behavioral science", ["psychology", "psych", "sociology"]),
    ("computer science", ["computer", "programming", "coding"]),
    ("standardized test prep", ["sat", "act", "gre", "gmat", "lsat", "mcat"]),
]
DEFAULT_SUBJECT_AREA = "academic"
# Exam acronyms must match a whole word ("act" vs "practice")
WHOLE_WORD_KEYWORDS = {"sat", "act", "gre", "gmat", "lsat", "mcat"}

SUBJECT_TIPS = {
    "mathematics": [
        "Focus on understanding concepts rather than memorizing formulas",
        "Work through problems step by step without looking at solutions",
        "Create a formula sheet that you regularly review",
        "Practice with increasingly difficult problems as you master basics",
    ],
    "science": [
        "Connect theoretical concepts to real-world applications",
        "Draw diagrams of processes to visualize complex systems",
        "Create analogies to help remember scientific processes",
        'Focus on understanding the "why" behind scientific principles',
    ],
    "social studies": [
        "Create timelines to visualize historical events in sequence",
        "Connect historical events to their causes and effects",
        "Use mnemonic devices for remembering dates and key figures",
        "Relate historical events to modern situations for better context",
    ],
    "language arts": [
        "Practice active reading by annotating texts",
        "Keep a vocabulary journal for new terms",
        "Write summaries of readings to ensure comprehension",
        "Practice timed writing to prepare for exam conditions",
    ],
    "behavioral science": [
        "Connect psychological theories to real-life examples",
        "Create concept maps showing relationships between theories",
        "Study in varying environments to understand context-dependent memory",
        "Use real-world examples to reinforce abstract concepts",
    ],
    "computer science": [
        "Practice coding problems regularly to build fluency",
        "Implement concepts in code to ensure understanding",
        "Comment your code thoroughly to reinforce understanding",
        "Trace through algorithms step by step on paper",
    ],
    "standardized test prep": [
        "Take full-length practice tests under timed conditions",
        "Review incorrect answers to understand the reasoning",
        "Learn test-specific strategies and time management techniques",
        "Focus on high-yield topics that appear frequently on the exam",
    ],
}

LOW_TIME_HOURS = 5
HIGH_TIME_HOURS = 10

TECHNIQUE_TIPS = {
    "spaced-repetition": "Revisit each topic 1 day, 3 days and 1 week after first studying it",
    "active-recall": "Close your notes and write down everything you remember before checking",
    "pomodoro": "Work in 25-minute focused blocks with 5-minute breaks",
    "mind-mapping": "Start each topic by sketching a mind map of its key ideas and links",
    "feynman": "Explain each concept in plain words as if teaching a beginner, then fill the gaps",
}


def subject_area(course_name: str) -> str:
    """Infer a broad subject area from the course name by keyword."""
    words = set(re.findall(r"[a-z]+", course_name.lower()))
    lowered = course_name.lower()
    for area, keywords in SUBJECT_AREAS:
        for keyword in keywords:
            if (keyword in words) if keyword in WHOLE_WORD_KEYWORDS else (keyword in lowered):
                return area
    return DEFAULT_SUBJECT_AREA


def generate_study_tips(inputs: PlanInputs, rng: Optional[random.Random] = None) -> list[str]:
    """
    Pick five study tips for a plan without calling a model.

    Tips come from general, learning-style, subject-area and time-budget
    pools. The order is fixed unless a seeded ``rng`` is supplied to shuffle.
    """
    tips = [t.format(course=inputs.course_name) for t in GENERAL_TIPS]
    tips += STYLE_TIPS.get(inputs.learning_style, [])
    tips += SUBJECT_TIPS.get(subject_area(inputs.course_name), [])
    if inputs.weekly_study_time < LOW_TIME_HOURS:
        tips.append("Maximize your limited study time by focusing on high-priority topics first")
    elif inputs.weekly_study_time > HIGH_TIME_HOURS:
        tips.append("Break up your study sessions across different days to prevent burnout")

    if rng is not None:
        rng.shuffle(tips)
        return tips[:MAX_TIPS]

    # Without shuffling, lead with the tailored tips rather than the generic ones
    tailored = tips[len(GENERAL_TIPS):]
    return (tailored + tips[:len(GENERAL_TIPS)])[:MAX_TIPS]


def offline_refinement_tips(plan: GeneratedPlan, request: RefinementRequest, today: dt.date) -> list[str]:
    """Deterministic recommendations answering a refinement request without a model."""
    sp = plan.study_plan
    days_left = (sp.exam_date - today).days
    tips = []

    if days_left <= 7:
        tips.append(f"With {max(days_left, 0)} days left, prioritize practice exams and your weakest topics")
    elif days_left <= 21:
        tips.append(f"With {days_left} days left, shift from new material toward review and practice questions")
    else:
        tips.append(f"With {days_left} days left, build a solid foundation before moving to heavy practice")

    if sp.learning_style in STYLE_TIPS:
        tips.append(STYLE_TIPS[sp.learning_style][0])

    if request.weakest_topics:
        tips.append(f"Give extra sessions to {', '.join(request.weakest_topics)} before reviewing anything else")
    if request.strongest_topics:
        tips.append(f"Keep {', '.join(request.strongest_topics)} fresh with short weekly reviews only")

    if request.stress_level == "high":
        tips.append("Shorten sessions, schedule regular breaks and keep at least one rest day each week")
    elif request.stress_level == "low":
        tips.append("You can take on longer sessions or harder practice sets this week")

    if request.preferred_techniques:
        technique = request.preferred_techniques[0]
        tips.append(TECHNIQUE_TIPS.get(technique, f"Build your sessions around {technique}"))

    if re.search(r"\b(exam|test|score|grade)\b", request.goals.lower()):
        tips.append("Take a timed practice exam and review every incorrect answer")

    return tips[:MAX_TIPS]
