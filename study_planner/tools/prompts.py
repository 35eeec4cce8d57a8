"""
Prompt templates for plan generation and refinement.

Pure string construction: no I/O, nothing here can fail on valid inputs.
"""
import datetime as dt
import json
from typing import Optional

from study_planner.models.ai_response import ChatMessage
from study_planner.models.plan import GeneratedPlan, PlanInputs, RefinementRequest, StudyRules, WeekPlan
from study_planner.tools.resource_classify import classify_resources


PLAN_JSON_SCHEMA = """{
  "summary": "Personalized overview of the study plan strategy...",
  "weeklyPlan": [
    {
      "week": 1,
      "dateRange": "Apr 24-30",
      "focus": "Main focus for this week",
      "days": [
        {
          "day": "Monday",
          "tasks": [
            {
              "topic": "Topic name",
              "activity": "Specific activity that matches the learning style",
              "resource": "Specific resource from the available list",
              "duration": 45,
              "type": "study|review|practice"
            }
          ]
        }
      ]
    }
  ],
  "finalWeekStrategy": "Detailed approach for the exam week...",
  "studyTips": ["Tip 1", "Tip 2", "Tip 3", "Tip 4", "Tip 5"]
}"""

GENERATION_SYSTEM_PROMPT = f"""You are a study planning engine. Create a personalized, structured study plan from the student data and the STUDY RULES you are given.

YOUR TASK:
- Generate a detailed, week-by-week study plan in the JSON format below.
- Follow the study rules strictly, especially time allocation, session structure, learning style adaptations and resource utilization.
- Handle topics at different progress levels (completed, in progress, not started).

RESOURCE TYPE GUIDELINES:
- Practice resources (quizzes, problem sets, practice exams): use mainly AFTER initial learning of a topic
- Review resources (flashcards, summaries): use throughout, following spaced repetition
- Learning resources (videos, textbooks): use mainly during initial learning
- Reference resources (handbooks, glossaries): keep for look-ups, do not schedule as sessions

PROGRESS HANDLING:
- Completed topics (100%): brief review sessions only
- Partial progress (70-99%): weak areas, review and practice, no relearning of basics
- Low progress (0-69%): full learning sequence from basics to application

OUTPUT STRUCTURE (strict JSON only):
{PLAN_JSON_SCHEMA}

Do not include any text outside the JSON object."""

REFINEMENT_SYSTEM_PROMPT = f"""You are a study plan refinement engine. Make SUBSTANTIAL changes to an existing study plan based on the student's feedback.

YOUR TASK:
- Review the original plan and the student's refinement request.
- Produce a significantly revised plan that addresses their needs. The student must clearly see the differences.
- Output a complete plan in the JSON format below; it fully replaces the current plan.

If the student asks for more focus on weak topics, give those topics much more time. If they want less intensity, visibly reduce the daily workload.

PREFERRED TECHNIQUES:
- When preferred techniques are listed (flashcards, mind maps, ...), name them EXPLICITLY in MULTIPLE activity descriptions.
- For example, if the student likes flashcards, at least 25-30% of activities should say "Create/Review flashcards for <topic>".

OUTPUT STRUCTURE (strict JSON only):
{PLAN_JSON_SCHEMA}

The summary must EXPLAIN THE MAJOR CHANGES and why they address the feedback. Output ONLY the JSON."""

LEARNING_STYLE_CONTEXT = {
    "visual": "This student is a VISUAL LEARNER who benefits from diagrams, charts, videos and visual organization of information. Include plenty of visual learning activities.",
    "auditory": "This student is an AUDITORY LEARNER who benefits from discussions, recordings, verbal explanations and listening activities. Prioritize audio-based learning methods.",
    "reading": "This student is a READING/WRITING LEARNER who benefits from text-based materials, note-taking and written summaries. Include plenty of reading and writing activities.",
    "kinesthetic": "This student is a KINESTHETIC LEARNER who benefits from hands-on activities, practical applications and physical engagement with material. Include interactive and tactile methods.",
}

TECHNIQUE_DESCRIPTIONS = {
    "spaced-repetition": "Spaced Repetition (reviewing material at increasing intervals) - HEAVILY incorporate this approach in the schedule structure",
    "active-recall": "Active Recall (testing yourself on material) - EXPLICITLY include activities with this technique",
    "pomodoro": "Pomodoro Technique (25-minute focused sessions with 5-minute breaks) - STRUCTURE many sessions using this format",
    "mind-mapping": "Mind Mapping (visual organization of topics and connections) - EXPLICITLY include mind-mapping activities for multiple topics",
    "feynman": "Feynman Technique (teaching concepts simply to solidify understanding) - EXPLICITLY include teaching/explanation activities",
}

STRESS_GUIDANCE = {
    "high": "Reduce the overall workload and add more breaks. Break topics into smaller, manageable chunks.",
    "low": "The student can handle more challenging material or longer sessions if needed.",
}


def _style_line(learning_style: Optional[str]) -> str:
    if learning_style in LEARNING_STYLE_CONTEXT:
        return f"\n{LEARNING_STYLE_CONTEXT[learning_style]}"
    return ""


def compose_generation_messages(inputs: PlanInputs, rules: StudyRules) -> list[ChatMessage]:
    """
    Render the initial-generation request.

    Args:
        inputs: Plan inputs (course, topics, resources, preferences)
        rules: Derived study rules, listed verbatim and numbered

    Returns:
        [system, user] messages
    """
    topics = ", ".join(f"{t.title} (Progress: {t.progress}%)" for t in inputs.topics)
    resources = ", ".join(
        f"{r.name} ({r.classification.type}, {r.classification.phase} phase)"
        for r in classify_resources(inputs.resources)
    ) or "None listed"

    progress_data = "".join(f"\n  - {t.title}: {t.progress}% complete" for t in inputs.topics if t.progress)
    if progress_data:
        progress_data = f"\n- Topic Progress Data:{progress_data}"

    materials = ""
    if inputs.study_materials:
        materials = f"\n- Preferred Study Materials: {', '.join(inputs.study_materials).replace('_', ' ')}"

    reported = f'\n- Reported Progress: "{inputs.progress_note}"' if inputs.progress_note else ""
    numbered_rules = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules.rules, start=1))

    user_prompt = f"""Generate a detailed, personalized study plan from the following student profile, course details and mandatory study rules.

STUDENT & COURSE DATA:
- Course Name: {inputs.course_name}
- Exam Date: {rules.exam_date.isoformat()} ({rules.days_until_exam} days / {rules.weeks_until_exam} weeks remaining)
- Available Study Time: {inputs.weekly_study_time:g} hours/week
- Target Score: {inputs.target_score or 'Aiming for mastery'}
- Session Preference: {rules.session_type} ({rules.session_duration}, about {rules.sessions_per_week} sessions/week)
- Learning Style: {inputs.learning_style or 'Not specified'}{_style_line(inputs.learning_style)}
- Topics to Cover: {topics}{progress_data}
- Available Resources: {resources}{materials}{reported}

STUDY RULES (follow these strictly):
{numbered_rules}

INSTRUCTIONS:
1. Follow ALL study rules above.
2. Match activities to the student's learning style ({inputs.learning_style or 'general'}).
3. Topics at 70%+ progress get review and practice, not relearning; topics at 100% only get brief reviews.
4. Prioritize topics with lower progress.
5. Output ONLY the JSON object."""

    return [
        ChatMessage(role="system", content=GENERATION_SYSTEM_PROMPT),
        ChatMessage(role="user", content=user_prompt),
    ]


def format_weeks(weeks: list[WeekPlan]) -> str:
    """Render the plan's weekly structure as JSON for the model."""
    return json.dumps(
        [w.model_dump(mode="json", by_alias=True, exclude_none=True, exclude_defaults=True) for w in weeks],
        indent=2,
    )


def compose_refinement_messages(
    plan: GeneratedPlan,
    request: RefinementRequest,
    today: dt.date,
) -> list[ChatMessage]:
    """
    Render a refinement request against an existing plan.

    Args:
        plan: The current plan; its weekly structure is embedded in the prompt
        request: Student feedback
        today: Reference date for the days-remaining figure

    Returns:
        [system, user] messages
    """
    sp = plan.study_plan
    days_left = (sp.exam_date - today).days

    feedback = []
    if request.goals:
        feedback.append(f'PRIMARY REQUEST: "{request.goals}"')
    if request.strongest_topics:
        feedback.append(
            "STRONGEST TOPICS (need less focus):\n" + "\n".join(f"- {t}" for t in request.strongest_topics)
        )
    if request.weakest_topics:
        feedback.append(
            "WEAKEST TOPICS (need MORE focus, significantly increase presence):\n"
            + "\n".join(f"- {t}" for t in request.weakest_topics)
        )
    stress = f"STRESS LEVEL: {request.stress_level.upper()}"
    if request.stress_level in STRESS_GUIDANCE:
        stress += f"\n{STRESS_GUIDANCE[request.stress_level]}"
    feedback.append(stress)
    if request.preferred_techniques:
        techniques = "\n".join(f"- {TECHNIQUE_DESCRIPTIONS.get(t, t)}" for t in request.preferred_techniques)
        feedback.append(
            f"PREFERRED STUDY TECHNIQUES (MUST BE CLEARLY VISIBLE IN THE PLAN):\n{techniques}\n"
            "The plan MUST name these techniques in multiple task descriptions; for example, if "
            '"mind-mapping" is preferred, include at least 6-8 activities that create or review mind maps.'
        )

    topics = "\n".join(f"- {t.title} (Progress: {sp.topics_progress.get(t.title, t.progress)}%)" for t in sp.topics)
    resources = "\n".join(f"- {r.name}" for r in sp.resources) or "- None listed"

    user_prompt = f"""REFINEMENT REQUEST: Make SUBSTANTIAL changes to this study plan based on the student's feedback.

COURSE: {sp.course_name}
EXAM DATE: {sp.exam_date.isoformat()} ({days_left} days remaining)
WEEKLY STUDY TIME: {sp.weekly_study_time:g} hours
LEARNING STYLE: {sp.learning_style or 'Not specified'}{_style_line(sp.learning_style)}

STUDENT FEEDBACK (CRITICAL - IMPLEMENT THESE CHANGES):
{chr(10).join(feedback)}

ALL COURSE TOPICS WITH CURRENT PROGRESS:
{topics}

AVAILABLE RESOURCES:
{resources}

ORIGINAL PLAN STRUCTURE:
{format_weeks(plan.calendar_weeks)}

INSTRUCTIONS:
1. Create a COMPLETELY REVISED plan that directly addresses the feedback.
2. Make SUBSTANTIAL, VISIBLE changes, not minor tweaks.
3. Name the preferred techniques explicitly in multiple activities.
4. Give topics the student wants to focus on 3-4x more time.
5. Skip or minimize tasks for topics at 100%; topics above 70% get brief reviews only.
6. Output ONLY the JSON object."""

    return [
        ChatMessage(role="system", content=REFINEMENT_SYSTEM_PROMPT),
        ChatMessage(role="user", content=user_prompt),
    ]
