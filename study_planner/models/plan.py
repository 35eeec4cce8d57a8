"""Study plan models: inputs, derived rules, tasks, weeks and the generated plan."""
import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


LearningStyle = Literal["visual", "auditory", "reading", "kinesthetic"]
StudyMaterial = Literal["flashcards", "videos", "practice_tests", "notes", "textbooks"]
SessionType = Literal["short", "long"]
TaskType = Literal["study", "review", "practice"]
ResourceType = Literal["learning", "practice", "review", "reference"]
ResourcePhase = Literal["early", "mid", "late"]
StressLevel = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys (the plan's wire format)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Topic(CamelModel):
    """A course topic and how far along the student is with it."""
    id: str
    title: str = Field(min_length=1)
    progress: int = Field(default=0, ge=0, le=100)


class ResourceClassification(CamelModel):
    """Derived usage type and preferred phase for a resource (empty until classified)."""
    type: Optional[ResourceType] = None
    phase: Optional[ResourcePhase] = None
    description: str = ""


class Resource(CamelModel):
    """Named study resource (textbook, flashcard deck, question bank ...)."""
    id: str
    name: str
    classification: ResourceClassification = Field(default_factory=ResourceClassification)


class PlanInputs(CamelModel):
    """Everything needed to generate a plan from scratch."""
    course_name: str
    exam_date: dt.date
    weekly_study_time: float = Field(gt=0)  # hours
    study_preference: SessionType = "short"
    learning_style: Optional[LearningStyle] = None
    study_materials: list[StudyMaterial] = Field(default_factory=list)
    topics: list[Topic] = Field(min_length=1)
    resources: list[Resource] = Field(default_factory=list)
    target_score: Optional[int] = None
    progress_note: Optional[str] = None


class StudyRules(CamelModel):
    """Scheduling directives plus the scalars they were derived from."""
    model_config = ConfigDict(frozen=True)

    exam_date: dt.date
    days_until_exam: int = Field(ge=1)
    weeks_until_exam: int = Field(ge=1)
    session_type: SessionType
    session_duration: str  # descriptive range, e.g. "25-40 minutes"
    sessions_per_week: int = Field(ge=1)
    study_days_per_week: int = Field(ge=1)
    rules: tuple[str, ...] = ()


class Task(CamelModel):
    """A single dated study session."""
    id: int
    study_plan_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    date: dt.date
    duration: int = Field(gt=0)  # minutes
    resource: Optional[str] = None
    is_completed: bool = False
    task_type: TaskType


class WeekTask(CamelModel):
    """Calendar slot entry on the deterministic path."""
    title: str
    duration: int = Field(gt=0)
    resource: str
    type: TaskType


class AITask(CamelModel):
    """One activity from a model-produced weekly plan."""
    topic: str = ""
    activity: str = ""
    resource: str = ""
    duration: int = Field(default=30, gt=0)
    type: TaskType = "study"


class WeekPlan(CamelModel):
    """One week of the calendar.

    The deterministic path fills at most one task per slot; the AI path fills
    ``days`` keyed by lower-case day name instead.
    """
    week: int = Field(ge=1)
    date_range: str = ""
    focus: str = ""
    monday: Optional[WeekTask] = None
    wednesday: Optional[WeekTask] = None
    friday: Optional[WeekTask] = None
    weekend: Optional[WeekTask] = None
    days: dict[str, list[AITask]] = Field(default_factory=dict)


class RefinementRequest(CamelModel):
    """Free-text feedback driving a refinement."""
    goals: str = ""
    strongest_topics: list[str] = Field(default_factory=list)
    weakest_topics: list[str] = Field(default_factory=list)
    stress_level: StressLevel = "medium"
    preferred_techniques: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_disjoint_topics(self) -> "RefinementRequest":
        """A topic cannot be flagged strong and weak at once."""
        overlap = set(self.strongest_topics) & set(self.weakest_topics)
        if overlap:
            raise ValueError(f"topics flagged both strong and weak: {sorted(overlap)}")
        return self


class RefinementRecord(CamelModel):
    """Audit entry appended to a plan each time it is refined."""
    date: dt.datetime
    changes: str
    strong_topics: list[str] = Field(default_factory=list)
    weak_topics: list[str] = Field(default_factory=list)


class StudyPlan(CamelModel):
    """Course metadata, topics and progress, plus optional AI-derived fields."""
    id: int = 1  # placeholder until persisted
    user_id: Optional[int] = None
    course_name: str = Field(min_length=1)
    exam_date: dt.date
    weekly_study_time: float = Field(gt=0)
    study_preference: SessionType
    learning_style: Optional[LearningStyle] = None
    study_materials: list[StudyMaterial] = Field(default_factory=list)
    topics: list[Topic] = Field(min_length=1)
    topics_progress: dict[str, int] = Field(default_factory=dict)
    resources: list[Resource] = Field(default_factory=list)
    selected_schedule: int = 1
    created_at: dt.date

    # AI-derived
    summary: Optional[str] = None
    final_week_strategy: Optional[str] = None
    recommendations: list[str] = Field(default_factory=list)
    refinement_history: list[RefinementRecord] = Field(default_factory=list)

    @field_validator("topics_progress")
    @classmethod
    def clamp_progress(cls, v: dict[str, int]) -> dict[str, int]:
        """Progress values must lie in [0, 100]."""
        for title, value in v.items():
            if not 0 <= value <= 100:
                raise ValueError(f"progress for {title!r} out of range: {value}")
        return v

    @model_validator(mode="after")
    def check_progress_keys(self) -> "StudyPlan":
        """Progress map keys must be exactly the topic titles."""
        titles = {t.title for t in self.topics}
        if set(self.topics_progress) != titles:
            raise ValueError("topicsProgress keys must match topic titles")
        return self


class GeneratedPlan(CamelModel):
    """A plan together with its calendar and tasks, as returned to callers."""
    study_plan: StudyPlan
    calendar_weeks: list[WeekPlan] = Field(default_factory=list)
    weekly_tasks: list[Task] = Field(default_factory=list)

    # None: no AI path attempted; True: AI output used; False: AI failed, fallback returned
    partial_success: Optional[bool] = None
    error: Optional[str] = None
