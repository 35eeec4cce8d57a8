"""
Top-level plan generation and refinement.

Each request runs as a small state machine:

    start -> baseline_built -> ai_requested -> ai_parsed -> validated -> done
                                    |
                                    +-> ai_failed -> fallback -> done

The deterministic baseline is always built first; any timeout, service
error, cancellation or unusable reply on the AI path falls back to it (or,
when refining, to the prior plan). Only InvalidInput reaches the caller.
"""
import asyncio
import datetime as dt
import logging
import os
import random
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from study_planner.models.ai_response import GenerationRequest
from study_planner.models.plan import GeneratedPlan, PlanInputs, RefinementRecord, RefinementRequest
from study_planner.tools.errors import ExternalServiceError, InvalidInput
from study_planner.tools.llm_client import TextGenerator, default_model
from study_planner.tools.plan_store import PlanRepository
from study_planner.tools.plan_validate import PLAN_REJECTED, merge_with_baseline
from study_planner.tools.progress_extract import apply_note_to_topics
from study_planner.tools.prompts import compose_generation_messages, compose_refinement_messages
from study_planner.tools.resource_classify import classify_resources
from study_planner.tools.response_parse import parse_ai_response
from study_planner.tools.rule_engine import derive_study_rules
from study_planner.tools.study_plan import build_baseline_plan
from study_planner.tools.study_tips import generate_study_tips, offline_refinement_tips

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20.0

GENERATION_TEMPERATURE = 0.6
GENERATION_MAX_TOKENS = 3000
REFINEMENT_TEMPERATURE = 0.7
REFINEMENT_MAX_TOKENS = 4000


class Stage(str, Enum):
    START = "start"
    BASELINE_BUILT = "baseline_built"
    AI_REQUESTED = "ai_requested"
    AI_PARSED = "ai_parsed"
    VALIDATED = "validated"
    AI_FAILED = "ai_failed"
    FALLBACK = "fallback"
    DONE = "done"


def _stage(stage: Stage, detail: str = "") -> None:
    logger.info(f"[{stage.value}] {detail}".rstrip())


def _validate_inputs(inputs: Union[PlanInputs, dict]) -> PlanInputs:
    if isinstance(inputs, PlanInputs):
        return inputs
    try:
        return PlanInputs.model_validate(inputs)
    except ValidationError as e:
        raise InvalidInput(f"Invalid plan inputs: {e}") from e


def _validate_request(request: Union[RefinementRequest, dict]) -> RefinementRequest:
    if isinstance(request, RefinementRequest):
        return request
    try:
        return RefinementRequest.model_validate(request)
    except ValidationError as e:
        raise InvalidInput(f"Invalid refinement request: {e}") from e


def _validate_plan(plan: Union[GeneratedPlan, dict]) -> GeneratedPlan:
    if isinstance(plan, GeneratedPlan):
        return plan
    try:
        return GeneratedPlan.model_validate(plan)
    except ValidationError as e:
        raise InvalidInput(f"Invalid plan: {e}") from e


class StudyPlanEngine:
    """
    Generates and refines study plans.

    Args:
        generator: Text generator for the AI path; None runs offline
        repository: Optional plan store; generation saves, refinement appends history
        rng: Seeded random source for tie-breaking and tip shuffling
        timeout: Seconds before the external call is abandoned
            (default: PLANNER_AI_TIMEOUT or 20)
        model: Model identifier (default: CHAT_MODEL or gemini-2.5-flash)
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        repository: Optional[PlanRepository] = None,
        rng: Optional[random.Random] = None,
        timeout: Optional[float] = None,
        model: Optional[str] = None,
    ):
        self.generator = generator
        self.repository = repository
        self.rng = rng
        if timeout is None:
            timeout = float(os.getenv("PLANNER_AI_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
        self.timeout = timeout
        self.model = model or default_model()

    async def generate_study_plan(
        self,
        inputs: Union[PlanInputs, dict],
        today: Optional[dt.date] = None,
    ) -> GeneratedPlan:
        """
        Build a plan from scratch.

        Raises:
            InvalidInput: inputs fail validation (bad date, no topics, ...)
        """
        today = today or dt.date.today()
        inputs = _validate_inputs(inputs)
        _stage(Stage.START, f"generate {inputs.course_name!r}")

        inputs = inputs.model_copy(update={"resources": classify_resources(inputs.resources)})
        if inputs.progress_note:
            inputs = inputs.model_copy(update={"topics": apply_note_to_topics(inputs.topics, inputs.progress_note)})

        rules = derive_study_rules(inputs, today)
        plan_id = self.repository.next_id() if self.repository is not None else 1
        baseline = build_baseline_plan(inputs, rules, today, plan_id=plan_id, rng=self.rng)
        _stage(Stage.BASELINE_BUILT, f"{len(baseline.calendar_weeks)} weeks, {len(baseline.weekly_tasks)} tasks")

        if self.generator is None:
            baseline.study_plan.recommendations = generate_study_tips(inputs, self.rng)
            plan = baseline
        else:
            request = GenerationRequest(
                model=self.model,
                messages=compose_generation_messages(inputs, rules),
                temperature=GENERATION_TEMPERATURE,
                max_output_tokens=GENERATION_MAX_TOKENS,
            )
            plan, error = await self._ai_path(request, baseline, today)
            if error:
                _stage(Stage.FALLBACK, "returning baseline plan")
                plan = baseline.model_copy(deep=True)
                plan.study_plan.recommendations = generate_study_tips(inputs, self.rng)
                plan.partial_success = False
                plan.error = error
            else:
                plan.partial_success = True

        if self.repository is not None:
            self.repository.save(plan)
        _stage(Stage.DONE, f"plan {plan.study_plan.id}, partial_success={plan.partial_success}")
        return plan

    async def refine_plan(
        self,
        current: Union[GeneratedPlan, dict],
        request: Union[RefinementRequest, dict],
        today: Optional[dt.date] = None,
    ) -> GeneratedPlan:
        """
        Produce a refined snapshot of ``current``.

        The prior plan is never mutated. On AI failure it is returned as a
        copy flagged with partial_success=False and the error message.

        Raises:
            InvalidInput: plan or request fail validation
        """
        today = today or dt.date.today()
        current = _validate_plan(current)
        request = _validate_request(request)
        plan_id = current.study_plan.id
        _stage(Stage.START, f"refine plan {plan_id}")

        # The prior plan is the baseline every repair falls back on
        baseline = current.model_copy(deep=True)
        baseline.partial_success = None
        baseline.error = None
        _stage(Stage.BASELINE_BUILT, "prior plan")

        if self.generator is None:
            refined = baseline
            refined.study_plan.recommendations = offline_refinement_tips(current, request, today)
        else:
            ai_request = GenerationRequest(
                model=self.model,
                messages=compose_refinement_messages(current, request, today),
                temperature=REFINEMENT_TEMPERATURE,
                max_output_tokens=REFINEMENT_MAX_TOKENS,
            )
            refined, error = await self._ai_path(ai_request, baseline, today)
            if error:
                _stage(Stage.FALLBACK, "returning prior plan")
                fallback = current.model_copy(deep=True)
                fallback.partial_success = False
                fallback.error = error
                _stage(Stage.DONE, f"plan {plan_id}, partial_success=False")
                return fallback
            refined.partial_success = True

        refined.study_plan.refinement_history.append(RefinementRecord(
            date=dt.datetime.now(dt.timezone.utc),
            changes=request.goals or "Plan refinement",
            strong_topics=list(request.strongest_topics),
            weak_topics=list(request.weakest_topics),
        ))

        if self.repository is not None:
            self.repository.append_history(plan_id, refined)
            self.repository.save(refined)
        _stage(Stage.DONE, f"plan {plan_id}, partial_success={refined.partial_success}")
        return refined

    async def _ai_path(
        self,
        request: GenerationRequest,
        baseline: GeneratedPlan,
        today: dt.date,
    ) -> tuple[Optional[GeneratedPlan], Optional[str]]:
        """Request, parse and validate. Returns (plan, error); the baseline is never mutated."""
        _stage(Stage.AI_REQUESTED, request.model)
        text, error = await self._request_completion(request)
        if error:
            _stage(Stage.AI_FAILED, error)
            return None, error

        parsed = parse_ai_response(text)
        _stage(Stage.AI_PARSED, parsed.kind)
        if parsed.kind == "empty":
            error = "Model reply contained no usable plan"
            _stage(Stage.AI_FAILED, error)
            return None, error

        plan, repairs = merge_with_baseline(parsed, baseline, today)
        if PLAN_REJECTED in repairs:
            error = "Model plan failed structural validation"
            _stage(Stage.AI_FAILED, error)
            return None, error

        _stage(Stage.VALIDATED, f"{len(repairs)} field(s) repaired from baseline")
        return plan, None

    async def _request_completion(self, request: GenerationRequest) -> tuple[Optional[str], Optional[str]]:
        """Call the generator under the timeout. Returns (text, error)."""
        try:
            response = await asyncio.wait_for(self.generator.generate(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Text generator timed out after {self.timeout:g}s")
            return None, f"Generation timed out after {self.timeout:g}s"
        except ExternalServiceError as e:
            logger.error(f"Text generator failed (status {e.status_code}): {e}")
            return None, str(e)
        except asyncio.CancelledError:
            # Only absorb cancellation of the external call, not of this task
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.error("Text generator call was cancelled")
            return None, "Generation was cancelled"
        except Exception as e:
            logger.error(f"Text generator raised {type(e).__name__}: {e}")
            return None, f"Generation failed: {e}"

        logger.debug(response.text)
        return response.text, None


async def generate_study_plan(
    inputs: Union[PlanInputs, dict],
    today: Optional[dt.date] = None,
    generator: Optional[TextGenerator] = None,
    repository: Optional[PlanRepository] = None,
    rng: Optional[random.Random] = None,
) -> GeneratedPlan:
    """Generate a plan with a one-off engine. See StudyPlanEngine.generate_study_plan."""
    engine = StudyPlanEngine(generator=generator, repository=repository, rng=rng)
    return await engine.generate_study_plan(inputs, today=today)


async def refine_plan(
    current: Union[GeneratedPlan, dict],
    request: Union[RefinementRequest, dict],
    today: Optional[dt.date] = None,
    generator: Optional[TextGenerator] = None,
    repository: Optional[PlanRepository] = None,
    rng: Optional[random.Random] = None,
) -> GeneratedPlan:
    """Refine a plan with a one-off engine. See StudyPlanEngine.refine_plan."""
    engine = StudyPlanEngine(generator=generator, repository=repository, rng=rng)
    return await engine.refine_plan(current, request, today=today)
