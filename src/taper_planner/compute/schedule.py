"""Schedule orchestrator: drive class strategies across calendar dates.

The orchestrator is the only stateful part of plan generation. Its state
machine lives in a local variable for one call; nothing carries over to
the next plan.

States:
    PHASE1_ACTIVE -> PHASE2_ACTIVE (once a boundary reaches the Phase 2
    start date; irreversible) -> FORCED_SINGLE_SIDED (one night-only hold
    before stopping) -> STOPPED | REVIEW_SCHEDULED
"""

import logging
from datetime import date, timedelta
from enum import Enum

from taper_planner.catalogue import DEFAULT_CATALOGUE, Catalogue
from taper_planner.compute.capture import capture_regimen
from taper_planner.compute.context import build_context
from taper_planner.compute.strategies import get_strategy
from taper_planner.models import (
    Phase,
    PlanRequest,
    Step,
    StepKind,
    TaperPlan,
    TerminationState,
)
from taper_planner.validation import PlanConfigurationError, validate_request

logger = logging.getLogger(__name__)

# Absolute cap on plan length unless a review date comes first
PLAN_CAP_DAYS = 90

# Hard ceiling on boundaries, independent of date logic
MAX_BOUNDARIES = 100


class PlanState(str, Enum):
    """Orchestrator state between boundaries."""

    PHASE1_ACTIVE = "PHASE1_ACTIVE"
    PHASE2_ACTIVE = "PHASE2_ACTIVE"
    FORCED_SINGLE_SIDED = "FORCED_SINGLE_SIDED"
    STOPPED = "STOPPED"
    REVIEW_SCHEDULED = "REVIEW_SCHEDULED"


def _phase2_due(phase2: Phase | None, boundary: date) -> bool:
    return (
        phase2 is not None
        and phase2.is_configured
        and phase2.start_date is not None
        and boundary >= phase2.start_date
    )


def _review_due(
    boundary: date, review_date: date | None, cap_date: date
) -> date | None:
    """Date of the review hand-off if this boundary reaches it."""
    due = [
        limit
        for limit in (review_date, cap_date)
        if limit is not None and boundary >= limit
    ]
    return min(due) if due else None


def _add_phase2_notices(plan: TaperPlan, request: PlanRequest) -> None:
    phase2 = request.phase2
    if phase2 is None or not phase2.is_configured or phase2.start_date is None:
        return
    if plan.phase2_start is None:
        plan.notices.append(
            f"Phase 2 (from {phase2.start_date.isoformat()}) was not reached "
            "before the plan ended"
        )
    elif plan.phase2_start != phase2.start_date:
        plan.notices.append(
            f"Phase 2 start moved from {phase2.start_date.isoformat()} to "
            f"{plan.phase2_start.isoformat()} to fall on a reduction day"
        )


def generate_plan(
    request: PlanRequest,
    catalogue: Catalogue = DEFAULT_CATALOGUE,
    *,
    cap_days: int = PLAN_CAP_DAYS,
    max_boundaries: int = MAX_BOUNDARIES,
) -> TaperPlan:
    """Generate a taper plan.

    The first reduction applies on the plan start date. At each boundary
    the checks run in priority order: review date or absolute cap, pending
    stop after a single-sided hold, Phase 2 activation, the strategy's own
    termination state, and finally the reduction itself (stopping when it
    reaches zero).

    Args:
        request: Plan request; validated before anything is computed.
        catalogue: Catalogue to resolve the medicine against.
        cap_days: Absolute plan length from the start date.
        max_boundaries: Hard ceiling on boundaries processed.

    Returns:
        TaperPlan with steps in strictly increasing date order, ending in a
        Stop or Review step.

    Raises:
        PlanConfigurationError: If the request cannot be planned.
    """
    validate_request(request, catalogue)
    context = build_context(catalogue, request)
    strategy = get_strategy(context.kind)

    regimen = capture_regimen(request.dose_lines, context)
    if regimen.is_empty:
        raise PlanConfigurationError("The starting regimen has no dose to reduce")

    plan = TaperPlan(medicine_name=context.medicine.name, form=context.formulation.form)
    cap_date = request.start_date + timedelta(days=cap_days)
    state = PlanState.PHASE1_ACTIVE
    phase, phase_number = request.phase1, 1
    boundary = request.start_date

    logger.info(
        f"Generating {context.medicine.name} plan from {request.start_date} "
        f"(start total {regimen.total()}, strategy {context.kind.value})"
    )

    for _ in range(max_boundaries):
        review_on = _review_due(boundary, request.review_date, cap_date)
        if review_on is not None:
            plan.steps.append(Step(date=review_on, kind=StepKind.REVIEW, phase=phase_number))
            state = PlanState.REVIEW_SCHEDULED
            break

        if state is PlanState.FORCED_SINGLE_SIDED:
            plan.steps.append(Step(date=boundary, kind=StepKind.STOP, phase=phase_number))
            state = PlanState.STOPPED
            break

        if state is PlanState.PHASE1_ACTIVE and _phase2_due(request.phase2, boundary):
            state = PlanState.PHASE2_ACTIVE
            phase, phase_number = request.phase2, 2
            plan.phase2_start = boundary
            logger.info(f"Phase 2 active from {boundary}")

        termination = strategy.termination_state(regimen, context)
        if termination is TerminationState.REVIEW:
            plan.steps.append(Step(date=boundary, kind=StepKind.REVIEW, phase=phase_number))
            state = PlanState.REVIEW_SCHEDULED
            break
        if termination is TerminationState.STOP:
            plan.steps.append(Step(date=boundary, kind=StepKind.STOP, phase=phase_number))
            state = PlanState.STOPPED
            break

        if termination is TerminationState.SINGLE_SIDED:
            regimen = strategy.single_sided(context)
            state = PlanState.FORCED_SINGLE_SIDED
        else:
            regimen = strategy.reduce(regimen, phase.percent, context)
            if regimen.is_empty:
                if strategy.exhausted_state(context) is TerminationState.REVIEW:
                    kind, state = StepKind.REVIEW, PlanState.REVIEW_SCHEDULED
                else:
                    kind, state = StepKind.STOP, PlanState.STOPPED
                plan.steps.append(Step(date=boundary, kind=kind, phase=phase_number))
                break

        plan.steps.append(
            Step(date=boundary, kind=StepKind.DOSE, regimen=regimen, phase=phase_number)
        )
        logger.debug(f"{boundary}: {regimen.total()} (phase {phase_number})")
        boundary += timedelta(days=phase.interval_days)
    else:
        logger.warning(
            f"Boundary ceiling ({max_boundaries}) reached for "
            f"{context.medicine.name}; handing off to review"
        )
        plan.steps.append(Step(date=boundary, kind=StepKind.REVIEW, phase=phase_number))
        state = PlanState.REVIEW_SCHEDULED

    _add_phase2_notices(plan, request)
    logger.info(
        f"{context.medicine.name} plan: {len(plan.dose_steps)} dose steps, "
        f"ended {state.value}"
    )
    return plan
