"""Validation of plan requests before any schedule is computed.

Configuration problems block generation entirely; nothing is stepped
until the request passes every check.
"""

import logging
from decimal import Decimal

from taper_planner.catalogue.entries import (
    Catalogue,
    CatalogueError,
    Formulation,
    Medicine,
)
from taper_planner.catalogue.validators import ValidationResult
from taper_planner.compute.capture import CaptureError, split_quantity
from taper_planner.models import Phase, PlanRequest, Splitting

logger = logging.getLogger(__name__)


class PlanConfigurationError(ValueError):
    """Raised when a plan cannot be generated from the supplied inputs.

    Attributes:
        errors: Individual problems found.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


def _phase_errors(label: str, phase: Phase) -> list[str]:
    errors = []
    if phase.percent is None or not (Decimal("0") < phase.percent <= Decimal("100")):
        errors.append(f"{label} percent must be greater than 0 and at most 100")
    if phase.interval_days is None or phase.interval_days < 1:
        errors.append(f"{label} interval must be at least 1 day")
    return errors


def validate_phases(request: PlanRequest) -> ValidationResult:
    """Check phase percentages, intervals and dates.

    Phase 2 is optional but, once any of its fields is given, needs all of
    percent, interval and a start date after the plan start.
    """
    errors = _phase_errors("Phase 1", request.phase1)

    phase2 = request.phase2
    if phase2 is not None and (
        phase2.percent is not None
        or phase2.interval_days is not None
        or phase2.start_date is not None
    ):
        errors.extend(_phase_errors("Phase 2", phase2))
        if phase2.start_date is None:
            errors.append("Phase 2 requires a start date")
        elif phase2.start_date <= request.start_date:
            errors.append("Phase 2 must start after the plan start date")

    if request.review_date is not None and request.review_date <= request.start_date:
        errors.append("Review date must be after the plan start date")

    return ValidationResult.from_errors(errors, "Phases valid")


def validate_patch_interval(request: PlanRequest, medicine: Medicine) -> ValidationResult:
    """Patch reductions must land on patch-change days."""
    if not medicine.is_patch:
        return ValidationResult(is_valid=True, message="Not a patch")

    cycle = medicine.patch_interval_days
    errors = []
    for label, phase in (("Phase 1", request.phase1), ("Phase 2", request.phase2)):
        if phase is None or phase.interval_days is None:
            continue
        if phase.interval_days % cycle:
            errors.append(
                f"{label} interval for {medicine.name} patches must be a "
                f"multiple of {cycle} days"
            )
    return ValidationResult.from_errors(errors, "Patch intervals valid")


def validate_dose_lines(
    request: PlanRequest, formulation: Formulation, splitting: Splitting
) -> ValidationResult:
    """Check the captured regimen against the catalogue form.

    Every strength must exist for the form, every quantity must be
    dispensable under the splitting rules, selected strengths must belong
    to the form, and at least one line must carry a dose.
    """
    errors = []
    strengths = set(formulation.strengths)

    if not any(line.quantity > 0 for line in request.dose_lines):
        errors.append("Add at least one dose line")

    for index, line in enumerate(request.dose_lines, start=1):
        if line.strength not in strengths:
            errors.append(
                f"Line {index}: {line.strength} is not available as {formulation.form}"
            )
            continue
        if line.quantity < 0:
            errors.append(f"Line {index}: quantity cannot be negative")
            continue
        try:
            split_quantity(line.strength, line.quantity, splitting)
        except CaptureError as e:
            errors.append(f"Line {index}: {e}")

    unknown = sorted(request.selected_strengths - strengths)
    if unknown:
        errors.append(
            f"Selected strengths not available as {formulation.form}: "
            f"{', '.join(str(s) for s in unknown)}"
        )

    return ValidationResult.from_errors(errors, "Dose lines valid")


def validate_request(request: PlanRequest, catalogue: Catalogue) -> None:
    """Run every check and raise if any fails.

    Raises:
        PlanConfigurationError: With every problem found.
    """
    try:
        medicine = catalogue.medicine(request.medicine_class, request.medicine_key)
        formulation = medicine.formulation(request.form)
    except CatalogueError as e:
        raise PlanConfigurationError(str(e)) from e

    splitting = catalogue.splitting_for(medicine, formulation)
    results = [
        validate_phases(request),
        validate_patch_interval(request, medicine),
        validate_dose_lines(request, formulation, splitting),
    ]
    errors = [error for result in results for error in result.errors]
    if errors:
        logger.info(f"Plan request for {medicine.name} rejected: {errors}")
        raise PlanConfigurationError("; ".join(errors), errors)
