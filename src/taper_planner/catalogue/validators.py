"""Schema validation for catalogue data files."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import polars as pl

from taper_planner.models import MedicineClass, Splitting, StrategyKind

logger = logging.getLogger(__name__)

REQUIRED_CATALOGUE_COLUMNS = {
    "medicine_class",
    "medicine_key",
    "medicine_name",
    "form",
    "strength",
}

DECIMAL_COLUMNS = ("strength", "rounding_step", "patch_grid", "collapse_strength")


@dataclass
class ValidationResult:
    """Outcome of a validation check.

    Attributes:
        is_valid: Whether the input passed.
        message: Summary suitable for display.
        errors: Individual problems found.
    """

    is_valid: bool
    message: str
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[str], ok_message: str) -> "ValidationResult":
        if errors:
            return cls(is_valid=False, message="; ".join(errors), errors=errors)
        return cls(is_valid=True, message=ok_message)


def _is_blank(value: object) -> bool:
    return value is None or str(value).strip() == ""


def validate_catalogue_schema(df: pl.DataFrame) -> ValidationResult:
    """Validate a catalogue DataFrame before it is turned into a Catalogue.

    Checks required columns, blank required values, known enum values and
    that magnitude columns hold positive decimals.

    Args:
        df: Catalogue rows, one per (medicine, form, strength).

    Returns:
        ValidationResult with every problem found.
    """
    missing = REQUIRED_CATALOGUE_COLUMNS - set(df.columns)
    if missing:
        return ValidationResult(
            is_valid=False,
            message=f"Missing required columns: {sorted(missing)}",
            errors=[f"missing column {name}" for name in sorted(missing)],
        )

    if df.height == 0:
        return ValidationResult(is_valid=False, message="Catalogue is empty")

    known_classes = {c.value for c in MedicineClass}
    known_splitting = {s.value for s in Splitting}
    known_strategies = {s.value for s in StrategyKind}
    errors: list[str] = []

    for index, row in enumerate(df.iter_rows(named=True), start=1):
        for column in REQUIRED_CATALOGUE_COLUMNS:
            if _is_blank(row.get(column)):
                errors.append(f"row {index}: {column} is blank")

        medicine_class = str(row.get("medicine_class") or "").strip().upper()
        if medicine_class and medicine_class not in known_classes:
            errors.append(f"row {index}: unknown class '{medicine_class}'")

        for column, allowed in (
            ("form_splitting", known_splitting),
            ("medicine_splitting", known_splitting),
            ("strategy", known_strategies),
        ):
            value = row.get(column)
            if not _is_blank(value) and str(value).strip().upper() not in allowed:
                errors.append(f"row {index}: unknown {column} '{value}'")

        for column in DECIMAL_COLUMNS:
            value = row.get(column)
            if _is_blank(value):
                continue
            try:
                magnitude = Decimal(str(value).strip())
            except InvalidOperation:
                errors.append(f"row {index}: {column} '{value}' is not a number")
                continue
            if not magnitude.is_finite() or magnitude <= 0:
                errors.append(f"row {index}: {column} must be > 0")

        interval = row.get("patch_interval_days")
        if not _is_blank(interval) and not str(interval).strip().isdigit():
            errors.append(f"row {index}: patch_interval_days must be a whole number")

    result = ValidationResult.from_errors(
        errors, f"Catalogue valid: {df.height} strength rows"
    )
    if not result.is_valid:
        logger.warning(f"Catalogue validation failed with {len(errors)} errors")
    return result
