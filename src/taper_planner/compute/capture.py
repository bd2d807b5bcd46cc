"""Convert captured dose lines into the starting Regimen."""

import logging
from decimal import ROUND_FLOOR, Decimal

from taper_planner.compute.context import DoseContext
from taper_planner.models import (
    FREQUENCY_SLOTS,
    DoseLine,
    Frequency,
    Regimen,
    Slot,
    Splitting,
    StrategyKind,
    UnitPiece,
)

logger = logging.getLogger(__name__)


class CaptureError(ValueError):
    """Raised when a dose line cannot be dispensed as entered."""


def split_quantity(
    strength: Decimal, quantity: Decimal, splitting: Splitting
) -> dict[UnitPiece, int]:
    """Express a (possibly fractional) tablet quantity as pieces.

    1.75 x 10 mg with quarters allowed becomes one whole, one half and one
    quarter piece.

    Raises:
        CaptureError: If the fraction cannot be dispensed under ``splitting``.
    """
    whole = int(quantity.to_integral_value(rounding=ROUND_FLOOR))
    remainder = quantity - whole
    pieces: dict[UnitPiece, int] = {}
    if whole:
        pieces[UnitPiece(strength)] = whole

    for fraction in splitting.fractions[1:]:
        if remainder >= fraction:
            pieces[UnitPiece(strength, fraction)] = 1
            remainder -= fraction

    if remainder != 0:
        raise CaptureError(
            f"{quantity} x {strength} cannot be dispensed "
            f"({splitting.value.lower()} units only)"
        )
    return pieces


def line_slots(line: DoseLine, context: DoseContext) -> tuple[Slot, ...]:
    """Slots a dose line places its dose into."""
    if context.kind is StrategyKind.PATCH:
        return (Slot.PATCH,)
    if line.frequency is Frequency.OD:
        return (line.slot or context.default_slot,)
    return FREQUENCY_SLOTS[line.frequency]


def capture_regimen(lines: tuple[DoseLine, ...], context: DoseContext) -> Regimen:
    """Build the starting regimen from captured dose lines.

    Night-only classes keep only the night dose; any other slot is dropped.

    Args:
        lines: Captured dose lines.
        context: Dosing context for the medicine/form.

    Returns:
        Starting Regimen (possibly empty).
    """
    slots: dict[Slot, dict[UnitPiece, int]] = {}
    for line in lines:
        if line.quantity <= 0:
            continue
        pieces = split_quantity(line.strength, line.quantity, context.splitting)
        for slot in line_slots(line, context):
            if context.kind is StrategyKind.NIGHT_ONLY and slot is not Slot.NIGHT:
                logger.warning(
                    f"Dropping {slot.value} dose of {context.medicine.name}: "
                    "night-only dosing"
                )
                continue
            bucket = slots.setdefault(slot, {})
            for piece, count in pieces.items():
                bucket[piece] = bucket.get(piece, 0) + count

    regimen = Regimen(slots=slots)
    logger.debug(
        f"Captured regimen for {context.medicine.name}: total {regimen.total()}"
    )
    return regimen
