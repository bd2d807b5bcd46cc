"""Composition engine: realise a milligram target from dispensable pieces.

Given a target amount and the unit pieces that may be dispensed (whole,
half or quarter tablets of the selected strengths), find a multiset of
pieces that adds up to the target exactly. When no exact decomposition
exists the target is lowered one grid step at a time; the engine never
rounds up.
"""

import logging
from decimal import ROUND_FLOOR, Decimal
from functools import reduce
from math import gcd

from taper_planner.models import Splitting, UnitPiece

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

Composition = dict[UnitPiece, int]


def allowed_pieces(
    strengths: tuple[Decimal, ...],
    splitting: Splitting,
    selected: frozenset[Decimal] = frozenset(),
) -> tuple[UnitPiece, ...]:
    """Build the set of pieces that may be dispensed.

    Args:
        strengths: Commercial strengths of the current form.
        splitting: Splitting permission for the medicine/form.
        selected: Strengths the clinician restricted dispensing to; empty
            means every strength is eligible.

    Returns:
        Pieces ordered largest first. Where two pieces deliver the same
        amount (half of 10 mg and a whole 5 mg) only the larger fraction
        is kept.
    """
    pool = [s for s in strengths if not selected or s in selected]
    by_amount: dict[Decimal, UnitPiece] = {}
    for strength in pool:
        for fraction in splitting.fractions:
            piece = UnitPiece(strength, fraction)
            incumbent = by_amount.get(piece.mg)
            if incumbent is None or piece.fraction > incumbent.fraction:
                by_amount[piece.mg] = piece
    return tuple(sorted(by_amount.values(), key=lambda p: p.mg, reverse=True))


def lowest_step(
    pieces: tuple[UnitPiece, ...], fixed_step: Decimal | None = None
) -> Decimal:
    """Smallest dose increment for a class.

    A fixed clinical increment wins when configured; otherwise the
    smallest dispensable piece sets the grid.
    """
    if fixed_step is not None:
        return fixed_step
    if not pieces:
        raise ValueError("No dispensable pieces to derive a step from")
    return min(piece.mg for piece in pieces)


def common_step(pieces: tuple[UnitPiece, ...]) -> Decimal:
    """Greatest common divisor of piece amounts.

    Amounts are scaled to integers (hundredths, or finer when a half or
    quarter piece needs it) before taking the GCD, so 7.5 mg with a 3.75 mg
    strength and its 1.875 mg half gives a 1.875 mg grid.
    """
    if not pieces:
        raise ValueError("No dispensable pieces to derive a step from")
    places = max(2, *(-piece.mg.normalize().as_tuple().exponent for piece in pieces))
    scale = Decimal(10) ** places
    scaled = [int(piece.mg * scale) for piece in pieces]
    return Decimal(reduce(gcd, scaled)) / scale


def floor_to_grid(value: Decimal, step: Decimal) -> Decimal:
    """Largest multiple of ``step`` not above ``value``."""
    return (value / step).to_integral_value(rounding=ROUND_FLOOR) * step


def grid_neighbours(value: Decimal, step: Decimal) -> tuple[Decimal, Decimal]:
    """Grid values either side of ``value`` (equal when it sits on the grid)."""
    lower = floor_to_grid(value, step)
    if lower == value:
        return lower, lower
    return lower, lower + step


def decompose(target: Decimal, pieces: tuple[UnitPiece, ...]) -> Composition | None:
    """Exact greedy decomposition, largest piece first.

    Returns:
        Piece counts summing exactly to ``target``, or None.
    """
    remainder = target
    counts: Composition = {}
    for piece in pieces:
        if remainder <= ZERO:
            break
        count = int((remainder / piece.mg).to_integral_value(rounding=ROUND_FLOOR))
        if count > 0:
            counts[piece] = count
            remainder -= piece.mg * count
    if remainder == ZERO:
        return counts
    return None


def compose(
    target: Decimal, pieces: tuple[UnitPiece, ...], step: Decimal
) -> Composition:
    """Compose ``target`` from ``pieces``, retargeting downwards on failure.

    Args:
        target: Amount wanted for one slot.
        pieces: Dispensable pieces, largest first.
        step: Decrement applied when the target cannot be met exactly.

    Returns:
        Piece counts summing to ``target`` or to the first lower value
        ``target - k * step`` that can be met. Empty when nothing can be
        composed (no pieces, or zero reached).
    """
    if step <= ZERO:
        raise ValueError(f"step must be > 0 (got {step})")
    if not pieces:
        logger.warning(f"No dispensable pieces; cannot represent {target}")
        return {}

    candidate = target
    while candidate > ZERO:
        counts = decompose(candidate, pieces)
        if counts is not None:
            if candidate != target:
                logger.debug(f"Composed {candidate} in place of {target}")
            return counts
        candidate -= step

    logger.debug(f"No composition at or below {target}")
    return {}


def composition_total(counts: Composition) -> Decimal:
    return sum((piece.mg * count for piece, count in counts.items()), ZERO)


def piece_count(counts: Composition) -> int:
    return sum(counts.values())
