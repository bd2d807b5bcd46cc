"""Patch combination optimizer.

Transdermal doses are built from at most two concurrent patches. At each
boundary the optimizer picks the achievable total closest to the desired
dose without ever exceeding the previous total.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from itertools import combinations_with_replacement

from taper_planner.catalogue.entries import Medicine
from taper_planner.compute.composition import grid_neighbours

logger = logging.getLogger(__name__)

MAX_CONCURRENT_PATCHES = 2

PatchCombo = tuple[Decimal, ...]


@dataclass(frozen=True)
class PatchChoice:
    """Chosen patch total and the patches that make it up.

    Attributes:
        total: Combined strength (mcg/hr).
        combo: Patch strengths applied together, highest first.
    """

    total: Decimal
    combo: PatchCombo

    @property
    def patch_count(self) -> int:
        return len(self.combo)


def _combo_rank(combo: PatchCombo) -> tuple[int, Decimal]:
    # Fewer patches first, then the higher strength
    return len(combo), -max(combo)


def achievable_totals(strengths: tuple[Decimal, ...]) -> dict[Decimal, PatchCombo]:
    """Every total reachable with one or two patches.

    Args:
        strengths: Patch strengths that may be applied.

    Returns:
        Mapping of total to the combination with the fewest patches
        (higher strength on ties).
    """
    ordered = sorted(strengths, reverse=True)
    best: dict[Decimal, PatchCombo] = {}
    for size in range(1, MAX_CONCURRENT_PATCHES + 1):
        for combo in combinations_with_replacement(ordered, size):
            total = sum(combo, Decimal("0"))
            incumbent = best.get(total)
            if incumbent is None or _combo_rank(combo) < _combo_rank(incumbent):
                best[total] = combo
    return best


def desired_total(raw_target: Decimal, medicine: Medicine) -> Decimal:
    """Desired patch total, snapped to the medicine's clinical grid if any.

    Ties on the grid round up.
    """
    if medicine.patch_grid is None:
        return raw_target
    lower, upper = grid_neighbours(raw_target, medicine.patch_grid)
    if raw_target - lower < upper - raw_target:
        return lower
    return upper


def collapse_low_strength(
    combo: PatchCombo,
    medicine: Medicine,
    previous_total: Decimal,
    strengths: tuple[Decimal, ...],
) -> PatchCombo:
    """Merge two of the medicine's low-strength patches into one double.

    Applies only where the medicine defines a collapse strength, the double
    strength is among ``strengths`` and the merged patch does not exceed
    the previous total.
    """
    low = medicine.collapse_strength
    if low is None or combo.count(low) < 2:
        return combo
    double = low * 2
    if double not in strengths or double > previous_total:
        return combo
    remaining = list(combo)
    remaining.remove(low)
    remaining.remove(low)
    return tuple(sorted([*remaining, double], reverse=True))


def choose_patch_total(
    previous_total: Decimal,
    raw_target: Decimal,
    medicine: Medicine,
    strengths: tuple[Decimal, ...] | None = None,
) -> PatchChoice:
    """Pick the next patch total.

    Args:
        previous_total: Total applied at the previous step.
        raw_target: Unrounded target (previous total after the percent cut).
        medicine: Patch medicine (grid and collapse rules).
        strengths: Strengths that may be applied; defaults to every
            catalogue strength of the medicine's first form.

    Returns:
        PatchChoice no greater than ``previous_total``, and strictly lower
        whenever a lower achievable total exists. Empty when nothing fits.
    """
    if strengths is None:
        strengths = medicine.formulations[0].strengths
    options = achievable_totals(strengths)
    candidates = sorted(total for total in options if total <= previous_total)
    if not candidates:
        logger.debug(f"No patch combination at or below {previous_total}")
        return PatchChoice(total=Decimal("0"), combo=())

    desired = desired_total(raw_target, medicine)
    chosen = min(
        candidates,
        key=lambda total: (abs(total - desired), len(options[total]), -total),
    )
    combo = collapse_low_strength(options[chosen], medicine, previous_total, strengths)

    # Visible progress: never hand back the previous total when a lower one exists
    lower = [total for total in candidates if total < previous_total]
    if sum(combo, Decimal("0")) >= previous_total and lower:
        chosen = max(lower)
        combo = collapse_low_strength(
            options[chosen], medicine, previous_total, strengths
        )

    choice = PatchChoice(total=sum(combo, Decimal("0")), combo=combo)
    logger.debug(
        f"{medicine.name} patch: previous={previous_total}, raw={raw_target}, "
        f"desired={desired} -> {choice.total} {list(choice.combo)}"
    )
    return choice
