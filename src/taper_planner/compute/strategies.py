"""Per-class reduction strategies.

Every strategy follows the same skeleton:

1. raw target = current total x (1 - percent / 100)
2. snap the raw target to the class grid (ties round up unless the class
   documents otherwise)
3. progress guard: a snapped target that does not reduce the dose is
   pushed one grid step below the current total
4. take the reduction from slots in the class order and recompose every
   remaining slot from dispensable pieces

Strategies also decide the termination state of a regimen before it is
reduced (single-sided hold, Stop or Review hand-off) and how a plan ends
when a reduction leaves nothing to dispense.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from decimal import Decimal

from taper_planner.compute.composition import (
    decompose,
    floor_to_grid,
    grid_neighbours,
    piece_count,
)
from taper_planner.compute.context import DoseContext
from taper_planner.compute.patches import achievable_totals, choose_patch_total
from taper_planner.models import (
    ORAL_SLOTS,
    Regimen,
    Slot,
    StrategyKind,
    TerminationState,
    UnitPiece,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Lattice bound for three-way splits
MAX_UNITS_PER_SLOT = 4

ACID_SUPPRESSANT_ORDER = (Slot.MIDDAY, Slot.NIGHT, Slot.MORNING, Slot.DINNER)
MULTI_DOSE_SHAVE_ORDER = (Slot.DINNER, Slot.MIDDAY)

# (morning, middle, night) amounts for three-times-daily splits
Split = tuple[Decimal, Decimal, Decimal]
SplitRank = tuple[Decimal, Decimal, int, int, Decimal, Decimal]


def target_total(current: Decimal, percent: Decimal) -> Decimal:
    """Raw (unsnapped) total after a percentage cut."""
    return current * (HUNDRED - percent) / HUNDRED


def snap_nearest(raw: Decimal, step: Decimal) -> Decimal:
    """Nearest grid value, ties rounding up."""
    lower, upper = grid_neighbours(raw, step)
    if raw - lower < upper - raw:
        return lower
    return upper


def guard_progress(snapped: Decimal, current: Decimal, step: Decimal) -> Decimal:
    """Ensure a computed step reduces the dose (or reaches zero)."""
    if snapped < current:
        return max(snapped, ZERO)
    below = floor_to_grid(current, step)
    if below >= current:
        below -= step
    return max(below, ZERO)


def next_total(current: Decimal, percent: Decimal, step: Decimal) -> Decimal:
    """Snap the percentage cut to the grid, ties up, with progress guard."""
    snapped = snap_nearest(target_total(current, percent), step)
    return guard_progress(snapped, current, step)


def slot_amounts(regimen: Regimen) -> dict[Slot, Decimal]:
    return {slot: regimen.slot_total(slot) for slot in ORAL_SLOTS}


def shave(
    amounts: dict[Slot, Decimal], order: tuple[Slot, ...], reduction: Decimal
) -> Decimal:
    """Take ``reduction`` from slots in ``order``, emptying each before the next.

    Updates ``amounts`` in place and returns any reduction left over.
    """
    for slot in order:
        if reduction <= ZERO:
            break
        taken = min(amounts.get(slot, ZERO), reduction)
        amounts[slot] = amounts.get(slot, ZERO) - taken
        reduction -= taken
    return reduction


def recompose(amounts: dict[Slot, Decimal], context: DoseContext) -> Regimen:
    """Compose every non-zero slot amount into dispensable pieces."""
    slots: dict[Slot, dict[UnitPiece, int]] = {}
    for slot, amount in amounts.items():
        if amount > ZERO:
            pieces = context.compose(amount)
            if pieces:
                slots[slot] = pieces
    return Regimen(slots=slots)


def twice_daily_floor_state(regimen: Regimen, context: DoseContext) -> TerminationState:
    """Termination for classes that finish from a twice-daily split.

    One whole unit of the lowest selected strength morning and night is the
    floor. If that strength is also the lowest on the market the plan holds
    a single night dose before stopping; otherwise the remaining gap cannot
    be closed with the chosen products and the plan goes to review.
    """
    floor = {UnitPiece(context.lowest_selected): 1}
    if regimen.active_slots() != [Slot.MORNING, Slot.NIGHT]:
        return TerminationState.DOSE
    if regimen.pieces(Slot.MORNING) != floor or regimen.pieces(Slot.NIGHT) != floor:
        return TerminationState.DOSE
    if context.lowest_selected == context.lowest_available:
        return TerminationState.SINGLE_SIDED
    return TerminationState.REVIEW


def lowest_product_exit(context: DoseContext) -> TerminationState:
    """Stop only when the lowest marketed strength is among those selected."""
    if context.lowest_selected == context.lowest_available:
        return TerminationState.STOP
    return TerminationState.REVIEW


class ReductionStrategy(ABC):
    """Interface shared by every class strategy."""

    kind: StrategyKind

    def termination_state(
        self, regimen: Regimen, context: DoseContext
    ) -> TerminationState:
        """Terminal decision for the current regimen; DOSE means reduce."""
        return TerminationState.DOSE

    def exhausted_state(self, context: DoseContext) -> TerminationState:
        """Terminal step when a reduction leaves nothing to dispense."""
        return TerminationState.STOP

    @abstractmethod
    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        """Next regimen after cutting ``percent`` from ``regimen``."""

    def single_sided(self, context: DoseContext) -> Regimen:
        """Single night dose of the lowest selected strength."""
        return Regimen(slots={Slot.NIGHT: {UnitPiece(context.lowest_selected): 1}})


class MultiDoseStrategy(ReductionStrategy):
    """Oral multi-dose classes (slow-release opioids, pregabalin, MR forms).

    Dinner goes first, then midday; anything left is taken by rebalancing
    morning and night as evenly as the grid allows, night >= morning.
    """

    kind = StrategyKind.MULTI_DOSE

    def termination_state(
        self, regimen: Regimen, context: DoseContext
    ) -> TerminationState:
        return twice_daily_floor_state(regimen, context)

    def exhausted_state(self, context: DoseContext) -> TerminationState:
        return lowest_product_exit(context)

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        target = next_total(current, percent, context.step)
        amounts = slot_amounts(regimen)

        remaining = shave(amounts, MULTI_DOSE_SHAVE_ORDER, current - target)
        if remaining > ZERO:
            pool = amounts[Slot.MORNING] + amounts[Slot.NIGHT] - remaining
            morning = floor_to_grid(pool / 2, context.step)
            amounts[Slot.MORNING] = morning
            amounts[Slot.NIGHT] = pool - morning

        logger.debug(
            f"Multi-dose {context.medicine.name}: {current} -> {target} "
            f"({', '.join(f'{s.value}={a}' for s, a in amounts.items() if a)})"
        )
        return recompose(amounts, context)


class AcidSuppressantStrategy(ReductionStrategy):
    """Proton pump inhibitors: midday, night, morning, then dinner."""

    kind = StrategyKind.ACID_SUPPRESSANT

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        target = next_total(current, percent, context.step)
        amounts = slot_amounts(regimen)
        shave(amounts, ACID_SUPPRESSANT_ORDER, current - target)
        return recompose(amounts, context)


class NightOnlyStrategy(ReductionStrategy):
    """Benzodiazepines and Z-drugs: a single night dose throughout.

    The grid is the common step of every selected strength and its halves.
    Ties between the two neighbouring grid values go to the option needing
    fewer pieces (then up) when a selection is active, and down otherwise.
    """

    kind = StrategyKind.NIGHT_ONLY

    def snap(self, raw: Decimal, context: DoseContext) -> Decimal:
        lower, upper = grid_neighbours(raw, context.step)
        below, above = raw - lower, upper - raw
        if below < above:
            return lower
        if above < below:
            return upper
        if not context.selected:
            return lower
        lower_pieces = piece_count(context.compose(lower))
        upper_pieces = piece_count(context.compose(upper))
        return lower if lower_pieces < upper_pieces else upper

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        snapped = self.snap(target_total(current, percent), context)
        target = guard_progress(snapped, current, context.step)
        logger.debug(f"Night-only {context.medicine.name}: {current} -> {target}")
        return recompose({Slot.NIGHT: target}, context)


class SlotOrderedStrategy(ReductionStrategy):
    """Immediate-release antipsychotics, reduced in the clinician's slot order."""

    kind = StrategyKind.SLOT_ORDERED

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        target = next_total(current, percent, context.step)
        amounts = slot_amounts(regimen)
        shave(amounts, context.slot_order, current - target)
        return recompose(amounts, context)


class GabapentinStrategy(ReductionStrategy):
    """Gabapentin in twice, three or four times daily patterns.

    Four times daily: only dinner is reduced until it is gone. Three times
    daily: search every split of the two neighbouring grid totals with
    night >= morning >= middle and pick the most even one. Twice daily
    follows the multi-dose rules.
    """

    kind = StrategyKind.GABAPENTIN

    def termination_state(
        self, regimen: Regimen, context: DoseContext
    ) -> TerminationState:
        return twice_daily_floor_state(regimen, context)

    def exhausted_state(self, context: DoseContext) -> TerminationState:
        return lowest_product_exit(context)

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        amounts = slot_amounts(regimen)
        raw = target_total(current, percent)

        if all(amounts[slot] > ZERO for slot in ORAL_SLOTS):
            reduction = current - next_total(current, percent, context.step)
            if amounts[Slot.DINNER] >= reduction:
                amounts[Slot.DINNER] -= reduction
                return recompose(amounts, context)
            amounts[Slot.DINNER] = ZERO

        if amounts[Slot.MIDDAY] > ZERO:
            middle = Slot.MIDDAY
        elif amounts[Slot.DINNER] > ZERO:
            middle = Slot.DINNER
        else:
            return MultiDoseStrategy().reduce(regimen, percent, context)

        split = self.best_split(raw, current, context)
        if split is None:
            logger.debug(f"No three-way split below {current}; using multi-dose rules")
            return MultiDoseStrategy().reduce(regimen, percent, context)

        morning, mid, night = split
        return recompose(
            {Slot.MORNING: morning, middle: mid, Slot.NIGHT: night}, context
        )

    def best_split(
        self, raw: Decimal, current: Decimal, context: DoseContext
    ) -> Split | None:
        """Most even (morning, middle, night) split near ``raw``.

        Candidates come from the grid totals either side of ``raw`` that are
        below ``current`` and are ordered by ``split_rank``.
        """
        step = context.step
        totals = {total for total in grid_neighbours(raw, step) if total < current}
        if not totals:
            totals = {guard_progress(current, current, step)}

        best_key: SplitRank | None = None
        best: Split | None = None
        for total in totals:
            for split, pieces in self._splits(total, context):
                key = self.split_rank(split, pieces, raw)
                if best_key is None or key < best_key:
                    best_key, best = key, split
        return best

    @staticmethod
    def split_rank(split: Split, pieces: int, raw: Decimal) -> SplitRank:
        """Sort key for a split; lower is better.

        Ranked by spread, total absolute deviation from the mean, morning
        equal to night, fewest pieces, closeness to ``raw`` and finally the
        higher total.
        """
        morning, _, night = split
        total = sum(split, ZERO)
        return (
            max(split) - min(split),
            sum((abs(3 * amount - total) for amount in split), ZERO),
            0 if morning == night else 1,
            pieces,
            abs(total - raw),
            -total,
        )

    def _splits(
        self, total: Decimal, context: DoseContext
    ) -> Iterator[tuple[Split, int]]:
        """Yield ((morning, middle, night), pieces) on the bounded lattice."""
        step = context.step
        units = int(total / step)
        for mid_units in range(units // 3 + 1):
            for morning_units in range(mid_units, (units - mid_units) // 2 + 1):
                night_units = units - mid_units - morning_units
                split = (morning_units * step, mid_units * step, night_units * step)
                pieces = 0
                for amount in split:
                    if amount == ZERO:
                        continue
                    counts = decompose(amount, context.pieces)
                    if counts is None or piece_count(counts) > MAX_UNITS_PER_SLOT:
                        break
                    pieces += piece_count(counts)
                else:
                    yield split, pieces


class PatchStrategy(ReductionStrategy):
    """Transdermal patches, reduced through the patch optimizer."""

    kind = StrategyKind.PATCH

    def termination_state(
        self, regimen: Regimen, context: DoseContext
    ) -> TerminationState:
        current = regimen.total()
        if any(total < current for total in achievable_totals(context.strengths)):
            return TerminationState.DOSE
        return lowest_product_exit(context)

    def reduce(
        self, regimen: Regimen, percent: Decimal, context: DoseContext
    ) -> Regimen:
        current = regimen.total()
        choice = choose_patch_total(
            current,
            target_total(current, percent),
            context.medicine,
            context.strengths,
        )
        return Regimen.from_patches(choice.combo)


STRATEGIES: dict[StrategyKind, ReductionStrategy] = {
    strategy.kind: strategy
    for strategy in (
        MultiDoseStrategy(),
        AcidSuppressantStrategy(),
        NightOnlyStrategy(),
        SlotOrderedStrategy(),
        GabapentinStrategy(),
        PatchStrategy(),
    )
}

_missing = set(StrategyKind) - set(STRATEGIES)
if _missing:
    raise RuntimeError(f"No reduction strategy for {sorted(k.value for k in _missing)}")


def get_strategy(kind: StrategyKind) -> ReductionStrategy:
    return STRATEGIES[kind]


def reduce_regimen(
    regimen: Regimen, percent: Decimal, context: DoseContext
) -> Regimen:
    """Reduce a regimen with the strategy the context resolves to."""
    return get_strategy(context.kind).reduce(regimen, percent, context)

