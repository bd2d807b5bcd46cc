"""Per-plan dosing context shared by the composition engine and strategies."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from taper_planner.catalogue.entries import Catalogue, Formulation, Medicine
from taper_planner.compute.composition import (
    allowed_pieces,
    common_step,
    compose,
    lowest_step,
)
from taper_planner.models import (
    DEFAULT_SLOT_ORDER,
    MedicineClass,
    PlanRequest,
    Slot,
    Splitting,
    StrategyKind,
    UnitPiece,
)

logger = logging.getLogger(__name__)


def resolve_strategy(medicine: Medicine, formulation: Formulation) -> StrategyKind:
    """Map a medicine/form onto the reduction strategy that governs it."""
    if medicine.strategy is not None:
        return medicine.strategy
    if medicine.medicine_class is MedicineClass.BZRA:
        return StrategyKind.NIGHT_ONLY
    if medicine.medicine_class is MedicineClass.PPI:
        return StrategyKind.ACID_SUPPRESSANT
    if medicine.medicine_class is MedicineClass.OPIOID_PATCH:
        return StrategyKind.PATCH
    if medicine.medicine_class is MedicineClass.ANTIPSYCHOTIC:
        if formulation.modified_release:
            return StrategyKind.MULTI_DOSE
        return StrategyKind.SLOT_ORDERED
    return StrategyKind.MULTI_DOSE


@dataclass(frozen=True)
class DoseContext:
    """Everything a strategy needs besides the regimen itself.

    Attributes:
        medicine: Catalogue medicine.
        formulation: Catalogue form in use.
        kind: Strategy governing the medicine/form.
        splitting: Splitting permission in force.
        pieces: Dispensable pieces, largest first.
        step: Grid increment for snapping and composition fallback.
        selected: Strengths the clinician restricted dispensing to.
        slot_order: Clinician slot ordering for slot-ordered reductions.
    """

    medicine: Medicine
    formulation: Formulation
    kind: StrategyKind
    splitting: Splitting
    pieces: tuple[UnitPiece, ...]
    step: Decimal
    selected: frozenset[Decimal] = frozenset()
    slot_order: tuple[Slot, ...] = DEFAULT_SLOT_ORDER

    @property
    def strengths(self) -> tuple[Decimal, ...]:
        """Strengths eligible for dispensing, ascending."""
        if self.selected:
            return tuple(s for s in self.formulation.strengths if s in self.selected)
        return self.formulation.strengths

    @property
    def lowest_selected(self) -> Decimal:
        return min(self.strengths)

    @property
    def lowest_available(self) -> Decimal:
        return self.formulation.lowest_strength

    @property
    def default_slot(self) -> Slot:
        if self.kind is StrategyKind.PATCH:
            return Slot.PATCH
        if self.kind is StrategyKind.NIGHT_ONLY:
            return Slot.NIGHT
        return Slot.MORNING

    def compose(self, target: Decimal) -> dict[UnitPiece, int]:
        return compose(target, self.pieces, self.step)


def build_context(catalogue: Catalogue, request: PlanRequest) -> DoseContext:
    """Resolve the catalogue entries and grid for a plan request.

    Args:
        catalogue: Catalogue to look the medicine up in.
        request: Plan request (medicine, form, selection, slot order).

    Returns:
        DoseContext for the request.
    """
    medicine = catalogue.medicine(request.medicine_class, request.medicine_key)
    formulation = medicine.formulation(request.form)
    kind = resolve_strategy(medicine, formulation)
    splitting = catalogue.splitting_for(medicine, formulation)
    pieces = allowed_pieces(
        formulation.strengths, splitting, request.selected_strengths
    )

    if kind is StrategyKind.NIGHT_ONLY:
        step = common_step(pieces)
    else:
        step = lowest_step(pieces, formulation.rounding_step)

    logger.debug(
        f"Context for {medicine.name} {formulation.form}: strategy={kind.value}, "
        f"splitting={splitting.value}, step={step}, pieces={len(pieces)}"
    )

    return DoseContext(
        medicine=medicine,
        formulation=formulation,
        kind=kind,
        splitting=splitting,
        pieces=pieces,
        step=step,
        selected=request.selected_strengths,
        slot_order=request.slot_order,
    )
