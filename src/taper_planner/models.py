"""Data models for the taper planner."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

ONE = Decimal("1")
HALF = Decimal("0.5")
QUARTER = Decimal("0.25")


class Slot(str, Enum):
    """Dosing occasion within a day, or the patch set for transdermal classes."""

    MORNING = "MORNING"
    MIDDAY = "MIDDAY"
    DINNER = "DINNER"
    NIGHT = "NIGHT"
    PATCH = "PATCH"


# Oral slots in chronological order
ORAL_SLOTS = (Slot.MORNING, Slot.MIDDAY, Slot.DINNER, Slot.NIGHT)


class Frequency(str, Enum):
    """Frequency code attached to a captured dose line."""

    OD = "OD"
    BID = "BID"
    TID = "TID"
    QID = "QID"


# Slots a multi-dose frequency code expands into (OD uses the line's own slot)
FREQUENCY_SLOTS: dict[Frequency, tuple[Slot, ...]] = {
    Frequency.BID: (Slot.MORNING, Slot.NIGHT),
    Frequency.TID: (Slot.MORNING, Slot.MIDDAY, Slot.NIGHT),
    Frequency.QID: ORAL_SLOTS,
}


class MedicineClass(str, Enum):
    """Medicine classes supported by the catalogue."""

    BZRA = "BZRA"
    PPI = "PPI"
    OPIOID_SR = "OPIOID_SR"
    OPIOID_PATCH = "OPIOID_PATCH"
    GABAPENTINOID = "GABAPENTINOID"
    ANTIPSYCHOTIC = "ANTIPSYCHOTIC"


class Splitting(str, Enum):
    """How finely a tablet may be split for dispensing."""

    WHOLE = "WHOLE"
    HALF = "HALF"
    QUARTER = "QUARTER"

    @property
    def fractions(self) -> tuple[Decimal, ...]:
        """Permitted piece fractions, largest first.

        Quarters are only ever offered together with halves.
        """
        if self is Splitting.QUARTER:
            return (ONE, HALF, QUARTER)
        if self is Splitting.HALF:
            return (ONE, HALF)
        return (ONE,)


class StrategyKind(str, Enum):
    """Closed set of reduction strategies, one per class policy."""

    MULTI_DOSE = "MULTI_DOSE"
    ACID_SUPPRESSANT = "ACID_SUPPRESSANT"
    NIGHT_ONLY = "NIGHT_ONLY"
    SLOT_ORDERED = "SLOT_ORDERED"
    GABAPENTIN = "GABAPENTIN"
    PATCH = "PATCH"


class StepKind(str, Enum):
    """Kind of row in a generated plan."""

    DOSE = "DOSE"
    STOP = "STOP"
    REVIEW = "REVIEW"


class TerminationState(str, Enum):
    """What the next boundary must produce for the current regimen."""

    DOSE = "DOSE"
    SINGLE_SIDED = "SINGLE_SIDED"
    STOP = "STOP"
    REVIEW = "REVIEW"


def format_amount(value: Decimal) -> str:
    """Render a Decimal magnitude without exponent or trailing zeros."""
    return f"{value.normalize():f}"


@dataclass(frozen=True)
class UnitPiece:
    """A whole, half or quarter portion of one product strength.

    Attributes:
        strength: Product strength (mg, or mcg/hr for patches).
        fraction: Portion of the unit dispensed (1, 0.5 or 0.25).
    """

    strength: Decimal
    fraction: Decimal = ONE

    @property
    def mg(self) -> Decimal:
        """Amount delivered by this piece."""
        return self.strength * self.fraction

    @property
    def is_whole(self) -> bool:
        return self.fraction == ONE


@dataclass(frozen=True)
class Regimen:
    """Doses scheduled across one day, keyed by slot.

    Each slot holds a multiset of unit pieces. Regimens are treated as
    values: every change produces a new instance via ``with_slots``.

    Attributes:
        slots: Mapping of slot to {piece: count}. Empty slots are omitted.
    """

    slots: dict[Slot, dict[UnitPiece, int]] = field(default_factory=dict)

    @classmethod
    def from_patches(cls, strengths: tuple[Decimal, ...]) -> "Regimen":
        """Build a patch-set regimen from a list of applied patch strengths."""
        pieces: dict[UnitPiece, int] = {}
        for strength in strengths:
            piece = UnitPiece(strength)
            pieces[piece] = pieces.get(piece, 0) + 1
        return cls(slots={Slot.PATCH: pieces} if pieces else {})

    def total(self) -> Decimal:
        """Total daily dose across all slots."""
        return sum(
            (self.slot_total(slot) for slot in self.slots),
            Decimal("0"),
        )

    def slot_total(self, slot: Slot) -> Decimal:
        pieces = self.slots.get(slot, {})
        return sum(
            (piece.mg * count for piece, count in pieces.items()),
            Decimal("0"),
        )

    def pieces(self, slot: Slot) -> dict[UnitPiece, int]:
        return dict(self.slots.get(slot, {}))

    def piece_count(self) -> int:
        """Number of pieces dispensed per day (a half tablet counts as one)."""
        return sum(sum(pieces.values()) for pieces in self.slots.values())

    def active_slots(self) -> list[Slot]:
        """Slots holding a non-zero dose, in chronological order."""
        order = ORAL_SLOTS + (Slot.PATCH,)
        return [slot for slot in order if self.slot_total(slot) > 0]

    @property
    def is_empty(self) -> bool:
        return self.total() <= 0

    def with_slots(self, updates: dict[Slot, dict[UnitPiece, int]]) -> "Regimen":
        """Return a new regimen with the given slots replaced.

        Slots mapped to an empty composition are removed.
        """
        slots = {slot: dict(pieces) for slot, pieces in self.slots.items()}
        for slot, pieces in updates.items():
            kept = {piece: count for piece, count in pieces.items() if count > 0}
            if kept:
                slots[slot] = kept
            else:
                slots.pop(slot, None)
        return Regimen(slots=slots)

    def tablets(self, slot: Slot) -> dict[Decimal, Decimal]:
        """Units of each strength taken at a slot (e.g. 1.5 x 10 mg)."""
        counts: dict[Decimal, Decimal] = {}
        for piece, count in self.slots.get(slot, {}).items():
            counts[piece.strength] = (
                counts.get(piece.strength, Decimal("0")) + piece.fraction * count
            )
        return dict(sorted(counts.items(), reverse=True))

    def patches(self) -> tuple[Decimal, ...]:
        """Applied patch strengths, highest first."""
        applied: list[Decimal] = []
        for piece, count in self.slots.get(Slot.PATCH, {}).items():
            applied.extend([piece.strength] * count)
        return tuple(sorted(applied, reverse=True))

    def describe_slot(self, slot: Slot) -> str:
        """Short text such as '1 x 20 + 0.5 x 10' for one slot."""
        return " + ".join(
            f"{format_amount(count)} x {format_amount(strength)}"
            for strength, count in self.tablets(slot).items()
        )


@dataclass(frozen=True)
class Phase:
    """A reduction policy applied from a given date.

    Attributes:
        percent: Percentage cut applied at each boundary, in (0, 100].
        interval_days: Days between boundaries.
        start_date: Activation date (required for Phase 2 only).
    """

    percent: Decimal | None
    interval_days: int | None
    start_date: date | None = None

    @property
    def is_configured(self) -> bool:
        return self.percent is not None and self.interval_days is not None


@dataclass(frozen=True)
class DoseLine:
    """One captured row of the current regimen.

    Attributes:
        strength: Product strength in mg (mcg/hr for patches).
        quantity: Units per dose; may be fractional where splitting allows.
        frequency: Frequency code; multi-dose codes expand into slots.
        slot: Dosing occasion for once-daily lines (ignored for patches).
    """

    strength: Decimal
    quantity: Decimal = ONE
    frequency: Frequency = Frequency.OD
    slot: Slot | None = None


@dataclass(frozen=True)
class FormulationSelection:
    """Product strengths the clinician restricts dispensing to.

    A selection is bound to one medicine and form; moving to another
    product clears it.
    """

    medicine_key: str
    form: str
    strengths: frozenset[Decimal] = frozenset()

    def for_product(self, medicine_key: str, form: str) -> "FormulationSelection":
        """Selection to use after the medicine or form input changes."""
        if medicine_key == self.medicine_key and form == self.form:
            return self
        return FormulationSelection(medicine_key=medicine_key, form=form)


# Default clinician ordering for slot-ordered (antipsychotic) reductions
DEFAULT_SLOT_ORDER = (Slot.MIDDAY, Slot.DINNER, Slot.MORNING, Slot.NIGHT)


@dataclass(frozen=True)
class PlanRequest:
    """Everything needed to generate one taper plan.

    Attributes:
        medicine_class: Catalogue class of the medicine.
        medicine_key: Catalogue key of the medicine.
        form: Catalogue form name (e.g. "SR tablet", "patch").
        dose_lines: Captured current regimen.
        phase1: Mandatory first phase.
        start_date: Date of the first boundary.
        phase2: Optional second phase (needs percent, interval and start).
        review_date: Optional date at which the plan hands off to review.
        selection: Strengths the clinician picked, bound to a medicine/form.
        slot_order: Clinician ordering used by slot-ordered reductions.
    """

    medicine_class: MedicineClass
    medicine_key: str
    form: str
    dose_lines: tuple[DoseLine, ...]
    phase1: Phase
    start_date: date
    phase2: Phase | None = None
    review_date: date | None = None
    selection: FormulationSelection | None = None
    slot_order: tuple[Slot, ...] = DEFAULT_SLOT_ORDER

    @property
    def selected_strengths(self) -> frozenset[Decimal]:
        """Strengths to dispense from; empty means all.

        A selection made for another medicine or form does not apply.
        """
        if self.selection is None:
            return frozenset()
        return self.selection.for_product(self.medicine_key, self.form).strengths


@dataclass(frozen=True)
class Step:
    """One row of a taper plan.

    Attributes:
        date: Date the step applies from.
        kind: Dose, Stop or Review.
        regimen: Daily regimen for Dose steps; None for terminal steps.
        phase: Phase (1 or 2) active when the step was produced.
    """

    date: date
    kind: StepKind
    regimen: Regimen | None = None
    phase: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.kind is not StepKind.DOSE

    @property
    def total(self) -> Decimal:
        return self.regimen.total() if self.regimen else Decimal("0")

    def to_display_dict(self) -> dict[str, object]:
        """Convert to dictionary for renderers.

        Returns:
            Dictionary with the date, kind, phase, daily total and either
            per-slot text or the applied patches.
        """
        result: dict[str, object] = {
            "date": self.date.isoformat(),
            "kind": self.kind.value,
            "phase": self.phase,
            "total": float(self.total),
        }
        if self.regimen is None:
            return result
        if self.regimen.patches():
            result["patches"] = [float(s) for s in self.regimen.patches()]
        else:
            for slot in ORAL_SLOTS:
                result[slot.value.lower()] = self.regimen.describe_slot(slot)
        return result


@dataclass
class TaperPlan:
    """Generated plan: ordered steps plus notices for the clinician.

    Attributes:
        medicine_name: Display name of the medicine.
        form: Catalogue form.
        steps: Steps in strictly increasing date order.
        phase2_start: Boundary on which Phase 2 took effect, if it did.
        notices: User-facing messages about adjustments made.
    """

    medicine_name: str
    form: str
    steps: list[Step] = field(default_factory=list)
    phase2_start: date | None = None
    notices: list[str] = field(default_factory=list)

    @property
    def dose_steps(self) -> list[Step]:
        return [step for step in self.steps if step.kind is StepKind.DOSE]

    @property
    def terminal_step(self) -> Step | None:
        if self.steps and self.steps[-1].is_terminal:
            return self.steps[-1]
        return None
