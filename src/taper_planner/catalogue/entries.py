"""Catalogue entities: medicines, their forms and commercial strengths."""

from dataclasses import dataclass, field
from decimal import Decimal

from taper_planner.models import MedicineClass, Splitting, StrategyKind


class CatalogueError(ValueError):
    """Raised for unknown catalogue entries or malformed catalogue data."""


@dataclass(frozen=True)
class Formulation:
    """A dose form of a medicine and its commercially available strengths.

    Attributes:
        form: Form name as shown to the clinician (e.g. "SR tablet").
        strengths: Available strengths, ascending.
        modified_release: Whether the form is modified/extended release.
        splitting: Form-level splitting override.
        rounding_step: Fixed clinical rounding increment, if any.
    """

    form: str
    strengths: tuple[Decimal, ...]
    modified_release: bool = False
    splitting: Splitting | None = None
    rounding_step: Decimal | None = None

    @property
    def lowest_strength(self) -> Decimal:
        return min(self.strengths)


@dataclass(frozen=True)
class Medicine:
    """A named medicine within a class.

    Attributes:
        key: Catalogue key.
        name: Display name.
        medicine_class: Class the medicine belongs to.
        formulations: Available forms.
        splitting: Medicine-level splitting override (e.g. whole-only CR).
        strategy: Strategy override for medicines with their own rules.
        patch_interval_days: Patch change cycle for transdermal products.
        patch_grid: Clinical grid the desired patch total is snapped to.
        collapse_strength: Low patch strength merged pairwise into its double.
    """

    key: str
    name: str
    medicine_class: MedicineClass
    formulations: tuple[Formulation, ...]
    splitting: Splitting | None = None
    strategy: StrategyKind | None = None
    patch_interval_days: int | None = None
    patch_grid: Decimal | None = None
    collapse_strength: Decimal | None = None

    @property
    def is_patch(self) -> bool:
        return self.patch_interval_days is not None

    def formulation(self, form: str) -> Formulation:
        """Look up a form by name.

        Raises:
            CatalogueError: If the medicine has no such form.
        """
        for formulation in self.formulations:
            if formulation.form == form:
                return formulation
        raise CatalogueError(f"{self.name} has no '{form}' form")


@dataclass
class Catalogue:
    """Read-only lookup of class -> medicine -> form -> strengths.

    Attributes:
        medicines: Medicines indexed by class then key.
        class_splitting: Default splitting permission per class.
        class_labels: Display label per class.
    """

    medicines: dict[MedicineClass, dict[str, Medicine]] = field(default_factory=dict)
    class_splitting: dict[MedicineClass, Splitting] = field(default_factory=dict)
    class_labels: dict[MedicineClass, str] = field(default_factory=dict)

    def add(self, medicine: Medicine) -> None:
        self.medicines.setdefault(medicine.medicine_class, {})[medicine.key] = medicine

    def medicine(self, medicine_class: MedicineClass, key: str) -> Medicine:
        """Look up a medicine.

        Raises:
            CatalogueError: If the class or key is unknown.
        """
        try:
            return self.medicines[medicine_class][key]
        except KeyError:
            raise CatalogueError(
                f"Unknown medicine '{key}' in class {medicine_class.value}"
            ) from None

    def splitting_for(self, medicine: Medicine, formulation: Formulation) -> Splitting:
        """Most specific splitting permission: form, then medicine, then class."""
        if formulation.splitting is not None:
            return formulation.splitting
        if medicine.splitting is not None:
            return medicine.splitting
        return self.class_splitting.get(medicine.medicine_class, Splitting.WHOLE)

    def __len__(self) -> int:
        return sum(len(by_key) for by_key in self.medicines.values())
