"""Built-in catalogue of commercially available strengths (AU).

Strengths are mg for oral forms and mcg/hr for patches. Fentanyl 12 mcg/hr
patches deliver 12.5 mcg/hr and are held at 12.5 internally.
"""

from decimal import Decimal

from taper_planner.catalogue.entries import Catalogue, Formulation, Medicine
from taper_planner.models import MedicineClass, Splitting, StrategyKind

CLASS_LABELS = {
    MedicineClass.BZRA: "Benzodiazepines / Z-drugs",
    MedicineClass.PPI: "Proton pump inhibitors",
    MedicineClass.OPIOID_SR: "Opioids (slow release)",
    MedicineClass.OPIOID_PATCH: "Opioid patches",
    MedicineClass.GABAPENTINOID: "Gabapentinoids",
    MedicineClass.ANTIPSYCHOTIC: "Antipsychotics",
}

CLASS_SPLITTING = {
    MedicineClass.BZRA: Splitting.HALF,
    MedicineClass.PPI: Splitting.WHOLE,
    MedicineClass.OPIOID_SR: Splitting.WHOLE,
    MedicineClass.OPIOID_PATCH: Splitting.WHOLE,
    MedicineClass.GABAPENTINOID: Splitting.WHOLE,
    MedicineClass.ANTIPSYCHOTIC: Splitting.HALF,
}


def _strengths(*values: str) -> tuple[Decimal, ...]:
    return tuple(sorted(Decimal(v) for v in values))


def _form(*values: str, form: str = "tablet", **kwargs: object) -> Formulation:
    return Formulation(form=form, strengths=_strengths(*values), **kwargs)  # type: ignore[arg-type]


def _bzra(key: str, name: str, *values: str, **kwargs: object) -> Medicine:
    return Medicine(
        key=key,
        name=name,
        medicine_class=MedicineClass.BZRA,
        formulations=(_form(*values),),
        **kwargs,  # type: ignore[arg-type]
    )


def _ppi(key: str, name: str, *values: str) -> Medicine:
    return Medicine(
        key=key,
        name=name,
        medicine_class=MedicineClass.PPI,
        formulations=(_form(*values),),
    )


def _opioid_sr(key: str, name: str, *values: str) -> Medicine:
    return Medicine(
        key=key,
        name=name,
        medicine_class=MedicineClass.OPIOID_SR,
        formulations=(_form(*values, form="SR tablet", modified_release=True),),
    )


def build_default_catalogue() -> Catalogue:
    """Build the built-in catalogue.

    Returns:
        Catalogue covering every supported class.
    """
    catalogue = Catalogue(
        class_splitting=dict(CLASS_SPLITTING),
        class_labels=dict(CLASS_LABELS),
    )

    for medicine in (
        _bzra("alprazolam", "Alprazolam", "0.25", "0.5", "1", "2"),
        _bzra("clonazepam", "Clonazepam", "0.25", "0.5", "1", "2"),
        _bzra("diazepam", "Diazepam", "2", "5", "10"),
        _bzra("flunitrazepam", "Flunitrazepam", "0.5", "1"),
        _bzra("lorazepam", "Lorazepam", "0.5", "1", "2"),
        _bzra("nitrazepam", "Nitrazepam", "5"),
        _bzra("oxazepam", "Oxazepam", "7.5", "15", "30"),
        _bzra("temazepam", "Temazepam", "10", "20"),
        _bzra(
            "zolpidem_cr", "Zolpidem CR", "6.25", "12.5", splitting=Splitting.WHOLE
        ),
        _bzra("zopiclone", "Zopiclone", "3.75", "7.5"),
    ):
        catalogue.add(medicine)

    for medicine in (
        _ppi("esomeprazole", "Esomeprazole", "20", "40"),
        _ppi("lansoprazole", "Lansoprazole", "15", "30"),
        _ppi("omeprazole", "Omeprazole", "10", "20"),
        _ppi("pantoprazole", "Pantoprazole", "20", "40"),
        _ppi("rabeprazole", "Rabeprazole", "10", "20"),
    ):
        catalogue.add(medicine)

    for medicine in (
        _opioid_sr("morphine_sr", "Morphine SR", "10", "30", "60", "100"),
        _opioid_sr("oxycodone_sr", "Oxycodone SR", "10", "20", "40", "80"),
        _opioid_sr("hydromorphone_sr", "Hydromorphone SR", "8", "16", "24"),
    ):
        catalogue.add(medicine)

    catalogue.add(
        Medicine(
            key="fentanyl",
            name="Fentanyl",
            medicine_class=MedicineClass.OPIOID_PATCH,
            formulations=(_form("12.5", "25", "50", "75", "100", form="patch"),),
            patch_interval_days=3,
            patch_grid=Decimal("12.5"),
            collapse_strength=Decimal("12.5"),
        )
    )
    catalogue.add(
        Medicine(
            key="buprenorphine",
            name="Buprenorphine",
            medicine_class=MedicineClass.OPIOID_PATCH,
            formulations=(_form("5", "10", "20", form="patch"),),
            patch_interval_days=7,
        )
    )

    catalogue.add(
        Medicine(
            key="pregabalin",
            name="Pregabalin",
            medicine_class=MedicineClass.GABAPENTINOID,
            formulations=(_form("25", "75", "150", "300", form="capsule"),),
        )
    )
    catalogue.add(
        Medicine(
            key="gabapentin",
            name="Gabapentin",
            medicine_class=MedicineClass.GABAPENTINOID,
            formulations=(
                _form("100", "300", "400", form="capsule"),
                _form("600", "800"),
            ),
            strategy=StrategyKind.GABAPENTIN,
        )
    )

    catalogue.add(
        Medicine(
            key="quetiapine",
            name="Quetiapine",
            medicine_class=MedicineClass.ANTIPSYCHOTIC,
            formulations=(
                _form("25", "100", "200", "300", rounding_step=Decimal("12.5")),
                _form(
                    "50",
                    "150",
                    "200",
                    "300",
                    "400",
                    form="XR tablet",
                    modified_release=True,
                    splitting=Splitting.WHOLE,
                ),
            ),
        )
    )
    catalogue.add(
        Medicine(
            key="risperidone",
            name="Risperidone",
            medicine_class=MedicineClass.ANTIPSYCHOTIC,
            formulations=(
                _form("0.5", "1", "2", "3", "4", rounding_step=Decimal("0.25")),
            ),
        )
    )
    catalogue.add(
        Medicine(
            key="olanzapine",
            name="Olanzapine",
            medicine_class=MedicineClass.ANTIPSYCHOTIC,
            formulations=(
                _form(
                    "2.5", "5", "7.5", "10", "15", "20", rounding_step=Decimal("1.25")
                ),
            ),
        )
    )
    catalogue.add(
        Medicine(
            key="haloperidol",
            name="Haloperidol",
            medicine_class=MedicineClass.ANTIPSYCHOTIC,
            formulations=(_form("0.5", "1.5", "5", rounding_step=Decimal("0.25")),),
        )
    )

    return catalogue


DEFAULT_CATALOGUE = build_default_catalogue()
