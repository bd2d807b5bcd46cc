"""Catalogue loading from CSV files.

Every column is read as text so strengths reach ``Decimal`` without a
float round trip.
"""

import logging
from decimal import Decimal
from pathlib import Path

import polars as pl

from taper_planner.catalogue.defaults import CLASS_LABELS, CLASS_SPLITTING
from taper_planner.catalogue.entries import (
    Catalogue,
    CatalogueError,
    Formulation,
    Medicine,
)
from taper_planner.catalogue.validators import validate_catalogue_schema
from taper_planner.models import MedicineClass, Splitting, StrategyKind

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "yes", "y", "1"}


def load_catalogue_csv(file_path: str | Path) -> pl.DataFrame:
    """Load a catalogue CSV into a polars DataFrame of strings.

    Args:
        file_path: Path to the CSV file.

    Returns:
        DataFrame with one row per (medicine, form, strength).

    Raises:
        CatalogueError: If the file does not exist.
    """
    path = Path(file_path)
    if not path.exists():
        raise CatalogueError(f"Catalogue file not found: {path}")

    df = pl.read_csv(path, infer_schema_length=0)
    df = df.rename(
        {name: name.strip().lower() for name in df.columns if name != name.strip().lower()}
    )
    logger.info(f"Loaded catalogue CSV: {df.height} rows from {path.name}")
    return df


def _text(row: dict[str, object], column: str) -> str | None:
    value = row.get(column)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decimal(row: dict[str, object], column: str) -> Decimal | None:
    text = _text(row, column)
    return Decimal(text) if text is not None else None


def _splitting(row: dict[str, object], column: str) -> Splitting | None:
    text = _text(row, column)
    return Splitting(text.upper()) if text is not None else None


def _build_formulation(rows: list[dict[str, object]]) -> Formulation:
    first = rows[0]
    strengths = sorted({Decimal(str(row["strength"]).strip()) for row in rows})
    modified = (_text(first, "modified_release") or "").lower() in TRUE_VALUES
    return Formulation(
        form=str(first["form"]).strip(),
        strengths=tuple(strengths),
        modified_release=modified,
        splitting=_splitting(first, "form_splitting"),
        rounding_step=_decimal(first, "rounding_step"),
    )


def build_catalogue(df: pl.DataFrame) -> Catalogue:
    """Turn validated catalogue rows into a Catalogue.

    Medicine-level attributes are taken from the first row of each
    medicine; form-level attributes from the first row of each form.

    Args:
        df: DataFrame as returned by ``load_catalogue_csv``.

    Returns:
        Catalogue with class defaults from the built-in catalogue.

    Raises:
        CatalogueError: If the rows fail schema validation.
    """
    result = validate_catalogue_schema(df)
    if not result.is_valid:
        raise CatalogueError(f"Invalid catalogue: {result.message}")

    catalogue = Catalogue(
        class_splitting=dict(CLASS_SPLITTING),
        class_labels=dict(CLASS_LABELS),
    )

    for medicine_rows in df.partition_by(
        ["medicine_class", "medicine_key"], maintain_order=True
    ):
        formulations = tuple(
            _build_formulation(form_rows.to_dicts())
            for form_rows in medicine_rows.partition_by("form", maintain_order=True)
        )
        first = medicine_rows.row(0, named=True)
        strategy = _text(first, "strategy")
        interval = _text(first, "patch_interval_days")
        medicine = Medicine(
            key=str(first["medicine_key"]).strip(),
            name=str(first["medicine_name"]).strip(),
            medicine_class=MedicineClass(str(first["medicine_class"]).strip().upper()),
            formulations=formulations,
            splitting=_splitting(first, "medicine_splitting"),
            strategy=StrategyKind(strategy.upper()) if strategy else None,
            patch_interval_days=int(interval) if interval else None,
            patch_grid=_decimal(first, "patch_grid"),
            collapse_strength=_decimal(first, "collapse_strength"),
        )
        catalogue.add(medicine)
        logger.debug(
            f"Catalogue medicine {medicine.key}: "
            f"{[f.form for f in formulations]}"
        )

    logger.info(f"Built catalogue with {len(catalogue)} medicines")
    return catalogue
