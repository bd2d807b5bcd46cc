"""Pytest fixtures for taper planner tests."""

import os
from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from taper_planner.catalogue import DEFAULT_CATALOGUE, Catalogue
from taper_planner.compute.context import DoseContext, build_context
from taper_planner.models import (
    DoseLine,
    FormulationSelection,
    Frequency,
    MedicineClass,
    Phase,
    PlanRequest,
    Slot,
)

START = date(2025, 3, 3)

RequestFactory = Callable[..., PlanRequest]


def d(value: str) -> Decimal:
    """Short Decimal constructor for test data."""
    return Decimal(value)


@pytest.fixture
def catalogue() -> Catalogue:
    """Built-in catalogue."""
    return DEFAULT_CATALOGUE


@pytest.fixture
def start_date() -> date:
    return START


@pytest.fixture
def make_request() -> RequestFactory:
    """Factory for plan requests with sensible defaults.

    Defaults to oxycodone SR 20 mg twice daily, 25% every 14 days.
    ``selected_strengths`` becomes a selection for the requested product.
    """

    def _make(
        medicine_class: MedicineClass = MedicineClass.OPIOID_SR,
        medicine_key: str = "oxycodone_sr",
        form: str = "SR tablet",
        dose_lines: tuple[DoseLine, ...] | None = None,
        percent: str = "25",
        interval_days: int = 14,
        selected_strengths: frozenset[Decimal] | None = None,
        **kwargs: object,
    ) -> PlanRequest:
        if dose_lines is None:
            dose_lines = (DoseLine(strength=d("20"), frequency=Frequency.BID),)
        if selected_strengths is not None:
            kwargs["selection"] = FormulationSelection(
                medicine_key, form, selected_strengths
            )
        kwargs.setdefault("start_date", START)
        return PlanRequest(
            medicine_class=medicine_class,
            medicine_key=medicine_key,
            form=form,
            dose_lines=dose_lines,
            phase1=Phase(percent=d(percent), interval_days=interval_days),
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def make_context(
    catalogue: Catalogue, make_request: RequestFactory
) -> Callable[..., DoseContext]:
    """Factory for dosing contexts built the way the planner builds them."""

    def _make(**kwargs: object) -> DoseContext:
        return build_context(catalogue, make_request(**kwargs))

    return _make


@pytest.fixture
def oxycodone_context(make_context: Callable[..., DoseContext]) -> DoseContext:
    """Oxycodone SR with every strength available."""
    return make_context()


@pytest.fixture
def omeprazole_context(make_context: Callable[..., DoseContext]) -> DoseContext:
    return make_context(
        medicine_class=MedicineClass.PPI,
        medicine_key="omeprazole",
        form="tablet",
        dose_lines=(DoseLine(strength=d("20"), slot=Slot.MORNING),),
    )


@pytest.fixture
def diazepam_context(make_context: Callable[..., DoseContext]) -> DoseContext:
    """Diazepam tablets (halves allowed), no strength selection."""
    return make_context(
        medicine_class=MedicineClass.BZRA,
        medicine_key="diazepam",
        form="tablet",
        dose_lines=(DoseLine(strength=d("5")),),
    )


@pytest.fixture
def fentanyl_context(make_context: Callable[..., DoseContext]) -> DoseContext:
    return make_context(
        medicine_class=MedicineClass.OPIOID_PATCH,
        medicine_key="fentanyl",
        form="patch",
        dose_lines=(DoseLine(strength=d("25")),),
        interval_days=3,
    )


@pytest.fixture
def gabapentin_context(make_context: Callable[..., DoseContext]) -> DoseContext:
    return make_context(
        medicine_class=MedicineClass.GABAPENTINOID,
        medicine_key="gabapentin",
        form="capsule",
        dose_lines=(DoseLine(strength=d("300"), frequency=Frequency.TID),),
    )


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Set mock environment variables for testing."""
    env_vars = {
        "LOG_LEVEL": "DEBUG",
        "CATALOGUE_PATH": "/tmp/test_catalogue.csv",
        "PLAN_CAP_DAYS": "120",
        "MAX_BOUNDARIES": "40",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars
