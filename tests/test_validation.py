"""Tests for plan request validation."""

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

import pytest

from taper_planner.catalogue import Catalogue
from taper_planner.models import DoseLine, MedicineClass, Phase, PlanRequest, Splitting
from taper_planner.validation import (
    PlanConfigurationError,
    validate_dose_lines,
    validate_patch_interval,
    validate_phases,
    validate_request,
)

RequestFactory = Callable[..., PlanRequest]

START = date(2025, 3, 3)


class TestValidatePhases:
    """Tests for phase and date checks."""

    def test_valid_phase1_only(self, make_request: RequestFactory) -> None:
        result = validate_phases(make_request())
        assert result.is_valid is True

    @pytest.mark.parametrize("percent", ["0", "-5", "101"])
    def test_percent_out_of_range(
        self, make_request: RequestFactory, percent: str
    ) -> None:
        result = validate_phases(make_request(percent=percent))
        assert result.is_valid is False
        assert "Phase 1 percent" in result.message

    def test_hundred_percent_allowed(self, make_request: RequestFactory) -> None:
        assert validate_phases(make_request(percent="100")).is_valid is True

    def test_interval_must_be_positive(self, make_request: RequestFactory) -> None:
        result = validate_phases(make_request(interval_days=0))
        assert result.is_valid is False
        assert "interval" in result.message

    def test_partial_phase2(self, make_request: RequestFactory) -> None:
        """A Phase 2 percent without interval or start date is rejected."""
        request = make_request(phase2=Phase(percent=Decimal("10"), interval_days=None))
        result = validate_phases(request)

        assert result.is_valid is False
        assert any("Phase 2 interval" in error for error in result.errors)
        assert any("start date" in error for error in result.errors)

    def test_blank_phase2_ignored(self, make_request: RequestFactory) -> None:
        request = make_request(phase2=Phase(percent=None, interval_days=None))
        assert validate_phases(request).is_valid is True

    def test_phase2_must_start_after_plan(self, make_request: RequestFactory) -> None:
        request = make_request(
            phase2=Phase(percent=Decimal("10"), interval_days=14, start_date=START)
        )
        result = validate_phases(request)
        assert result.is_valid is False
        assert "Phase 2 must start after" in result.message

    def test_review_date_after_start(self, make_request: RequestFactory) -> None:
        request = make_request(review_date=START - timedelta(days=1))
        result = validate_phases(request)
        assert result.is_valid is False
        assert "Review date" in result.message


class TestValidatePatchInterval:
    """Tests for patch change-day alignment."""

    def _fentanyl_request(self, make_request: RequestFactory, interval_days: int):
        return make_request(
            medicine_class=MedicineClass.OPIOID_PATCH,
            medicine_key="fentanyl",
            form="patch",
            dose_lines=(DoseLine(strength=Decimal("25")),),
            interval_days=interval_days,
        )

    def test_multiple_of_cycle(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        fentanyl = catalogue.medicine(MedicineClass.OPIOID_PATCH, "fentanyl")
        request = self._fentanyl_request(make_request, 6)
        assert validate_patch_interval(request, fentanyl).is_valid is True

    def test_off_cycle_interval(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        fentanyl = catalogue.medicine(MedicineClass.OPIOID_PATCH, "fentanyl")
        request = self._fentanyl_request(make_request, 7)
        result = validate_patch_interval(request, fentanyl)

        assert result.is_valid is False
        assert "multiple of 3 days" in result.message

    def test_oral_medicine_skipped(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        oxycodone = catalogue.medicine(MedicineClass.OPIOID_SR, "oxycodone_sr")
        assert validate_patch_interval(make_request(), oxycodone).is_valid is True


class TestValidateDoseLines:
    """Tests for dose line checks against the catalogue form."""

    def _formulation(self, catalogue: Catalogue):
        return catalogue.medicine(MedicineClass.OPIOID_SR, "oxycodone_sr").formulation(
            "SR tablet"
        )

    def test_unknown_strength(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        request = make_request(dose_lines=(DoseLine(strength=Decimal("15")),))
        result = validate_dose_lines(
            request, self._formulation(catalogue), Splitting.WHOLE
        )
        assert result.is_valid is False
        assert "15 is not available" in result.message

    def test_fraction_not_dispensable(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        request = make_request(
            dose_lines=(DoseLine(strength=Decimal("20"), quantity=Decimal("1.5")),)
        )
        result = validate_dose_lines(
            request, self._formulation(catalogue), Splitting.WHOLE
        )
        assert result.is_valid is False
        assert "cannot be dispensed" in result.message

    def test_needs_a_dose(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        request = make_request(
            dose_lines=(DoseLine(strength=Decimal("20"), quantity=Decimal("0")),)
        )
        result = validate_dose_lines(
            request, self._formulation(catalogue), Splitting.WHOLE
        )
        assert result.is_valid is False
        assert "at least one dose" in result.message

    def test_selection_outside_form(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        request = make_request(selected_strengths=frozenset({Decimal("5")}))
        result = validate_dose_lines(
            request, self._formulation(catalogue), Splitting.WHOLE
        )
        assert result.is_valid is False
        assert "Selected strengths" in result.message


class TestValidateRequest:
    """Tests for the combined request check."""

    def test_valid_request_passes(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        validate_request(make_request(), catalogue)

    def test_unknown_medicine(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        with pytest.raises(PlanConfigurationError, match="Unknown medicine"):
            validate_request(make_request(medicine_key="tramadol_sr"), catalogue)

    def test_collects_every_error(
        self, make_request: RequestFactory, catalogue: Catalogue
    ) -> None:
        request = make_request(
            percent="0",
            dose_lines=(DoseLine(strength=Decimal("15")),),
        )
        with pytest.raises(PlanConfigurationError) as excinfo:
            validate_request(request, catalogue)

        assert len(excinfo.value.errors) == 2
