"""Tests for the composition engine and regimen capture."""

from decimal import Decimal

import pytest

from taper_planner.compute.capture import CaptureError, capture_regimen, split_quantity
from taper_planner.compute.composition import (
    allowed_pieces,
    common_step,
    compose,
    composition_total,
    decompose,
    floor_to_grid,
    grid_neighbours,
    lowest_step,
    piece_count,
)
from taper_planner.compute.context import DoseContext
from taper_planner.models import (
    HALF,
    QUARTER,
    DoseLine,
    Frequency,
    Slot,
    Splitting,
    UnitPiece,
)

TEN = Decimal("10")
TWENTY = Decimal("20")


class TestAllowedPieces:
    """Tests for building the dispensable piece set."""

    def test_whole_only(self) -> None:
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        assert pieces == (UnitPiece(TWENTY), UnitPiece(TEN))

    def test_halves_prefer_whole_piece_for_equal_amount(self) -> None:
        """Half of 10 mg and a whole 5 mg deliver the same; the whole wins."""
        pieces = allowed_pieces(
            (Decimal("2"), Decimal("5"), TEN), Splitting.HALF
        )
        amounts = [piece.mg for piece in pieces]

        assert amounts == sorted(set(amounts), reverse=True)
        assert UnitPiece(Decimal("5")) in pieces
        assert UnitPiece(TEN, HALF) not in pieces

    def test_selection_restricts_strengths(self) -> None:
        pieces = allowed_pieces(
            (TEN, TWENTY), Splitting.HALF, selected=frozenset({TEN})
        )
        assert pieces == (UnitPiece(TEN), UnitPiece(TEN, HALF))

    def test_quarters(self) -> None:
        pieces = allowed_pieces((Decimal("1"),), Splitting.QUARTER)
        assert [piece.mg for piece in pieces] == [
            Decimal("1"),
            Decimal("0.5"),
            Decimal("0.25"),
        ]


class TestGrid:
    """Tests for step derivation and grid helpers."""

    def test_lowest_step_uses_smallest_piece(self) -> None:
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        assert lowest_step(pieces) == TEN

    def test_fixed_step_wins(self) -> None:
        pieces = allowed_pieces((Decimal("25"),), Splitting.HALF)
        assert lowest_step(pieces, Decimal("12.5")) == Decimal("12.5")

    def test_lowest_step_without_pieces(self) -> None:
        with pytest.raises(ValueError):
            lowest_step(())

    def test_common_step_diazepam(self) -> None:
        """2, 5 and 10 mg with halves share a 0.5 mg grid."""
        pieces = allowed_pieces(
            (Decimal("2"), Decimal("5"), TEN), Splitting.HALF
        )
        assert common_step(pieces) == Decimal("0.5")

    def test_common_step_needs_thousandths(self) -> None:
        """Half of a 3.75 mg zopiclone is 1.875 mg."""
        pieces = allowed_pieces((Decimal("3.75"), Decimal("7.5")), Splitting.HALF)
        assert common_step(pieces) == Decimal("1.875")

    def test_floor_to_grid(self) -> None:
        assert floor_to_grid(Decimal("37"), Decimal("12.5")) == Decimal("25")

    def test_grid_neighbours(self) -> None:
        assert grid_neighbours(Decimal("30"), Decimal("12.5")) == (
            Decimal("25"),
            Decimal("37.5"),
        )

    def test_grid_neighbours_on_grid(self) -> None:
        assert grid_neighbours(Decimal("25"), Decimal("12.5")) == (
            Decimal("25"),
            Decimal("25"),
        )


class TestDecompose:
    """Tests for exact greedy decomposition."""

    def test_exact(self) -> None:
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        counts = decompose(Decimal("50"), pieces)

        assert counts == {UnitPiece(TWENTY): 2, UnitPiece(TEN): 1}

    def test_no_exact_decomposition(self) -> None:
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        assert decompose(Decimal("25"), pieces) is None


class TestCompose:
    """Tests for composition with downward retargeting."""

    def test_exact_target(self) -> None:
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        counts = compose(Decimal("30"), pieces, TEN)
        assert composition_total(counts) == Decimal("30")

    def test_falls_back_downwards(self) -> None:
        """An unreachable target is lowered by the step, never raised."""
        pieces = allowed_pieces((TEN, TWENTY), Splitting.WHOLE)
        counts = compose(Decimal("25"), pieces, Decimal("5"))

        assert composition_total(counts) == TWENTY
        assert piece_count(counts) == 1

    def test_fallback_never_exceeds_target(self) -> None:
        pieces = allowed_pieces((Decimal("2"), Decimal("5"), TEN), Splitting.HALF)
        for tenths in range(1, 200):
            target = Decimal(tenths) / 10
            total = composition_total(compose(target, pieces, Decimal("0.5")))
            assert total <= target

    def test_nothing_composable(self) -> None:
        pieces = allowed_pieces((TWENTY,), Splitting.WHOLE)
        assert compose(TEN, pieces, TEN) == {}

    def test_no_pieces(self) -> None:
        assert compose(TEN, (), TEN) == {}

    def test_invalid_step(self) -> None:
        pieces = allowed_pieces((TEN,), Splitting.WHOLE)
        with pytest.raises(ValueError, match="step must be > 0"):
            compose(TEN, pieces, Decimal("0"))


class TestSplitQuantity:
    """Tests for expressing captured quantities as pieces."""

    def test_whole_and_half(self) -> None:
        pieces = split_quantity(TEN, Decimal("1.5"), Splitting.HALF)
        assert pieces == {UnitPiece(TEN): 1, UnitPiece(TEN, HALF): 1}

    def test_quarters(self) -> None:
        pieces = split_quantity(TEN, Decimal("1.75"), Splitting.QUARTER)
        assert pieces == {
            UnitPiece(TEN): 1,
            UnitPiece(TEN, HALF): 1,
            UnitPiece(TEN, QUARTER): 1,
        }

    def test_half_not_allowed(self) -> None:
        with pytest.raises(CaptureError, match="cannot be dispensed"):
            split_quantity(TEN, Decimal("0.5"), Splitting.WHOLE)

    def test_quarter_not_allowed(self) -> None:
        with pytest.raises(CaptureError):
            split_quantity(TEN, Decimal("1.25"), Splitting.HALF)


class TestCaptureRegimen:
    """Tests for building the starting regimen."""

    def test_bid_expands_to_morning_and_night(
        self, oxycodone_context: DoseContext
    ) -> None:
        regimen = capture_regimen(
            (DoseLine(strength=TWENTY, frequency=Frequency.BID),), oxycodone_context
        )

        assert regimen.active_slots() == [Slot.MORNING, Slot.NIGHT]
        assert regimen.total() == Decimal("40")

    def test_lines_accumulate_in_a_slot(self, oxycodone_context: DoseContext) -> None:
        regimen = capture_regimen(
            (
                DoseLine(strength=TWENTY, slot=Slot.MORNING),
                DoseLine(strength=TEN, slot=Slot.MORNING),
            ),
            oxycodone_context,
        )
        assert regimen.slot_total(Slot.MORNING) == Decimal("30")

    def test_once_daily_defaults_to_morning(
        self, oxycodone_context: DoseContext
    ) -> None:
        regimen = capture_regimen((DoseLine(strength=TEN),), oxycodone_context)
        assert regimen.active_slots() == [Slot.MORNING]

    def test_night_only_drops_other_slots(
        self, diazepam_context: DoseContext, caplog: pytest.LogCaptureFixture
    ) -> None:
        regimen = capture_regimen(
            (DoseLine(strength=Decimal("5"), frequency=Frequency.BID),),
            diazepam_context,
        )

        assert regimen.active_slots() == [Slot.NIGHT]
        assert regimen.total() == Decimal("5")
        assert "night-only" in caplog.text

    def test_patches_go_to_patch_slot(self, fentanyl_context: DoseContext) -> None:
        regimen = capture_regimen(
            (
                DoseLine(strength=Decimal("50")),
                DoseLine(strength=Decimal("12.5")),
            ),
            fentanyl_context,
        )
        assert regimen.patches() == (Decimal("50"), Decimal("12.5"))

    def test_zero_quantity_lines_ignored(self, oxycodone_context: DoseContext) -> None:
        regimen = capture_regimen(
            (DoseLine(strength=TEN, quantity=Decimal("0")),), oxycodone_context
        )
        assert regimen.is_empty is True
