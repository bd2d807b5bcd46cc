"""Tabular export of generated plans for renderers."""

import logging

import polars as pl

from taper_planner.models import ORAL_SLOTS, TaperPlan

logger = logging.getLogger(__name__)

PLAN_SCHEMA = {
    "date": pl.Date,
    "kind": pl.Utf8,
    "phase": pl.Int64,
    "total": pl.Float64,
    "morning": pl.Utf8,
    "midday": pl.Utf8,
    "dinner": pl.Utf8,
    "night": pl.Utf8,
    "patches": pl.List(pl.Float64),
}


def plan_to_frame(plan: TaperPlan) -> pl.DataFrame:
    """Convert a plan into one row per step.

    Slot columns hold text such as "1 x 20 + 0.5 x 10" and are null where
    nothing is taken; ``patches`` lists the applied patch strengths.
    Terminal steps have a zero total and no dose columns.

    Args:
        plan: Generated taper plan.

    Returns:
        DataFrame with the columns of ``PLAN_SCHEMA``.
    """
    rows = []
    for step in plan.steps:
        row: dict[str, object] = {
            "date": step.date,
            "kind": step.kind.value,
            "phase": step.phase,
            "total": float(step.total),
            "patches": None,
        }
        for slot in ORAL_SLOTS:
            row[slot.value.lower()] = None

        regimen = step.regimen
        if regimen is not None:
            if regimen.patches():
                row["patches"] = [float(s) for s in regimen.patches()]
            for slot in ORAL_SLOTS:
                text = regimen.describe_slot(slot)
                row[slot.value.lower()] = text or None
        rows.append(row)

    df = pl.DataFrame(rows, schema=PLAN_SCHEMA)
    logger.debug(f"Exported {plan.medicine_name} plan: {df.height} rows")
    return df


def plan_summary(plan: TaperPlan) -> dict[str, object]:
    """Headline figures for a plan.

    Returns:
        Dictionary with the medicine, form, step counts, first and last
        dates, starting and final dose totals, the terminal step kind and
        any notices.
    """
    doses = plan.dose_steps
    terminal = plan.terminal_step
    return {
        "medicine": plan.medicine_name,
        "form": plan.form,
        "dose_steps": len(doses),
        "first_date": plan.steps[0].date.isoformat() if plan.steps else None,
        "last_date": plan.steps[-1].date.isoformat() if plan.steps else None,
        "first_total": float(doses[0].total) if doses else None,
        "final_total": float(doses[-1].total) if doses else None,
        "ends_with": terminal.kind.value if terminal else None,
        "phase2_start": plan.phase2_start.isoformat() if plan.phase2_start else None,
        "notices": list(plan.notices),
    }
