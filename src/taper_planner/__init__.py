"""Deprescribing taper planner.

Builds dated dose-reduction schedules for benzodiazepines and Z-drugs,
proton pump inhibitors, slow-release and transdermal opioids,
gabapentinoids and antipsychotics.
"""

from taper_planner.catalogue import DEFAULT_CATALOGUE, Catalogue, CatalogueError
from taper_planner.compute.schedule import generate_plan
from taper_planner.models import (
    DoseLine,
    FormulationSelection,
    Frequency,
    MedicineClass,
    Phase,
    PlanRequest,
    Regimen,
    Slot,
    Step,
    StepKind,
    TaperPlan,
)
from taper_planner.validation import PlanConfigurationError

__version__ = "0.1.0"

__all__ = [
    # Planning
    "generate_plan",
    "PlanConfigurationError",
    # Catalogue
    "Catalogue",
    "CatalogueError",
    "DEFAULT_CATALOGUE",
    # Models
    "DoseLine",
    "FormulationSelection",
    "Frequency",
    "MedicineClass",
    "Phase",
    "PlanRequest",
    "Regimen",
    "Slot",
    "Step",
    "StepKind",
    "TaperPlan",
]
