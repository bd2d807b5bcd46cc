"""Medicine catalogue: commercial strengths, splitting and rounding rules.

The built-in catalogue covers every supported class; a CSV catalogue can be
loaded in its place.
"""

from taper_planner.catalogue.defaults import DEFAULT_CATALOGUE, build_default_catalogue
from taper_planner.catalogue.entries import (
    Catalogue,
    CatalogueError,
    Formulation,
    Medicine,
)
from taper_planner.catalogue.loaders import build_catalogue, load_catalogue_csv
from taper_planner.catalogue.validators import (
    ValidationResult,
    validate_catalogue_schema,
)

__all__ = [
    # Entities
    "Catalogue",
    "CatalogueError",
    "Formulation",
    "Medicine",
    # Built-in data
    "DEFAULT_CATALOGUE",
    "build_default_catalogue",
    # Loaders
    "load_catalogue_csv",
    "build_catalogue",
    # Validators
    "ValidationResult",
    "validate_catalogue_schema",
]
