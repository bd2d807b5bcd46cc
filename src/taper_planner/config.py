"""Configuration management for the taper planner."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from taper_planner.catalogue import (
    DEFAULT_CATALOGUE,
    Catalogue,
    build_catalogue,
    load_catalogue_csv,
)
from taper_planner.compute.schedule import MAX_BOUNDARIES, PLAN_CAP_DAYS

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Application settings loaded from the environment.

    Attributes:
        log_level: Logging level name.
        catalogue_path: Optional CSV catalogue replacing the built-in one.
        plan_cap_days: Absolute plan length before handing off to review.
        max_boundaries: Hard ceiling on boundaries per plan.
    """

    log_level: str
    catalogue_path: Path | None
    plan_cap_days: int
    max_boundaries: int

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Missing variables fall back to the planner defaults.
        """
        catalogue_path = os.getenv("CATALOGUE_PATH")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            catalogue_path=Path(catalogue_path) if catalogue_path else None,
            plan_cap_days=int(os.getenv("PLAN_CAP_DAYS", str(PLAN_CAP_DAYS))),
            max_boundaries=int(os.getenv("MAX_BOUNDARIES", str(MAX_BOUNDARIES))),
        )

    def configure_logging(self) -> None:
        """Apply the configured level to the root logger."""
        logging.basicConfig(level=self.log_level, format=LOG_FORMAT)
        logging.getLogger().setLevel(self.log_level)

    def load_catalogue(self) -> Catalogue:
        """Catalogue from ``catalogue_path`` if set, else the built-in one.

        Raises:
            CatalogueError: If the configured file is missing or malformed.
        """
        if self.catalogue_path is None:
            return DEFAULT_CATALOGUE
        logger.info(f"Using catalogue from {self.catalogue_path}")
        return build_catalogue(load_catalogue_csv(self.catalogue_path))
