"""School timetable engine: generation, conflict checking and repair."""

from .catalog import Catalog, catalog_from_dict
from .conflicts import check_conflicts
from .engine import GenerationConfig, GenerationResult, generate_schedule
from .errors import (
    CatalogError,
    ConfigError,
    OptimizationIncomplete,
    TimetableError,
    UnsatisfiableRequirement,
)
from .models import Assignment, Conflict, ConflictReport, Schedule
from .optimizer import OptimizationResult, optimize
from .scoring import ScoringWeights

__all__ = [
    "Assignment",
    "Catalog",
    "CatalogError",
    "ConfigError",
    "Conflict",
    "ConflictReport",
    "GenerationConfig",
    "GenerationResult",
    "OptimizationIncomplete",
    "OptimizationResult",
    "Schedule",
    "ScoringWeights",
    "TimetableError",
    "UnsatisfiableRequirement",
    "catalog_from_dict",
    "check_conflicts",
    "generate_schedule",
    "optimize",
]
