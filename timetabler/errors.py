"""Exceptions raised by the timetable engine, the conflict detector and the optimizer."""

from typing import Dict, List, Optional


class TimetableError(ValueError):
    """Base class for every error raised by the timetable engine.

    Subclasses ValueError so callers that already map ValueError to a
    client error (e.g. HTTP 400) keep working.
    """


class CatalogError(TimetableError):
    """Malformed or inconsistent catalog; nothing can be generated."""


class ConfigError(TimetableError):
    """Invalid slot grid or generation configuration."""


class UnsatisfiableRequirement(TimetableError):
    """A class group could not receive every period it requires.

    Raised per class inside the engine and converted to quota-unmet
    conflicts; it never aborts generation for the other classes.
    """

    def __init__(self, class_id: str, shortfalls: Dict[str, int], placed: Optional[List] = None):
        self.class_id = class_id
        self.shortfalls = dict(shortfalls)
        self.placed = list(placed or [])
        missing = ", ".join(f"{subject_id} (-{n})" for subject_id, n in self.shortfalls.items())
        super().__init__(f"Class {class_id} could not be fully scheduled: {missing}")


class OptimizationIncomplete(TimetableError):
    """The optimizer ran out of iteration budget with conflicts left."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Iteration budget exhausted after {attempts} swap attempts")
