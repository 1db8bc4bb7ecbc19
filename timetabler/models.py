# models.py
"""
Result types shared by the engine, the conflict detector and the
optimizer: assignments, schedules and conflict reports.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .grid import Cell

# Conflict types
TEACHER_DOUBLE_BOOKED = "teacher-double-booked"
ROOM_DOUBLE_BOOKED = "room-double-booked"
QUOTA_UNMET = "quota-unmet"

# Severities, lowest first
NONE = "none"
INFORMATIONAL = "informational"
MEDIUM = "medium"
HIGH = "high"

SEVERITY_RANK = {NONE: 0, INFORMATIONAL: 1, MEDIUM: 2, HIGH: 3}


# ======================================================================
# Assignment
# ======================================================================

@dataclass(frozen=True)
class Assignment:
    """One lesson: class `class_id` has `subject_id` with `teacher_id` in `room_id` at (day, period)."""

    class_id: str
    day: int
    period: int
    subject_id: str
    teacher_id: str
    room_id: str

    @property
    def cell(self) -> Cell:
        return (self.day, self.period)

    def moved_to(self, cell: Cell) -> "Assignment":
        return Assignment(self.class_id, cell[0], cell[1], self.subject_id, self.teacher_id, self.room_id)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "class_id": self.class_id,
            "day": self.day,
            "period": self.period,
            "subject_id": self.subject_id,
            "teacher_id": self.teacher_id,
            "room_id": self.room_id,
        }


# ======================================================================
# Conflicts
# ======================================================================

@dataclass(frozen=True)
class Conflict:
    type: str
    severity: str
    description: str
    class_ids: Tuple[str, ...] = ()
    day: Optional[int] = None
    period: Optional[int] = None
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None
    subject_id: Optional[str] = None
    expected: Optional[int] = None
    placed: Optional[int] = None

    @property
    def key(self) -> Tuple:
        """Identity of the violation, stable across re-checks."""
        if self.type == TEACHER_DOUBLE_BOOKED:
            return (self.type, self.day, self.period, self.teacher_id)
        if self.type == ROOM_DOUBLE_BOOKED:
            return (self.type, self.day, self.period, self.room_id)
        return (self.type, self.class_ids, self.subject_id)

    @property
    def cell(self) -> Optional[Cell]:
        if self.day is None or self.period is None:
            return None
        return (self.day, self.period)

    @property
    def is_hard(self) -> bool:
        return self.severity in (HIGH, MEDIUM)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            "class_ids": list(self.class_ids),
        }
        for name in ("day", "period", "teacher_id", "room_id", "subject_id", "expected", "placed"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass(frozen=True)
class ConflictReport:
    conflicts: Tuple[Conflict, ...] = ()

    def __iter__(self):
        return iter(self.conflicts)

    def __len__(self) -> int:
        return len(self.conflicts)

    @property
    def severity(self) -> str:
        """`none` when empty, otherwise the highest severity present."""
        worst = NONE
        for c in self.conflicts:
            if SEVERITY_RANK[c.severity] > SEVERITY_RANK[worst]:
                worst = c.severity
        return worst

    @property
    def keys(self) -> frozenset:
        return frozenset(c.key for c in self.conflicts)

    @property
    def hard_conflicts(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.is_hard]

    def of_type(self, conflict_type: str) -> List[Conflict]:
        return [c for c in self.conflicts if c.type == conflict_type]

    def for_class(self, class_id: str) -> "ConflictReport":
        return ConflictReport(tuple(c for c in self.conflicts if class_id in c.class_ids))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.as_dict() for c in self.conflicts],
            "conflictCount": len(self.conflicts),
            "severity": self.severity,
        }


# ======================================================================
# Schedule
# ======================================================================

@dataclass
class Schedule:
    """Weekly assignments of one class group for one academic year and term."""

    class_id: str
    academic_year: str
    term: str
    assignments: List[Assignment] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    generated_by: str = "admin"
    conflicts: ConflictReport = field(default_factory=ConflictReport)
    efficiency: float = 100.0
    last_optimized: Optional[datetime] = None

    def at(self, cell: Cell) -> Optional[Assignment]:
        for a in self.assignments:
            if a.cell == cell:
                return a
        return None

    def as_dict(self) -> Dict[str, Any]:
        data = {
            "class_id": self.class_id,
            "academic_year": self.academic_year,
            "term": self.term,
            "assignments": [a.as_dict() for a in self.assignments],
            "generated_at": self.generated_at.isoformat(),
            "generated_by": self.generated_by,
            "conflicts": [c.as_dict() for c in self.conflicts],
            "efficiency": self.efficiency,
        }
        if self.last_optimized is not None:
            data["last_optimized"] = self.last_optimized.isoformat()
        return data
