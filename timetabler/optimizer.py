"""
Optimizer: bounded local repair of existing schedules.

For every teacher or room clash, try moving one of the clashing lessons to
another cell of the same class (swapping with whatever lesson is there)
and keep the first move the conflict detector accepts. Afterwards, spend
what is left of the budget on swaps that improve the soft score. This is
not a complete solver: conflicts without a valid swap stay and are
reported as unresolved.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .catalog import Catalog
from .config import OPTIMIZER_BUDGET_PER_CELL
from .conflicts import check_conflicts
from .errors import ConfigError, OptimizationIncomplete
from .grid import Cell
from .models import Assignment, Conflict, ConflictReport, Schedule
from .scoring import ScoringWeights, efficiency_score, soft_score

logger = logging.getLogger(__name__)

# Improvements smaller than this are treated as noise.
SOFT_EPSILON = 1e-9


@dataclass
class OptimizationResult:
    schedules: List[Schedule]
    conflicts: ConflictReport
    efficiency: float
    previous_efficiency: float
    soft_score: float
    previous_soft_score: float
    resolved: int
    targeted: int
    unresolved: List[Conflict] = field(default_factory=list)
    swaps_applied: int = 0
    attempts: int = 0
    incomplete: bool = False

    @property
    def summary(self) -> str:
        return f"resolved {self.resolved} of {self.targeted} conflicts"

    @property
    def efficiency_gain(self) -> float:
        return round(self.efficiency - self.previous_efficiency, 2)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "schedules": [s.as_dict() for s in self.schedules],
            **self.conflicts.as_dict(),
            "efficiency": self.efficiency,
            "improvements": {
                "efficiencyGain": self.efficiency_gain,
                "conflictsResolved": self.resolved,
                "conflictsTargeted": self.targeted,
                "softScoreDelta": round(self.soft_score - self.previous_soft_score, 4),
                "swapsApplied": self.swaps_applied,
                "attempts": self.attempts,
                "summary": self.summary,
            },
            "unresolved": [c.as_dict() for c in self.unresolved],
            "incomplete": self.incomplete,
        }


class _Budget:
    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0

    def spend(self) -> None:
        if self.used >= self.limit:
            raise OptimizationIncomplete(self.used)
        self.used += 1


class _Workspace:
    """Mutable view over the schedules: a lesson per (class, cell)."""

    def __init__(self, schedules: Sequence[Schedule], catalog: Catalog):
        self.schedules = list(schedules)
        self.catalog = catalog
        self.class_ids = [s.class_id for s in self.schedules]
        self.lessons: Dict[str, List[Assignment]] = {
            s.class_id: list(s.assignments) for s in self.schedules
        }

    def all(self) -> List[Assignment]:
        return [a for class_id in self.class_ids for a in self.lessons[class_id]]

    def check(self, assignments: Optional[List[Assignment]] = None) -> ConflictReport:
        return check_conflicts(
            assignments if assignments is not None else self.all(), self.catalog, self.class_ids
        )

    def swapped(self, class_id: str, index: int, cell: Cell) -> Tuple[List[Assignment], List[Assignment]]:
        """Lessons of `class_id` after moving lesson `index` to `cell`, plus the moved lessons."""
        lessons = list(self.lessons[class_id])
        lesson = lessons[index]
        moved = [lesson.moved_to(cell)]
        lessons[index] = moved[0]
        for i, other in enumerate(lessons):
            if i != index and other.cell == cell:
                lessons[i] = other.moved_to(lesson.cell)
                moved.append(lessons[i])
                break
        return lessons, moved

    def with_class(self, class_id: str, lessons: List[Assignment]) -> List[Assignment]:
        result = []
        for cid in self.class_ids:
            result.extend(lessons if cid == class_id else self.lessons[cid])
        return result

    def teachers_available(self, moved: List[Assignment]) -> bool:
        for a in moved:
            if not self.catalog.grid.is_teaching(a.cell):
                return False
            if self.catalog.has_teacher(a.teacher_id) and not self.catalog.teacher(a.teacher_id).is_available(a.cell):
                return False
        return True


def _repair(ws: _Workspace, target: Conflict, current: ConflictReport, budget: _Budget) -> Optional[ConflictReport]:
    allowed = current.keys - {target.key}
    for class_id in target.class_ids:
        if class_id not in ws.lessons:
            continue
        for index, lesson in enumerate(ws.lessons[class_id]):
            if lesson.cell != target.cell:
                continue
            if target.teacher_id is not None and lesson.teacher_id != target.teacher_id:
                continue
            if target.room_id is not None and lesson.room_id != target.room_id:
                continue
            for cell in ws.catalog.grid.teaching_slots:
                if cell == lesson.cell:
                    continue
                budget.spend()
                lessons, moved = ws.swapped(class_id, index, cell)
                if not ws.teachers_available(moved):
                    continue
                candidate = ws.check(ws.with_class(class_id, lessons))
                if target.key not in candidate.keys and candidate.keys <= allowed:
                    ws.lessons[class_id] = lessons
                    logger.debug(
                        f"Resolved {target.type} at {ws.catalog.grid.describe(target.cell)} "
                        f"by moving {class_id} {lesson.subject_id} to {ws.catalog.grid.describe(cell)}"
                    )
                    return candidate
    return None


def _improve_soft(ws: _Workspace, current: ConflictReport, weights: ScoringWeights, budget: _Budget) -> Tuple[ConflictReport, int]:
    swaps = 0
    score = soft_score(ws.all(), ws.catalog, weights)
    improved = True
    while improved:
        improved = False
        for class_id in ws.class_ids:
            for index in range(len(ws.lessons[class_id])):
                lesson = ws.lessons[class_id][index]
                for cell in ws.catalog.grid.teaching_slots:
                    if cell == lesson.cell:
                        continue
                    budget.spend()
                    lessons, moved = ws.swapped(class_id, index, cell)
                    if not ws.teachers_available(moved):
                        continue
                    trial = ws.with_class(class_id, lessons)
                    trial_score = soft_score(trial, ws.catalog, weights)
                    if trial_score <= score + SOFT_EPSILON:
                        continue
                    candidate = ws.check(trial)
                    if not candidate.keys <= current.keys:
                        continue
                    ws.lessons[class_id] = lessons
                    current, score = candidate, trial_score
                    swaps += 1
                    improved = True
                    break
    return current, swaps


def optimize(
    schedules: Union[Schedule, Sequence[Schedule]],
    conflicts: Optional[ConflictReport],
    catalog: Catalog,
    iteration_budget: Optional[int] = None,
    weights: Optional[ScoringWeights] = None,
) -> OptimizationResult:
    """Repair clashes in `schedules` by slot swaps, then improve the soft score.

    `schedules` may be one schedule or every schedule sharing the school's
    teachers and rooms. The high and medium conflicts of `conflicts` that
    still hold are targeted in order; `None` targets everything the
    detector finds. Each evaluated swap costs one unit of
    `iteration_budget` (default: OPTIMIZER_BUDGET_PER_CELL per teaching
    cell of every schedule). Schedules are updated in place; the conflict
    count never goes up.
    """
    if isinstance(schedules, Schedule):
        schedules = [schedules]
    schedules = list(schedules)
    weights = weights or ScoringWeights()
    if iteration_budget is None:
        iteration_budget = OPTIMIZER_BUDGET_PER_CELL * len(catalog.grid.teaching_slots) * max(len(schedules), 1)
    if iteration_budget < 0:
        raise ConfigError("iteration_budget must not be negative")
    seen = set()
    for schedule in schedules:
        if schedule.class_id in seen:
            raise ConfigError(f"Class {schedule.class_id!r} has more than one schedule")
        seen.add(schedule.class_id)

    ws = _Workspace(schedules, catalog)
    before = ws.check()
    before_assignments = ws.all()
    previous_soft = soft_score(before_assignments, catalog, weights)
    previous_efficiency = efficiency_score(before, before_assignments, catalog, ws.class_ids, weights, previous_soft)

    source = conflicts if conflicts is not None else before
    live = before.keys
    targets = [c for c in source if c.is_hard and c.key in live]
    stale = [c for c in source if c.is_hard and c.key not in live]
    if stale:
        logger.info(f"Skipping {len(stale)} conflicts that no longer hold")

    budget = _Budget(iteration_budget)
    current = before
    swaps = 0
    incomplete = False
    try:
        for target in targets:
            if target.key not in current.keys:
                continue
            repaired = _repair(ws, target, current, budget)
            if repaired is not None:
                current = repaired
                swaps += 1
    except OptimizationIncomplete as e:
        incomplete = True
        logger.warning(f"{e}; stopping conflict repair")

    if not incomplete:
        try:
            current, soft_swaps = _improve_soft(ws, current, weights, budget)
            swaps += soft_swaps
        except OptimizationIncomplete:
            logger.debug("Iteration budget used up while improving the soft score")

    # the soft phase keeps whatever it applied before the budget ran out
    current = ws.check()
    after_assignments = ws.all()
    after_soft = soft_score(after_assignments, catalog, weights)
    efficiency = efficiency_score(current, after_assignments, catalog, ws.class_ids, weights, after_soft)

    now = datetime.now(timezone.utc)
    for schedule in schedules:
        schedule.assignments = sorted(ws.lessons[schedule.class_id], key=lambda a: (a.day, a.period))
        schedule.conflicts = current.for_class(schedule.class_id)
        schedule.efficiency = efficiency_score(
            schedule.conflicts, schedule.assignments, catalog, [schedule.class_id], weights
        )
        schedule.last_optimized = now

    unresolved = [c for c in targets if c.key in current.keys]
    result = OptimizationResult(
        schedules=schedules,
        conflicts=current,
        efficiency=efficiency,
        previous_efficiency=previous_efficiency,
        soft_score=after_soft,
        previous_soft_score=previous_soft,
        resolved=len(targets) - len(unresolved),
        targeted=len(targets),
        unresolved=unresolved,
        swaps_applied=swaps,
        attempts=budget.used,
        incomplete=incomplete and bool(unresolved),
    )
    logger.info(f"Optimization {result.summary}, efficiency {previous_efficiency} -> {efficiency}")
    return result
