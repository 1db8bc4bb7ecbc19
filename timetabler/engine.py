"""
Assignment engine.

Places every required lesson of every class group into the slot grid:
- classes with the most required periods go first
- inside a class, subjects with the fewest qualified teachers go first
- each lesson takes a free cell, a qualified and available teacher and a
  suitable room, none of them already used at that cell by another class
- depth-first search with chronological backtracking per class; a class
  that cannot be completed keeps a partial placement and is reported as
  quota-unmet without stopping the others
"""

import logging
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .catalog import Catalog, ClassGroup, Room, Teacher
from .config import (
    CP_SAT_TIME_LIMIT_SECONDS,
    DEFAULT_ACADEMIC_YEAR,
    DEFAULT_GENERATED_BY,
    DEFAULT_TERM,
    MAX_BACKTRACKS,
)
from .conflicts import quota_conflict
from .cp_sat import solve_with_cp_sat
from .errors import ConfigError, UnsatisfiableRequirement
from .grid import Cell
from .models import Assignment, ConflictReport, Schedule
from .scoring import ScoringWeights, efficiency_score

logger = logging.getLogger(__name__)

BACKTRACKING = "backtracking"
CP_SAT = "cp_sat"
STRATEGIES = (BACKTRACKING, CP_SAT)

# (class id, subject id) -> periods that could not be placed
Shortfalls = Dict[Tuple[str, str], int]


@dataclass
class GenerationConfig:
    academic_year: str = DEFAULT_ACADEMIC_YEAR
    term: str = DEFAULT_TERM
    generated_by: str = DEFAULT_GENERATED_BY
    strategy: str = BACKTRACKING
    # dead ends allowed per class before falling back to a greedy partial placement
    max_backtracks: int = MAX_BACKTRACKS
    # wall-clock limit for the whole run; None means no limit
    deadline_seconds: Optional[float] = None
    time_limit_seconds: float = CP_SAT_TIME_LIMIT_SECONDS
    random_seed: int = 0
    weights: ScoringWeights = field(default_factory=ScoringWeights)


@dataclass
class GenerationResult:
    schedules: List[Schedule]
    conflicts: ConflictReport
    efficiency: float
    strategy: str
    stats: Dict[str, float] = field(default_factory=dict)

    @property
    def assignments(self) -> List[Assignment]:
        return [a for s in self.schedules for a in s.assignments]

    def schedule_for(self, class_id: str) -> Schedule:
        for s in self.schedules:
            if s.class_id == class_id:
                return s
        raise KeyError(class_id)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "schedules": [s.as_dict() for s in self.schedules],
            **self.conflicts.as_dict(),
            "efficiency": self.efficiency,
            "strategy": self.strategy,
            "stats": dict(self.stats),
        }


# ================================================================
# Cross-class allocation table
# ================================================================

class AllocationTable:
    """Teacher and room occupancy per cell, plus weekly teacher load."""

    def __init__(self):
        self.teacher_busy: Dict[Cell, Set[str]] = defaultdict(set)
        self.room_busy: Dict[Cell, Set[str]] = defaultdict(set)
        self.teacher_load: Counter = Counter()

    def teacher_free(self, teacher: Teacher, cell: Cell) -> bool:
        if not teacher.is_available(cell):
            return False
        if teacher.id in self.teacher_busy[cell]:
            return False
        cap = teacher.max_periods_per_week
        return cap is None or self.teacher_load[teacher.id] < cap

    def room_free(self, room: Room, cell: Cell) -> bool:
        return room.shareable or room.id not in self.room_busy[cell]

    def place(self, a: Assignment, room: Room) -> None:
        self.teacher_busy[a.cell].add(a.teacher_id)
        if not room.shareable:
            self.room_busy[a.cell].add(a.room_id)
        self.teacher_load[a.teacher_id] += 1

    def release(self, a: Assignment, room: Room) -> None:
        self.teacher_busy[a.cell].discard(a.teacher_id)
        if not room.shareable:
            self.room_busy[a.cell].discard(a.room_id)
        self.teacher_load[a.teacher_id] -= 1


# ================================================================
# Per-class search
# ================================================================

def ordered_occurrences(catalog: Catalog, group: ClassGroup) -> List[str]:
    """One subject id per required period, most constrained subjects first."""
    requirements = sorted(
        group.requirements,
        key=lambda r: (len(catalog.qualified_teachers(r.subject_id)), -r.periods_per_week),
    )
    occurrences: List[str] = []
    for r in requirements:
        occurrences.extend([r.subject_id] * r.periods_per_week)
    return occurrences


class ClassPlacer:
    def __init__(
        self,
        catalog: Catalog,
        group: ClassGroup,
        table: AllocationTable,
        max_backtracks: int,
        deadline: Optional[float] = None,
    ):
        self.catalog = catalog
        self.group = group
        self.table = table
        self.max_backtracks = max_backtracks
        self.deadline = deadline

        self.occurrences = ordered_occurrences(catalog, group)
        self.placed: List[Assignment] = []
        self.taken: Set[Cell] = set()
        # (subject id, day) -> lessons of that subject already on that day
        self.day_counts: Counter = Counter()
        self.backtracks = 0
        self.exhausted = False

        self._teachers = {
            r.subject_id: catalog.qualified_teachers(r.subject_id) for r in group.requirements
        }
        self._rooms = {
            r.subject_id: catalog.candidate_rooms(group, catalog.subject(r.subject_id))
            for r in group.requirements
        }

    # ------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------

    def _best_at(self, subject_id: str, cell: Cell) -> Optional[Assignment]:
        teachers = [t for t in self._teachers[subject_id] if self.table.teacher_free(t, cell)]
        if not teachers:
            return None
        room = next((r for r in self._rooms[subject_id] if self.table.room_free(r, cell)), None)
        if room is None:
            return None
        # least loaded teacher; min() keeps catalog order on ties
        teacher = min(teachers, key=lambda t: self.table.teacher_load[t.id])
        return Assignment(self.group.id, cell[0], cell[1], subject_id, teacher.id, room.id)

    def candidates(self, subject_id: str) -> List[Assignment]:
        found = []
        for cell in self.catalog.grid.teaching_slots:
            if cell in self.taken:
                continue
            a = self._best_at(subject_id, cell)
            if a is not None:
                found.append(a)
        found.sort(key=lambda a: (self.day_counts[(subject_id, a.day)], a.day, a.period))
        return found

    def _can_finish(self) -> bool:
        """Forward check: every remaining subject still has enough placeable cells."""
        remaining = Counter(self.occurrences[len(self.placed):])
        open_cells: Set[Cell] = set()
        for subject_id, needed in remaining.items():
            cells = [
                cell for cell in self.catalog.grid.teaching_slots
                if cell not in self.taken and self._best_at(subject_id, cell) is not None
            ]
            if len(cells) < needed:
                return False
            open_cells.update(cells)
        return len(open_cells) >= sum(remaining.values())

    # ------------------------------------------------------------
    # Placement bookkeeping
    # ------------------------------------------------------------

    def _apply(self, a: Assignment) -> None:
        self.placed.append(a)
        self.taken.add(a.cell)
        self.day_counts[(a.subject_id, a.day)] += 1
        self.table.place(a, self.catalog.room(a.room_id))

    def _undo(self) -> Assignment:
        a = self.placed.pop()
        self.taken.discard(a.cell)
        self.day_counts[(a.subject_id, a.day)] -= 1
        self.table.release(a, self.catalog.room(a.room_id))
        return a

    def _out_of_budget(self) -> bool:
        if self.backtracks > self.max_backtracks:
            self.exhausted = True
        elif self.deadline is not None and time.monotonic() > self.deadline:
            self.exhausted = True
        return self.exhausted

    # ------------------------------------------------------------
    # Search
    # ------------------------------------------------------------

    def search(self) -> bool:
        n = len(self.occurrences)
        if n == 0:
            return True
        if not self._can_finish():
            return False

        # invariant: len(self.placed) == len(frames) - 1
        frames: List[Iterator[Assignment]] = [iter(self.candidates(self.occurrences[0]))]
        while frames:
            if self._out_of_budget():
                return False
            candidate = next(frames[-1], None)
            if candidate is None:
                frames.pop()
                if not frames:
                    return False
                self._undo()
                self.backtracks += 1
                continue

            self._apply(candidate)
            if len(self.placed) == n:
                return True
            if not self._can_finish():
                self._undo()
                self.backtracks += 1
                continue
            frames.append(iter(self.candidates(self.occurrences[len(self.placed)])))
        return False

    def _greedy(self) -> None:
        for subject_id in self.occurrences:
            found = self.candidates(subject_id)
            if found:
                self._apply(found[0])

    def shortfalls(self) -> Dict[str, int]:
        missing = Counter(self.occurrences)
        missing.subtract(a.subject_id for a in self.placed)
        return {
            r.subject_id: missing[r.subject_id]
            for r in self.group.requirements
            if missing[r.subject_id] > 0
        }

    def place(self) -> List[Assignment]:
        """Place the class; raises UnsatisfiableRequirement with a partial placement."""
        if self.search():
            return list(self.placed)

        while self.placed:
            self._undo()
        self._greedy()

        shortfalls = self.shortfalls()
        if not shortfalls:
            logger.debug(f"Class {self.group.id}: search budget ran out, greedy pass placed everything")
            return list(self.placed)
        raise UnsatisfiableRequirement(self.group.id, shortfalls, self.placed)


def _backtracking(catalog: Catalog, config: GenerationConfig) -> Tuple[Dict[str, List[Assignment]], Shortfalls, Dict[str, float]]:
    deadline = None
    if config.deadline_seconds is not None:
        deadline = time.monotonic() + config.deadline_seconds

    table = AllocationTable()
    by_class: Dict[str, List[Assignment]] = {}
    shortfalls: Shortfalls = {}
    backtracks = 0
    exhausted = 0

    # most required periods first; sorted() is stable so catalog order breaks ties
    groups = sorted(catalog.class_groups, key=lambda g: -g.total_periods)
    for group in groups:
        placer = ClassPlacer(catalog, group, table, config.max_backtracks, deadline)
        try:
            by_class[group.id] = placer.place()
        except UnsatisfiableRequirement as e:
            logger.warning(str(e))
            by_class[group.id] = e.placed
            for subject_id, missing in e.shortfalls.items():
                shortfalls[(group.id, subject_id)] = missing
        backtracks += placer.backtracks
        if placer.exhausted:
            exhausted += 1
            logger.info(f"Class {group.id}: search budget exhausted after {placer.backtracks} backtracks")

    stats = {
        "backtracks": float(backtracks),
        "classes_budget_exhausted": float(exhausted),
    }
    return by_class, shortfalls, stats


# ================================================================
# Entry point
# ================================================================

def generate_schedule(catalog: Catalog, config: Optional[GenerationConfig] = None) -> GenerationResult:
    """Generate one schedule per class group of the catalog.

    Always returns a schedule for every class; classes that cannot be
    completed carry quota-unmet conflicts. Identical catalogs and configs
    give identical assignments (a deadline is the only wall-clock input).
    """
    config = config or GenerationConfig()
    if config.strategy not in STRATEGIES:
        raise ConfigError(f"Unknown strategy {config.strategy!r}; expected one of {STRATEGIES}")
    if config.max_backtracks < 0:
        raise ConfigError("max_backtracks must not be negative")
    if config.deadline_seconds is not None and config.deadline_seconds < 0:
        raise ConfigError("deadline_seconds must not be negative")

    started = time.perf_counter()
    logger.info(
        f"Generating timetables for {len(catalog.class_groups)} classes "
        f"({config.academic_year}, {config.term}, strategy={config.strategy})"
    )

    strategy = config.strategy
    stats: Dict[str, float] = {}
    outcome = None
    if strategy == CP_SAT:
        outcome = solve_with_cp_sat(
            catalog,
            time_limit_seconds=config.time_limit_seconds,
            random_seed=config.random_seed,
        )
        if outcome is None:
            logger.warning("CP-SAT found no solution within the time limit; falling back to backtracking")
            strategy = BACKTRACKING

    if outcome is not None:
        by_class: Dict[str, List[Assignment]] = defaultdict(list)
        for a in outcome.assignments:
            by_class[a.class_id].append(a)
        shortfalls = outcome.shortfalls
        stats.update(outcome.stats)
    else:
        by_class, shortfalls, search_stats = _backtracking(catalog, config)
        stats.update(search_stats)

    unmet = []
    for group in catalog.class_groups:
        for req in group.requirements:
            missing = shortfalls.get((group.id, req.subject_id), 0)
            if missing:
                unmet.append(quota_conflict(
                    catalog, group.id, req.subject_id, req.periods_per_week - missing, req.periods_per_week
                ))
    report = ConflictReport(tuple(unmet))

    now = datetime.now(timezone.utc)
    schedules = []
    for group in catalog.class_groups:
        assignments = sorted(by_class.get(group.id, []), key=lambda a: (a.day, a.period))
        class_report = report.for_class(group.id)
        schedules.append(Schedule(
            class_id=group.id,
            academic_year=config.academic_year,
            term=config.term,
            assignments=assignments,
            generated_at=now,
            generated_by=config.generated_by,
            conflicts=class_report,
            efficiency=efficiency_score(class_report, assignments, catalog, [group.id], config.weights),
        ))

    all_assignments = [a for s in schedules for a in s.assignments]
    efficiency = efficiency_score(
        report, all_assignments, catalog, [g.id for g in catalog.class_groups], config.weights
    )
    stats.update({
        "assignments": float(len(all_assignments)),
        "required_periods": float(sum(g.total_periods for g in catalog.class_groups)),
        "quota_unmet": float(len(unmet)),
        "wall_time_s": time.perf_counter() - started,
    })
    logger.info(
        f"Placed {len(all_assignments)}/{int(stats['required_periods'])} periods, "
        f"{len(unmet)} quota shortfalls, efficiency {efficiency}"
    )
    return GenerationResult(
        schedules=schedules,
        conflicts=report,
        efficiency=efficiency,
        strategy=strategy,
        stats=stats,
    )
