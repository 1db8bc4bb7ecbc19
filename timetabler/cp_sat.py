import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ortools.sat.python import cp_model
from ortools.sat.python.cp_model import IntVar

from .catalog import Catalog
from .grid import Cell
from .models import Assignment

logger = logging.getLogger(__name__)

# Missing periods must always cost more than any amount of same-day clustering.
SHORTAGE_WEIGHT = 1000
CLUSTER_WEIGHT = 1


@dataclass
class CpSatSolution:
    assignments: List[Assignment]
    # (class id, subject id) -> periods left unplaced
    shortfalls: Dict[Tuple[str, str], int]
    status: str
    stats: Dict[str, float] = field(default_factory=dict)


def solve_with_cp_sat(
    catalog: Catalog,
    *,
    time_limit_seconds: float = 10.0,
    random_seed: int = 0,
) -> Optional[CpSatSolution]:
    """Solve the whole week at once with CP-SAT.

    Hard constraints:
      • At most one lesson per class per cell.
      • No teacher and no non-shareable room used twice in one cell.
      • Teachers only at cells they are available, and within weekly caps.
      • placed + shortage == quota for every class requirement.

    Objective (minimized):
      • Shortage, weighted heavily, so every satisfiable quota is met.
      • Lessons of one subject beyond ceil(quota / days) on the same day.

    Runs a single search worker with a fixed seed, so the same catalog
    gives the same answer. Returns None when no solution is found in time.
    """
    grid = catalog.grid
    days = grid.days_per_week
    cells = grid.teaching_slots

    model = cp_model.CpModel()

    # (class id, subject id, cell) -> lesson placed there
    lesson: Dict[Tuple[str, str, Cell], IntVar] = {}
    # (class id, subject id, cell, teacher id) -> that teacher takes it
    teacher_assigned: Dict[Tuple[str, str, Cell, str], IntVar] = {}
    # (class id, subject id, cell, room id) -> that room hosts it
    room_assigned: Dict[Tuple[str, str, Cell, str], IntVar] = {}

    # Buckets for the at-most-one constraints
    class_cell: Dict[Tuple[str, Cell], List[IntVar]] = {}
    teacher_cell: Dict[Tuple[str, Cell], List[IntVar]] = {}
    room_cell: Dict[Tuple[str, Cell], List[IntVar]] = {}
    teacher_week: Dict[str, List[IntVar]] = {}

    shortage: Dict[Tuple[str, str], IntVar] = {}
    penalty_terms = []

    for group in catalog.class_groups:
        for req in group.requirements:
            subject = catalog.subject(req.subject_id)
            teachers = catalog.qualified_teachers(req.subject_id)
            rooms = catalog.candidate_rooms(group, subject)
            placed_vars: List[IntVar] = []
            by_day: Dict[int, List[IntVar]] = {}

            for cell in cells:
                cand_teachers = [t for t in teachers if t.is_available(cell)]
                if not cand_teachers or not rooms:
                    continue
                tag = f"{group.id}_{req.subject_id}_d{cell[0]}_p{cell[1]}"
                x = model.NewBoolVar(f"lesson_{tag}")
                lesson[(group.id, req.subject_id, cell)] = x
                placed_vars.append(x)
                by_day.setdefault(cell[0], []).append(x)
                class_cell.setdefault((group.id, cell), []).append(x)

                t_vars = []
                for t in cand_teachers:
                    y = model.NewBoolVar(f"teacher_{tag}_{t.id}")
                    teacher_assigned[(group.id, req.subject_id, cell, t.id)] = y
                    teacher_cell.setdefault((t.id, cell), []).append(y)
                    teacher_week.setdefault(t.id, []).append(y)
                    t_vars.append(y)
                r_vars = []
                for r in rooms:
                    z = model.NewBoolVar(f"room_{tag}_{r.id}")
                    room_assigned[(group.id, req.subject_id, cell, r.id)] = z
                    if not r.shareable:
                        room_cell.setdefault((r.id, cell), []).append(z)
                    r_vars.append(z)
                # exactly one teacher and one room when the lesson happens
                model.Add(sum(t_vars) == x)
                model.Add(sum(r_vars) == x)

            short = model.NewIntVar(0, req.periods_per_week, f"short_{group.id}_{req.subject_id}")
            model.Add(sum(placed_vars) + short == req.periods_per_week)
            shortage[(group.id, req.subject_id)] = short
            penalty_terms.append(SHORTAGE_WEIGHT * short)

            limit = math.ceil(req.periods_per_week / days)
            for day, day_vars in by_day.items():
                if len(day_vars) <= limit:
                    continue
                over = model.NewIntVar(0, len(day_vars), f"over_{group.id}_{req.subject_id}_d{day}")
                model.Add(over >= sum(day_vars) - limit)
                penalty_terms.append(CLUSTER_WEIGHT * over)

    for bucket in (class_cell, teacher_cell, room_cell):
        for lst in bucket.values():
            if len(lst) > 1:
                model.AddAtMostOne(lst)

    for t in catalog.teachers:
        cap = t.max_periods_per_week
        if cap is not None and t.id in teacher_week:
            model.Add(sum(teacher_week[t.id]) <= cap)

    if penalty_terms:
        model.Minimize(sum(penalty_terms))

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = time_limit_seconds
    solver.parameters.random_seed = random_seed
    solver.parameters.num_search_workers = 1
    status = solver.Solve(model)
    status_name = solver.StatusName(status)
    logger.info(f"CP-SAT finished with status {status_name} in {solver.WallTime():.2f}s")

    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        return None

    def chosen(options: Dict, prefix: Tuple) -> Optional[str]:
        for key, var in options.items():
            if key[:3] == prefix and solver.Value(var) == 1:
                return key[3]
        return None

    # index choice variables by lesson so extraction stays linear
    teacher_by_lesson: Dict[Tuple[str, str, Cell], Dict] = {}
    for key, var in teacher_assigned.items():
        teacher_by_lesson.setdefault(key[:3], {})[key] = var
    room_by_lesson: Dict[Tuple[str, str, Cell], Dict] = {}
    for key, var in room_assigned.items():
        room_by_lesson.setdefault(key[:3], {})[key] = var

    assignments = []
    for key, x in lesson.items():
        if solver.Value(x) != 1:
            continue
        class_id, subject_id, cell = key
        teacher_id = chosen(teacher_by_lesson[key], key)
        room_id = chosen(room_by_lesson[key], key)
        assert teacher_id is not None and room_id is not None, "Model invariant violated"
        assignments.append(Assignment(class_id, cell[0], cell[1], subject_id, teacher_id, room_id))

    shortfalls = {
        key: int(solver.Value(var)) for key, var in shortage.items() if solver.Value(var) > 0
    }
    return CpSatSolution(
        assignments=assignments,
        shortfalls=shortfalls,
        status=status_name,
        stats={
            "objective_value": float(solver.ObjectiveValue()) if penalty_terms else 0.0,
            "solver_conflicts": float(solver.NumConflicts()),
            "branches": float(solver.NumBranches()),
            "wall_time_s": float(solver.WallTime()),
        },
    )
