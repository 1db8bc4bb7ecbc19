"""Conflict detector.

Re-verifies the hard invariants of any assignment set, whether it came
from the engine or was edited by hand. Nothing produced upstream is
trusted.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .catalog import Catalog
from .errors import CatalogError
from .grid import Cell
from .models import (
    HIGH,
    INFORMATIONAL,
    MEDIUM,
    QUOTA_UNMET,
    ROOM_DOUBLE_BOOKED,
    TEACHER_DOUBLE_BOOKED,
    Assignment,
    Conflict,
    ConflictReport,
)

logger = logging.getLogger(__name__)


def quota_conflict(catalog: Catalog, class_id: str, subject_id: str, placed: int, expected: int) -> Conflict:
    subject = catalog.display_name("subject", subject_id) if catalog.has_subject(subject_id) else subject_id
    if placed < expected:
        text = f"{subject} for class {class_id}: only {placed} of {expected} periods placed"
    elif expected == 0:
        text = f"{subject} is not required by class {class_id} but has {placed} periods"
    else:
        text = f"{subject} for class {class_id}: {placed} periods placed, quota is {expected}"
    return Conflict(
        type=QUOTA_UNMET,
        severity=INFORMATIONAL,
        description=text,
        class_ids=(class_id,),
        subject_id=subject_id,
        expected=expected,
        placed=placed,
    )


def _cell_order(catalog: Catalog, cells: Iterable[Cell]) -> List[Cell]:
    order = {c: i for i, c in enumerate(catalog.grid.cells)}
    return sorted(cells, key=order.__getitem__)


def _validate(assignments: Sequence[Assignment], catalog: Catalog) -> None:
    """Reject lessons no schedule can hold: unknown ids, lessons outside the
    teaching cells, and a class placed twice in one cell."""
    grid = catalog.grid
    occupied = set()
    for a in assignments:
        if not catalog.has_class(a.class_id):
            raise CatalogError(f"Assignment for unknown class {a.class_id!r}")
        if not catalog.has_subject(a.subject_id):
            raise CatalogError(f"Class {a.class_id!r} has a lesson of unknown subject {a.subject_id!r}")
        if not catalog.has_teacher(a.teacher_id):
            raise CatalogError(f"Class {a.class_id!r} has a lesson with unknown teacher {a.teacher_id!r}")
        if not catalog.has_room(a.room_id):
            raise CatalogError(f"Class {a.class_id!r} has a lesson in unknown room {a.room_id!r}")
        if not grid.contains(a.cell):
            raise CatalogError(
                f"Class {a.class_id!r} has a lesson at day {a.day}, period {a.period}, outside the grid"
            )
        if not grid.is_teaching(a.cell):
            raise CatalogError(
                f"Class {a.class_id!r} has a lesson on {grid.describe(a.cell)}, "
                f"a {(grid.fixed_label(a.period) or 'fixed').lower()} period"
            )
        if (a.class_id, a.cell) in occupied:
            raise CatalogError(f"Class {a.class_id!r} has more than one lesson on {grid.describe(a.cell)}")
        occupied.add((a.class_id, a.cell))


def _booking_conflicts(assignments: Sequence[Assignment], catalog: Catalog) -> List[Conflict]:
    by_cell: Dict[Cell, List[Assignment]] = defaultdict(list)
    for a in assignments:
        by_cell[a.cell].append(a)

    conflicts: List[Conflict] = []
    for cell in _cell_order(catalog, by_cell):
        here = by_cell[cell]
        where = catalog.grid.describe(cell)

        teachers: Dict[str, List[Assignment]] = defaultdict(list)
        for a in here:
            teachers[a.teacher_id].append(a)
        for teacher_id in sorted(teachers):
            group = teachers[teacher_id]
            if len(group) < 2:
                continue
            classes = tuple(sorted({a.class_id for a in group}))
            name = catalog.display_name("teacher", teacher_id)
            conflicts.append(Conflict(
                type=TEACHER_DOUBLE_BOOKED,
                severity=HIGH,
                description=f"{name} is assigned to multiple classes ({', '.join(classes)}) on {where}",
                class_ids=classes,
                day=cell[0],
                period=cell[1],
                teacher_id=teacher_id,
            ))

        rooms: Dict[str, List[Assignment]] = defaultdict(list)
        for a in here:
            if not catalog.is_shareable(a.room_id):
                rooms[a.room_id].append(a)
        for room_id in sorted(rooms):
            group = rooms[room_id]
            if len(group) < 2:
                continue
            classes = tuple(sorted({a.class_id for a in group}))
            name = catalog.display_name("room", room_id)
            conflicts.append(Conflict(
                type=ROOM_DOUBLE_BOOKED,
                severity=MEDIUM,
                description=f"{name} is double-booked ({', '.join(classes)}) on {where}",
                class_ids=classes,
                day=cell[0],
                period=cell[1],
                room_id=room_id,
            ))
    return conflicts


def _quota_conflicts(
    assignments: Sequence[Assignment],
    catalog: Catalog,
    class_ids: Sequence[str],
) -> List[Conflict]:
    placed: Counter = Counter((a.class_id, a.subject_id) for a in assignments)
    extra_subjects: Dict[str, List[str]] = defaultdict(list)
    for class_id, subject_id in placed:
        if subject_id not in extra_subjects[class_id]:
            extra_subjects[class_id].append(subject_id)

    conflicts: List[Conflict] = []
    for class_id in class_ids:
        if not catalog.has_class(class_id):
            logger.debug(f"Skipping quota check for class {class_id} missing from the catalog")
            continue
        group = catalog.class_group(class_id)
        required = set()
        for req in group.requirements:
            required.add(req.subject_id)
            count = placed.get((class_id, req.subject_id), 0)
            if count != req.periods_per_week:
                conflicts.append(quota_conflict(catalog, class_id, req.subject_id, count, req.periods_per_week))
        for subject_id in sorted(s for s in extra_subjects.get(class_id, []) if s not in required):
            conflicts.append(quota_conflict(catalog, class_id, subject_id, placed[(class_id, subject_id)], 0))
    return conflicts


def check_conflicts(
    assignments: Iterable[Assignment],
    catalog: Catalog,
    class_ids: Optional[Iterable[str]] = None,
) -> ConflictReport:
    """Report every hard-constraint violation in `assignments`.

    Scans each (day, period) for teachers and non-shareable rooms used by
    more than one class, then compares placed periods with each class's
    quotas. `class_ids` limits the quota check; by default every class of
    the catalog is checked. The result is fully ordered, so checking the
    same assignments twice gives equal reports.

    Raises CatalogError for a lesson with an unknown id, a lesson outside
    the teaching cells, or two lessons of one class in the same cell.
    """
    assignments = list(assignments)
    _validate(assignments, catalog)
    if class_ids is None:
        scope: Tuple[str, ...] = tuple(g.id for g in catalog.class_groups)
    else:
        scope = tuple(dict.fromkeys(class_ids))

    conflicts = _booking_conflicts(assignments, catalog)
    conflicts.extend(_quota_conflicts(assignments, catalog, scope))
    report = ConflictReport(tuple(conflicts))
    logger.debug(f"Checked {len(assignments)} assignments: {len(report)} conflicts, severity {report.severity}")
    return report
