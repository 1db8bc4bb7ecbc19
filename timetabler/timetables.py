"""Render schedules as weekly tables for display."""

from typing import Any, Dict, List, Sequence

from .catalog import Catalog
from .models import Assignment, Schedule

FREE = "Free"
IDLE = "-"


def class_timetable(schedule: Schedule, catalog: Catalog) -> Dict[str, List[Dict[str, Any]]]:
    """One row per period for each day; break and lunch rows included."""
    grid = catalog.grid
    table: Dict[str, List[Dict[str, Any]]] = {}
    for day in range(grid.days_per_week):
        rows = []
        for period in range(grid.periods_per_day):
            row: Dict[str, Any] = {
                "period": period + 1,
                "time": grid.period_label(period),
            }
            label = grid.fixed_label(period)
            lesson = schedule.at((day, period))
            if label is not None:
                row.update(subject=label, teacher=None, room=grid.fixed_room(period))
            elif lesson is None:
                row.update(subject=FREE, teacher=None, room=None)
            else:
                row.update(
                    subject=catalog.display_name("subject", lesson.subject_id),
                    teacher=catalog.display_name("teacher", lesson.teacher_id),
                    room=catalog.display_name("room", lesson.room_id),
                )
            rows.append(row)
        table[grid.day_name(day)] = rows
    return table


def teacher_timetables(assignments: Sequence[Assignment], catalog: Catalog) -> Dict[str, Dict[str, List[str]]]:
    """teacher id -> day name -> one entry per period, `-` when idle.

    Teachers with no lesson still get an all-idle week. A teacher booked
    twice in one cell shows both entries joined by ` / `.
    """
    grid = catalog.grid
    tables: Dict[str, Dict[str, List[str]]] = {}

    def blank() -> Dict[str, List[str]]:
        week = {}
        for day in range(grid.days_per_week):
            week[grid.day_name(day)] = [IDLE] * grid.periods_per_day
        return week

    for t in catalog.teachers:
        tables[t.id] = blank()

    for a in sorted(assignments, key=lambda a: (a.teacher_id, a.day, a.period, a.class_id)):
        if not grid.contains(a.cell):
            continue
        week = tables.setdefault(a.teacher_id, blank())
        entry = f"{a.class_id}-{catalog.display_name('subject', a.subject_id)}@{catalog.display_name('room', a.room_id)}"
        day = week[grid.day_name(a.day)]
        current = day[a.period]
        if current == IDLE:
            day[a.period] = entry
        else:
            day[a.period] = f"{current} / {entry}"
    return tables
