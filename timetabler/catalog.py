"""Domain catalog: the read-only inputs of one generation run.

The catalog is built fresh for every request from caller-supplied lists
(subjects, teachers, rooms, class groups) and the slot grid, and is
validated once at construction.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, TypedDict, Union

from .errors import CatalogError, ConfigError
from .grid import Cell, GridConfig, SlotGrid, grid_from_config

logger = logging.getLogger(__name__)

CLASSROOM = "classroom"
LAB = "lab"
OUTDOOR = "outdoor"


# ================================================================
# Entities
# ================================================================

@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    periods_per_week: int
    room_type: Optional[str] = None


@dataclass(frozen=True)
class Teacher:
    """
    A member of staff.

    availability: cells the teacher can be scheduled in; None means every
    teaching slot of the grid.
    max_periods_per_week: optional weekly cap honoured by generation.
    """

    id: str
    name: str
    subjects: FrozenSet[str]
    availability: Optional[FrozenSet[Cell]] = None
    max_periods_per_week: Optional[int] = None

    def can_teach(self, subject_id: str) -> bool:
        return subject_id in self.subjects

    def is_available(self, cell: Cell) -> bool:
        return self.availability is None or cell in self.availability


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    type: str = CLASSROOM
    capacity: int = 0
    # Shareable rooms (playground, cafeteria) are never double-booked.
    shareable: bool = False


@dataclass(frozen=True)
class SubjectRequirement:
    subject_id: str
    periods_per_week: int


@dataclass(frozen=True)
class ClassGroup:
    id: str
    grade: str = ""
    student_count: int = 0
    requirements: Tuple[SubjectRequirement, ...] = field(default_factory=tuple)
    home_room_id: Optional[str] = None

    @property
    def total_periods(self) -> int:
        return sum(r.periods_per_week for r in self.requirements)

    def quota(self, subject_id: str) -> int:
        for r in self.requirements:
            if r.subject_id == subject_id:
                return r.periods_per_week
        return 0


# ================================================================
# Catalog
# ================================================================

def _index(items: Sequence, what: str) -> Dict[str, object]:
    index: Dict[str, object] = {}
    for item in items:
        if item.id in index:
            raise CatalogError(f"Duplicate {what} id {item.id!r}")
        index[item.id] = item
    return index


class Catalog:
    def __init__(
        self,
        subjects: Sequence[Subject],
        teachers: Sequence[Teacher],
        rooms: Sequence[Room],
        class_groups: Sequence[ClassGroup],
        grid: SlotGrid,
    ):
        self.subjects: Tuple[Subject, ...] = tuple(subjects)
        self.teachers: Tuple[Teacher, ...] = tuple(teachers)
        self.rooms: Tuple[Room, ...] = tuple(rooms)
        self.class_groups: Tuple[ClassGroup, ...] = tuple(class_groups)
        self.grid = grid

        self._subjects = _index(self.subjects, "subject")
        self._teachers = _index(self.teachers, "teacher")
        self._rooms = _index(self.rooms, "room")
        self._classes = _index(self.class_groups, "class")
        self._room_order = {r.id: i for i, r in enumerate(self.rooms)}

        self._validate()

        self._qualified: Dict[str, Tuple[Teacher, ...]] = {
            s.id: tuple(t for t in self.teachers if t.can_teach(s.id)) for s in self.subjects
        }

    def _validate(self) -> None:
        teaching_count = len(self.grid.teaching_slots)

        for s in self.subjects:
            if s.periods_per_week <= 0:
                raise CatalogError(f"Subject {s.id!r} needs a positive periods-per-week quota")
            if s.periods_per_week > teaching_count:
                raise CatalogError(
                    f"Subject {s.id!r} needs {s.periods_per_week} periods per week "
                    f"but the grid only has {teaching_count} teaching slots"
                )

        for t in self.teachers:
            unknown = sorted(t.subjects - set(self._subjects))
            if unknown:
                logger.warning(f"Teacher {t.id} lists unknown subjects {unknown}; ignoring them.")
            if t.availability is not None:
                outside = sorted(c for c in t.availability if not self.grid.contains(c))
                if outside:
                    raise CatalogError(
                        f"Teacher {t.id!r} availability has cells outside the grid: {outside}"
                    )
            if t.max_periods_per_week is not None and t.max_periods_per_week < 0:
                raise CatalogError(f"Teacher {t.id!r} has a negative weekly maximum")

        for g in self.class_groups:
            if g.home_room_id is not None and g.home_room_id not in self._rooms:
                raise CatalogError(f"Class {g.id!r} has unknown home room {g.home_room_id!r}")
            seen = set()
            for req in g.requirements:
                if req.subject_id not in self._subjects:
                    raise CatalogError(
                        f"Class {g.id!r} requires unknown subject {req.subject_id!r}"
                    )
                if req.subject_id in seen:
                    raise CatalogError(
                        f"Class {g.id!r} lists subject {req.subject_id!r} more than once"
                    )
                seen.add(req.subject_id)
                if req.periods_per_week <= 0:
                    raise CatalogError(
                        f"Class {g.id!r} needs a positive quota for {req.subject_id!r}"
                    )
                if req.periods_per_week > teaching_count:
                    raise CatalogError(
                        f"Class {g.id!r} needs {req.periods_per_week} periods of "
                        f"{req.subject_id!r} but the grid only has {teaching_count} teaching slots"
                    )
                if not any(t.can_teach(req.subject_id) for t in self.teachers):
                    raise CatalogError(
                        f"No teacher is qualified for subject {req.subject_id!r} "
                        f"required by class {g.id!r}"
                    )

    # ------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------

    def subject(self, subject_id: str) -> Subject:
        return self._subjects[subject_id]  # type: ignore[return-value]

    def teacher(self, teacher_id: str) -> Teacher:
        return self._teachers[teacher_id]  # type: ignore[return-value]

    def room(self, room_id: str) -> Room:
        return self._rooms[room_id]  # type: ignore[return-value]

    def class_group(self, class_id: str) -> ClassGroup:
        return self._classes[class_id]  # type: ignore[return-value]

    def has_teacher(self, teacher_id: str) -> bool:
        return teacher_id in self._teachers

    def has_class(self, class_id: str) -> bool:
        return class_id in self._classes

    def has_subject(self, subject_id: str) -> bool:
        return subject_id in self._subjects

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms

    def is_shareable(self, room_id: str) -> bool:
        return room_id in self._rooms and self.room(room_id).shareable

    def qualified_teachers(self, subject_id: str) -> Tuple[Teacher, ...]:
        return self._qualified.get(subject_id, ())

    def candidate_rooms(self, group: ClassGroup, subject: Subject) -> List[Room]:
        """Rooms a lesson of `subject` for `group` may use, best first.

        Special room types take the tightest room that still seats the
        class; everything else goes to the home room, or to any classroom
        when the class has none.
        """
        if subject.room_type is None and group.home_room_id is not None:
            return [self.room(group.home_room_id)]

        wanted = subject.room_type or CLASSROOM
        fitting = [
            r for r in self.rooms
            if r.type == wanted and r.capacity >= group.student_count
        ]
        return sorted(fitting, key=lambda r: (r.capacity, self._room_order[r.id]))

    def display_name(self, kind: str, ident: Optional[str]) -> str:
        if ident is None:
            return "-"
        lookup = {
            "subject": self._subjects,
            "teacher": self._teachers,
            "room": self._rooms,
        }[kind]
        item = lookup.get(ident)
        return getattr(item, "name", ident) if item is not None else ident


# ================================================================
# Loading from plain dicts (HTTP bodies, JSON fixtures)
# ================================================================

class SubjectDict(TypedDict, total=False):
    id: str
    name: str
    periods_per_week: int
    room_type: Optional[str]


class TeacherDict(TypedDict, total=False):
    id: str
    name: str
    subjects: Iterable[str]
    # explicit availability; omitted means every teaching slot
    available: Optional[Iterable[Sequence[int]]]
    # removed from the availability
    unavailable: Optional[Iterable[Sequence[int]]]
    max_periods_per_week: Optional[int]


class RoomDict(TypedDict, total=False):
    id: str
    name: str
    type: str
    capacity: int
    shareable: bool


class RequirementDict(TypedDict, total=False):
    subject_id: str
    periods_per_week: Optional[int]


class ClassDict(TypedDict, total=False):
    id: str
    grade: str
    student_count: int
    # subject ids, or requirement dicts overriding the subject quota
    subjects: List[Union[str, RequirementDict]]
    home_room_id: Optional[str]


class GridDict(TypedDict, total=False):
    days_per_week: int
    periods_per_day: int
    break_periods: List[int]
    lunch_periods: List[int]
    period_times: Optional[List[str]]
    break_room: str
    lunch_room: str


class CatalogDataDict(TypedDict, total=False):
    subjects: List[SubjectDict]
    teachers: List[TeacherDict]
    rooms: List[RoomDict]
    classes: List[ClassDict]
    grid: GridDict


def _cells(raw: Iterable[Sequence[int]], owner: str) -> FrozenSet[Cell]:
    cells = set()
    for item in raw:
        try:
            day, period = item
            cells.add((int(day), int(period)))
        except (TypeError, ValueError):
            raise CatalogError(f"{owner}: expected [day, period] pairs, got {item!r}")
    return frozenset(cells)


def grid_config_from_dict(data: Optional[GridDict]) -> GridConfig:
    data = data or {}
    defaults = GridConfig()
    period_times = data.get("period_times")
    try:
        return GridConfig(
            days_per_week=int(data.get("days_per_week", defaults.days_per_week)),
            periods_per_day=int(data.get("periods_per_day", defaults.periods_per_day)),
            break_periods=tuple(data.get("break_periods", defaults.break_periods)),
            lunch_periods=tuple(data.get("lunch_periods", defaults.lunch_periods)),
            period_times=tuple(period_times) if period_times is not None else None,
            break_room=data.get("break_room") or defaults.break_room,
            lunch_room=data.get("lunch_room") or defaults.lunch_room,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid grid configuration: {e}")


def catalog_from_dict(data: CatalogDataDict) -> Catalog:
    """Build and validate a Catalog from the plain-dict problem shape."""
    grid = grid_from_config(grid_config_from_dict(data.get("grid")))

    try:
        subjects = [
            Subject(
                id=str(s["id"]),
                name=str(s.get("name") or s["id"]),
                periods_per_week=int(s["periods_per_week"]),
                room_type=str(s["room_type"]).lower() if s.get("room_type") else None,
            )
            for s in data.get("subjects") or []
        ]
        subject_quota = {s.id: s.periods_per_week for s in subjects}

        teachers = []
        for t in data.get("teachers") or []:
            t_id = str(t["id"])
            available = t.get("available")
            availability = (
                _cells(available, f"Teacher {t_id}") if available is not None else None
            )
            unavailable = t.get("unavailable")
            if unavailable:
                base = availability if availability is not None else frozenset(grid.teaching_slots)
                availability = base - _cells(unavailable, f"Teacher {t_id}")
            max_periods = t.get("max_periods_per_week")
            teachers.append(Teacher(
                id=t_id,
                name=str(t.get("name") or t_id),
                subjects=frozenset(str(x) for x in t.get("subjects") or []),
                availability=availability,
                max_periods_per_week=int(max_periods) if max_periods is not None else None,
            ))

        rooms = [
            Room(
                id=str(r["id"]),
                name=str(r.get("name") or r["id"]),
                type=str(r.get("type") or CLASSROOM).lower(),
                capacity=int(r.get("capacity") or 0),
                shareable=bool(r.get("shareable", False)),
            )
            for r in data.get("rooms") or []
        ]

        class_groups = []
        for c in data.get("classes") or []:
            requirements = []
            for item in c.get("subjects") or []:
                if isinstance(item, str):
                    subject_id, periods = item, None
                else:
                    subject_id, periods = str(item["subject_id"]), item.get("periods_per_week")
                if periods is None:
                    if subject_id not in subject_quota:
                        raise CatalogError(
                            f"Class {c['id']!r} requires unknown subject {subject_id!r}"
                        )
                    periods = subject_quota[subject_id]
                requirements.append(SubjectRequirement(subject_id, int(periods)))
            home = c.get("home_room_id")
            class_groups.append(ClassGroup(
                id=str(c["id"]),
                grade=str(c.get("grade") or ""),
                student_count=int(c.get("student_count") or 0),
                requirements=tuple(requirements),
                home_room_id=str(home) if home is not None else None,
            ))
    except CatalogError:
        raise
    except KeyError as e:
        raise CatalogError(f"Missing required field {e}")
    except (TypeError, ValueError) as e:
        raise CatalogError(f"Malformed catalog: {e}")

    catalog = Catalog(subjects, teachers, rooms, class_groups, grid)
    logger.debug(
        f"Catalog loaded: {len(subjects)} subjects, {len(teachers)} teachers, "
        f"{len(rooms)} rooms, {len(class_groups)} classes"
    )
    return catalog
