"""
Sample problem generator for benchmarks and demos.

Builds a school of the requested size in the plain-dict shape accepted by
`catalog_from_dict`. Supply is sized from demand (teachers per subject,
labs per lab period) so every generated problem is satisfiable; the seed
only varies names, class sizes and a few unavailable cells per teacher.

Usage:
    from timetabler.sample_data import generate_problem

    data = generate_problem("medium", seed=3)
    catalog = catalog_from_dict(data)
"""

import math
import random
from typing import Dict, List

from .catalog import CLASSROOM, LAB, OUTDOOR, CatalogDataDict, ClassDict, RoomDict, SubjectDict, TeacherDict
from .config import DEFAULT_BREAK_PERIODS, DEFAULT_DAYS_PER_WEEK, DEFAULT_LUNCH_PERIODS, DEFAULT_PERIODS_PER_DAY
from .errors import ConfigError

# =============================================================================
# Name data
# =============================================================================

TITLES = ["Mr.", "Mrs.", "Ms.", "Dr."]

LAST_NAMES = [
    "Johnson", "Smith", "Davis", "Wilson", "Mwangi", "Otieno", "Kamau", "Njoroge",
    "Achieng", "Wanjiru", "Brown", "Taylor", "Anderson", "Thomas", "Moore", "Kariuki",
    "Mutua", "Ochieng", "Clark", "Lewis", "Walker", "Hall", "Young", "King",
]

SUBJECTS: List[SubjectDict] = [
    {"id": "math", "name": "Mathematics", "periods_per_week": 5},
    {"id": "eng", "name": "English", "periods_per_week": 5},
    {"id": "sci", "name": "Science", "periods_per_week": 4, "room_type": LAB},
    {"id": "sst", "name": "Social Studies", "periods_per_week": 3},
    {"id": "kis", "name": "Kiswahili", "periods_per_week": 3},
    {"id": "pe", "name": "Physical Education", "periods_per_week": 2, "room_type": OUTDOOR},
    {"id": "art", "name": "Art", "periods_per_week": 1},
    {"id": "cs", "name": "Computer Studies", "periods_per_week": 2, "room_type": LAB},
]

PERIOD_TIMES = [
    "8:00-8:40", "8:40-9:20", "9:20-9:40", "9:40-10:20",
    "10:20-11:00", "11:00-11:40", "11:40-12:20", "12:20-1:00",
]

# size -> (grades, streams per grade)
SIZES = {
    "small": (1, 2),
    "medium": (3, 2),
    "large": (4, 3),
}

# Weekly periods a generated teacher is expected to carry at most
TEACHER_LOAD = 20
LAB_CAPACITY = 45
CLASSROOM_CAPACITY = 40


def _teacher_name(rng: random.Random, used: set) -> str:
    while True:
        name = f"{rng.choice(TITLES)} {rng.choice(LAST_NAMES)}"
        if name not in used or len(used) >= len(TITLES) * len(LAST_NAMES):
            used.add(name)
            return name


def generate_problem(size: str = "small", seed: int = 0) -> CatalogDataDict:
    """Generate a satisfiable catalog dict on the default 5 x 8 grid."""
    if size not in SIZES:
        raise ConfigError(f"Unknown problem size {size!r}; expected one of {sorted(SIZES)}")
    rng = random.Random(seed)
    grades, streams = SIZES[size]

    classes: List[ClassDict] = []
    rooms: List[RoomDict] = []
    for g in range(grades):
        for s in range(streams):
            class_id = f"{7 + g}{chr(ord('A') + s)}"
            room_id = f"R{len(rooms) + 1:02d}"
            rooms.append({
                "id": room_id,
                "name": f"Room {11 + len(rooms)}",
                "type": CLASSROOM,
                "capacity": CLASSROOM_CAPACITY,
            })
            classes.append({
                "id": class_id,
                "grade": f"Grade {7 + g}",
                "student_count": rng.randint(25, CLASSROOM_CAPACITY),
                "subjects": [subject["id"] for subject in SUBJECTS],
                "home_room_id": room_id,
            })

    demand: Dict[str, int] = {
        subject["id"]: subject["periods_per_week"] * len(classes) for subject in SUBJECTS
    }

    lab_periods = sum(demand[s["id"]] for s in SUBJECTS if s.get("room_type") == LAB)
    teaching_cells = DEFAULT_DAYS_PER_WEEK * (
        DEFAULT_PERIODS_PER_DAY - len(DEFAULT_BREAK_PERIODS) - len(DEFAULT_LUNCH_PERIODS)
    )
    # labs at two-thirds utilisation at most
    num_labs = max(1, math.ceil(lab_periods / (teaching_cells * 2 / 3)))
    for i in range(num_labs):
        rooms.append({"id": f"LAB{i + 1}", "name": f"Lab {i + 1}", "type": LAB, "capacity": LAB_CAPACITY})
    rooms.append({"id": "PG", "name": "Playground", "type": OUTDOOR, "capacity": 500, "shareable": True})

    teachers: List[TeacherDict] = []
    used_names: set = set()
    for subject in SUBJECTS:
        count = max(1, math.ceil(demand[subject["id"]] / TEACHER_LOAD))
        for _ in range(count):
            teacher_id = f"T{len(teachers) + 1:03d}"
            teacher: TeacherDict = {
                "id": teacher_id,
                "name": _teacher_name(rng, used_names),
                "subjects": [subject["id"]],
            }
            # a couple of blocked cells (staff meetings and the like)
            blocked = rng.randint(0, 2)
            if blocked:
                teacher["unavailable"] = [
                    [rng.randrange(DEFAULT_DAYS_PER_WEEK), rng.choice([0, 1, 3, 5, 6, 7])]
                    for _ in range(blocked)
                ]
            teachers.append(teacher)

    return {
        "subjects": [dict(s) for s in SUBJECTS],  # type: ignore[misc]
        "teachers": teachers,
        "rooms": rooms,
        "classes": classes,
        "grid": {
            "days_per_week": DEFAULT_DAYS_PER_WEEK,
            "periods_per_day": DEFAULT_PERIODS_PER_DAY,
            "break_periods": list(DEFAULT_BREAK_PERIODS),
            "lunch_periods": list(DEFAULT_LUNCH_PERIODS),
            "period_times": list(PERIOD_TIMES),
        },
    }
