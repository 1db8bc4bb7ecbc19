import json
import os
from typing import Any, Dict, List, Optional

import pytest

from timetabler.catalog import catalog_from_dict
from timetabler.models import Assignment

EXAMPLE_PATH = os.path.join(os.path.dirname(__file__), "..", "timetabler", "example.json")


def problem(
    subjects: List[Dict[str, Any]],
    teachers: List[Dict[str, Any]],
    rooms: List[Dict[str, Any]],
    classes: List[Dict[str, Any]],
    days: int = 3,
    periods: int = 2,
    break_periods: Optional[List[int]] = None,
    lunch_periods: Optional[List[int]] = None,
) -> Dict[str, Any]:
    return {
        "subjects": subjects,
        "teachers": teachers,
        "rooms": rooms,
        "classes": classes,
        "grid": {
            "days_per_week": days,
            "periods_per_day": periods,
            "break_periods": break_periods or [],
            "lunch_periods": lunch_periods or [],
        },
    }


def lesson(class_id, day, period, subject_id, teacher_id, room_id) -> Assignment:
    return Assignment(class_id, day, period, subject_id, teacher_id, room_id)


@pytest.fixture
def example_data() -> Dict[str, Any]:
    with open(EXAMPLE_PATH, "r") as f:
        return json.load(f)


@pytest.fixture
def example_catalog(example_data):
    return catalog_from_dict(example_data)


@pytest.fixture
def scenario_a():
    """One class, two subjects x 3, six teaching slots, one teacher each, one room."""
    return catalog_from_dict(problem(
        subjects=[
            {"id": "math", "name": "Mathematics", "periods_per_week": 3},
            {"id": "eng", "name": "English", "periods_per_week": 3},
        ],
        teachers=[
            {"id": "T1", "name": "Mrs. Johnson", "subjects": ["math"]},
            {"id": "T2", "name": "Mr. Smith", "subjects": ["eng"]},
        ],
        rooms=[{"id": "R1", "name": "Room 12", "capacity": 30}],
        classes=[{"id": "C1", "student_count": 20, "subjects": ["math", "eng"]}],
    ))


@pytest.fixture
def scenario_b():
    """Two classes sharing one teacher who is free in only four of six cells."""
    return catalog_from_dict(problem(
        subjects=[{"id": "sci", "name": "Science", "periods_per_week": 3}],
        teachers=[{
            "id": "T1",
            "name": "Mrs. Davis",
            "subjects": ["sci"],
            "available": [[0, 0], [0, 1], [1, 0], [1, 1]],
        }],
        rooms=[
            {"id": "R1", "name": "Room 12", "capacity": 30},
            {"id": "R2", "name": "Room 13", "capacity": 30},
        ],
        classes=[
            {"id": "C1", "student_count": 20, "subjects": ["sci"]},
            {"id": "C2", "student_count": 20, "subjects": ["sci"]},
        ],
    ))


def lab_clash_data(days: int = 2, periods: int = 2, chem_available=None) -> Dict[str, Any]:
    """Two classes whose chemistry lessons share Lab 1."""
    def chem_teacher(teacher_id, name):
        teacher = {"id": teacher_id, "name": name, "subjects": ["chem"]}
        if chem_available is not None:
            teacher["available"] = chem_available
        return teacher

    return problem(
        subjects=[
            {"id": "chem", "name": "Chemistry", "periods_per_week": 1, "room_type": "lab"},
            {"id": "math", "name": "Mathematics", "periods_per_week": 1},
            {"id": "eng", "name": "English", "periods_per_week": 1},
        ],
        teachers=[
            chem_teacher("TC1", "Mrs. Davis"),
            chem_teacher("TC2", "Mr. Kamau"),
            {"id": "TM", "name": "Mrs. Johnson", "subjects": ["math"]},
            {"id": "TE", "name": "Mr. Smith", "subjects": ["eng"]},
        ],
        rooms=[
            {"id": "L1", "name": "Lab 1", "type": "lab", "capacity": 40},
            {"id": "H1", "name": "Room 12", "capacity": 40},
            {"id": "H2", "name": "Room 13", "capacity": 40},
        ],
        classes=[
            {"id": "C1", "student_count": 30, "subjects": ["chem", "math"], "home_room_id": "H1"},
            {"id": "C2", "student_count": 30, "subjects": ["chem", "eng"], "home_room_id": "H2"},
        ],
        days=days,
        periods=periods,
    )
