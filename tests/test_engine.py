from collections import Counter

import pytest

from conftest import problem
from timetabler.catalog import catalog_from_dict
from timetabler.conflicts import check_conflicts
from timetabler.engine import GenerationConfig, generate_schedule
from timetabler.errors import ConfigError
from timetabler.models import QUOTA_UNMET, ROOM_DOUBLE_BOOKED, TEACHER_DOUBLE_BOOKED
from timetabler.sample_data import generate_problem


def cells_of(schedule, subject_id):
    return [a.cell for a in schedule.assignments if a.subject_id == subject_id]


def assert_no_double_bookings(result, catalog):
    teacher_cells = Counter((a.teacher_id, a.cell) for a in result.assignments)
    assert max(teacher_cells.values(), default=0) <= 1
    room_cells = Counter(
        (a.room_id, a.cell) for a in result.assignments if not catalog.is_shareable(a.room_id)
    )
    assert max(room_cells.values(), default=0) <= 1


def test_single_class_fills_every_slot(scenario_a):
    result = generate_schedule(scenario_a)
    schedule = result.schedule_for("C1")

    assert len(result.conflicts) == 0
    assert len(schedule.assignments) == 6
    assert cells_of(schedule, "math") == [(0, 0), (1, 0), (2, 0)]
    assert cells_of(schedule, "eng") == [(0, 1), (1, 1), (2, 1)]
    assert result.efficiency == 100.0
    assert schedule.efficiency == 100.0
    assert {a.room_id for a in schedule.assignments} == {"R1"}


def test_schedule_metadata(scenario_a):
    config = GenerationConfig(academic_year="2025-2026", term="Term 2", generated_by="registrar")
    schedule = generate_schedule(scenario_a, config).schedules[0]
    assert schedule.academic_year == "2025-2026"
    assert schedule.term == "Term 2"
    assert schedule.generated_by == "registrar"
    assert schedule.generated_at.tzinfo is not None
    assert schedule.last_optimized is None


def test_shared_teacher_without_enough_availability(scenario_b):
    result = generate_schedule(scenario_b)

    assert_no_double_bookings(result, scenario_b)
    assert len(result.schedule_for("C1").assignments) == 3
    assert len(result.schedule_for("C2").assignments) == 1

    unmet = result.conflicts.of_type(QUOTA_UNMET)
    assert len(unmet) == 1
    assert unmet[0].class_ids == ("C2",)
    assert (unmet[0].placed, unmet[0].expected) == (1, 3)
    assert result.conflicts.of_type(TEACHER_DOUBLE_BOOKED) == []
    assert result.conflicts.severity == "informational"
    assert result.schedule_for("C1").conflicts.conflicts == ()


def test_unsatisfiable_class_is_logged(scenario_b, caplog):
    generate_schedule(scenario_b)
    assert "Class C2 could not be fully scheduled" in caplog.text


def teacher_window_problem():
    # B's teacher can only come in the first period, so A must not take it
    return catalog_from_dict(problem(
        subjects=[
            {"id": "A", "periods_per_week": 1},
            {"id": "B", "periods_per_week": 1},
        ],
        teachers=[
            {"id": "TA", "subjects": ["A"]},
            {"id": "TB", "subjects": ["B"], "available": [[0, 0]]},
        ],
        rooms=[{"id": "R1", "capacity": 30}],
        classes=[{"id": "C1", "student_count": 20, "subjects": ["A", "B"]}],
        days=1,
        periods=2,
    ))


def test_backtracks_out_of_a_dead_end():
    catalog = teacher_window_problem()
    result = generate_schedule(catalog)
    schedule = result.schedule_for("C1")

    assert cells_of(schedule, "A") == [(0, 1)]
    assert cells_of(schedule, "B") == [(0, 0)]
    assert result.stats["backtracks"] == 1.0
    assert len(result.conflicts) == 0


def test_exhausted_backtrack_budget_gives_partial_schedule():
    catalog = teacher_window_problem()
    result = generate_schedule(catalog, GenerationConfig(max_backtracks=0))

    assert len(result.assignments) == 1
    assert result.stats["classes_budget_exhausted"] == 1.0
    unmet = result.conflicts.of_type(QUOTA_UNMET)
    assert [c.subject_id for c in unmet] == ["B"]


def test_expired_deadline_still_returns_every_class(scenario_b):
    result = generate_schedule(scenario_b, GenerationConfig(deadline_seconds=0))
    assert [s.class_id for s in result.schedules] == ["C1", "C2"]
    assert_no_double_bookings(result, scenario_b)


def test_lessons_are_spread_over_qualified_teachers():
    catalog = catalog_from_dict(problem(
        subjects=[{"id": "math", "periods_per_week": 2}],
        teachers=[
            {"id": "T1", "subjects": ["math"]},
            {"id": "T2", "subjects": ["math"]},
        ],
        rooms=[{"id": "R1", "capacity": 30}],
        classes=[{"id": "C1", "student_count": 20, "subjects": ["math"]}],
        days=1,
        periods=2,
    ))
    result = generate_schedule(catalog)
    assert sorted(a.teacher_id for a in result.assignments) == ["T1", "T2"]


def test_weekly_cap_is_honoured():
    catalog = catalog_from_dict(problem(
        subjects=[{"id": "math", "periods_per_week": 3}],
        teachers=[{"id": "T1", "subjects": ["math"], "max_periods_per_week": 2}],
        rooms=[{"id": "R1", "capacity": 30}],
        classes=[{"id": "C1", "student_count": 20, "subjects": ["math"]}],
    ))
    result = generate_schedule(catalog)
    assert len(result.assignments) == 2
    assert result.conflicts.of_type(QUOTA_UNMET)[0].placed == 2


def test_special_subjects_use_a_room_of_the_right_type_and_size():
    catalog = catalog_from_dict(problem(
        subjects=[
            {"id": "sci", "periods_per_week": 2, "room_type": "lab"},
            {"id": "math", "periods_per_week": 2},
        ],
        teachers=[
            {"id": "T1", "subjects": ["sci"]},
            {"id": "T2", "subjects": ["math"]},
        ],
        rooms=[
            {"id": "R1", "type": "classroom", "capacity": 40},
            {"id": "LAB-S", "type": "lab", "capacity": 10},
            {"id": "LAB-B", "type": "lab", "capacity": 40},
        ],
        classes=[{"id": "C1", "student_count": 30, "subjects": ["sci", "math"], "home_room_id": "R1"}],
    ))
    schedule = generate_schedule(catalog).schedule_for("C1")
    assert {a.room_id for a in schedule.assignments if a.subject_id == "sci"} == {"LAB-B"}
    assert {a.room_id for a in schedule.assignments if a.subject_id == "math"} == {"R1"}


def test_no_suitable_room_leaves_the_subject_unmet():
    catalog = catalog_from_dict(problem(
        subjects=[{"id": "sci", "periods_per_week": 2, "room_type": "lab"}],
        teachers=[{"id": "T1", "subjects": ["sci"]}],
        rooms=[{"id": "LAB-S", "type": "lab", "capacity": 10}],
        classes=[{"id": "C1", "student_count": 30, "subjects": ["sci"]}],
    ))
    result = generate_schedule(catalog)
    assert result.assignments == []
    assert result.conflicts.of_type(QUOTA_UNMET)[0].placed == 0


def test_shareable_room_hosts_several_classes():
    catalog = catalog_from_dict(problem(
        subjects=[{"id": "pe", "periods_per_week": 1, "room_type": "outdoor"}],
        teachers=[
            {"id": "T1", "subjects": ["pe"]},
            {"id": "T2", "subjects": ["pe"]},
        ],
        rooms=[{"id": "PG", "name": "Playground", "type": "outdoor", "capacity": 500, "shareable": True}],
        classes=[
            {"id": "C1", "student_count": 30, "subjects": ["pe"]},
            {"id": "C2", "student_count": 30, "subjects": ["pe"]},
        ],
        days=1,
        periods=1,
    ))
    result = generate_schedule(catalog)
    assert len(result.assignments) == 2
    assert {a.cell for a in result.assignments} == {(0, 0)}
    assert {a.teacher_id for a in result.assignments} == {"T1", "T2"}
    assert len(result.conflicts) == 0


def test_example_meets_every_quota(example_catalog):
    result = generate_schedule(example_catalog)
    assert_no_double_bookings(result, example_catalog)
    assert len(result.conflicts) == 0
    assert len(result.assignments) == sum(g.total_periods for g in example_catalog.class_groups)
    for a in result.assignments:
        assert example_catalog.grid.is_teaching(a.cell)
        assert example_catalog.teacher(a.teacher_id).is_available(a.cell)
        assert example_catalog.teacher(a.teacher_id).can_teach(a.subject_id)


def test_generation_is_deterministic(example_catalog):
    first = generate_schedule(example_catalog)
    second = generate_schedule(example_catalog)
    assert first.assignments == second.assignments


def test_engine_report_matches_the_detector(scenario_b):
    result = generate_schedule(scenario_b)
    assert check_conflicts(result.assignments, scenario_b).keys == result.conflicts.keys


@pytest.mark.parametrize("size", ["small", "medium"])
def test_sample_problems_have_no_clashes(size):
    catalog = catalog_from_dict(generate_problem(size, seed=1))
    result = generate_schedule(catalog)
    report = check_conflicts(result.assignments, catalog)
    assert report.of_type(TEACHER_DOUBLE_BOOKED) == []
    assert report.of_type(ROOM_DOUBLE_BOOKED) == []


@pytest.mark.parametrize(
    "config",
    [
        GenerationConfig(strategy="genetic"),
        GenerationConfig(max_backtracks=-1),
        GenerationConfig(deadline_seconds=-5),
    ],
)
def test_invalid_generation_config(scenario_a, config):
    with pytest.raises(ConfigError):
        generate_schedule(scenario_a, config)


def test_result_as_dict(scenario_a):
    data = generate_schedule(scenario_a).as_dict()
    assert data["conflictCount"] == 0
    assert data["severity"] == "none"
    assert data["strategy"] == "backtracking"
    assert len(data["schedules"][0]["assignments"]) == 6
