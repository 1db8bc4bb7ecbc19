from collections import Counter

from timetabler.conflicts import check_conflicts
from timetabler.cp_sat import solve_with_cp_sat
from timetabler.engine import CP_SAT, GenerationConfig, generate_schedule
from timetabler.models import QUOTA_UNMET, ROOM_DOUBLE_BOOKED, TEACHER_DOUBLE_BOOKED


def test_cp_sat_fills_every_slot_and_spreads_subjects(scenario_a):
    result = generate_schedule(scenario_a, GenerationConfig(strategy=CP_SAT))

    assert result.strategy == CP_SAT
    assert len(result.assignments) == 6
    assert len(result.conflicts) == 0
    for subject_id in ("math", "eng"):
        days = {a.day for a in result.assignments if a.subject_id == subject_id}
        assert days == {0, 1, 2}


def test_cp_sat_reports_shortage_instead_of_double_booking(scenario_b):
    result = generate_schedule(scenario_b, GenerationConfig(strategy=CP_SAT))

    assert len(result.assignments) == 4
    teacher_cells = Counter((a.teacher_id, a.cell) for a in result.assignments)
    assert max(teacher_cells.values()) == 1
    unmet = result.conflicts.of_type(QUOTA_UNMET)
    assert sum(c.expected - c.placed for c in unmet) == 2
    assert result.conflicts.of_type(TEACHER_DOUBLE_BOOKED) == []


def test_cp_sat_solution_on_the_example(example_catalog):
    solution = solve_with_cp_sat(example_catalog, time_limit_seconds=10.0)
    assert solution is not None
    assert solution.status in ("OPTIMAL", "FEASIBLE")
    assert solution.shortfalls == {}

    report = check_conflicts(solution.assignments, example_catalog)
    assert report.of_type(TEACHER_DOUBLE_BOOKED) == []
    assert report.of_type(ROOM_DOUBLE_BOOKED) == []
    assert report.of_type(QUOTA_UNMET) == []
    for a in solution.assignments:
        assert example_catalog.teacher(a.teacher_id).is_available(a.cell)


def test_cp_sat_stats(scenario_a):
    solution = solve_with_cp_sat(scenario_a)
    assert set(solution.stats) == {"objective_value", "solver_conflicts", "branches", "wall_time_s"}
    assert solution.stats["objective_value"] == 0.0
