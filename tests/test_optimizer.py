import pytest

from conftest import lab_clash_data, lesson
from timetabler.catalog import catalog_from_dict
from timetabler.conflicts import check_conflicts
from timetabler.engine import generate_schedule
from timetabler.errors import ConfigError
from timetabler.models import ROOM_DOUBLE_BOOKED, Schedule
from timetabler.optimizer import optimize


def lab_clash_schedules(c1_extra=True):
    c1 = [lesson("C1", 0, 0, "chem", "TC1", "L1")]
    if c1_extra:
        c1.append(lesson("C1", 0, 1, "math", "TM", "H1"))
    c2 = [lesson("C2", 0, 0, "chem", "TC2", "L1")]
    return [
        Schedule(class_id="C1", academic_year="2024-2025", term="Term 1", assignments=c1),
        Schedule(class_id="C2", academic_year="2024-2025", term="Term 1", assignments=c2),
    ]


def test_room_clash_is_resolved_by_a_swap():
    catalog = catalog_from_dict(lab_clash_data())
    schedules = lab_clash_schedules()
    schedules[1].assignments.append(lesson("C2", 1, 0, "eng", "TE", "H2"))
    before = check_conflicts([a for s in schedules for a in s.assignments], catalog)
    assert len(before.of_type(ROOM_DOUBLE_BOOKED)) == 1

    result = optimize(schedules, before, catalog)

    assert result.resolved == 1
    assert result.targeted == 1
    assert result.unresolved == []
    assert not result.incomplete
    assert result.summary == "resolved 1 of 1 conflicts"
    assert result.conflicts.of_type(ROOM_DOUBLE_BOOKED) == []
    assert len(result.conflicts) == 0
    assert result.efficiency > result.previous_efficiency
    assert result.efficiency_gain > 0

    c1 = schedules[0]
    assert {a.cell for a in c1.assignments if a.subject_id == "chem"} == {(0, 1)}
    assert {a.cell for a in c1.assignments if a.subject_id == "math"} == {(0, 0)}
    assert c1.last_optimized is not None
    assert len(c1.conflicts) == 0


def test_clash_without_a_valid_swap_is_reported_unresolved():
    data = lab_clash_data(days=1, periods=1)
    data["subjects"] = data["subjects"][:1]
    data["teachers"] = data["teachers"][:2]
    for c in data["classes"]:
        c["subjects"] = ["chem"]
    catalog = catalog_from_dict(data)
    schedules = lab_clash_schedules(c1_extra=False)

    result = optimize(schedules, None, catalog)

    assert result.resolved == 0
    assert result.targeted == 1
    assert [c.room_id for c in result.unresolved] == ["L1"]
    assert result.summary == "resolved 0 of 1 conflicts"
    assert len(result.conflicts) == 1
    assert result.efficiency == result.previous_efficiency


def test_swaps_respect_teacher_availability():
    # both chemistry teachers only come in the first period
    catalog = catalog_from_dict(lab_clash_data(days=1, periods=2, chem_available=[[0, 0]]))
    schedules = lab_clash_schedules()
    schedules[1].assignments.append(lesson("C2", 0, 1, "eng", "TE", "H2"))

    result = optimize(schedules, None, catalog)

    assert result.resolved == 0
    assert len(result.conflicts.of_type(ROOM_DOUBLE_BOOKED)) == 1
    assert {a.cell for a in schedules[0].assignments if a.subject_id == "chem"} == {(0, 0)}


def test_exhausted_budget_is_reported_as_incomplete():
    catalog = catalog_from_dict(lab_clash_data())
    schedules = lab_clash_schedules()
    schedules[1].assignments.append(lesson("C2", 1, 0, "eng", "TE", "H2"))

    result = optimize(schedules, None, catalog, iteration_budget=0)

    assert result.incomplete
    assert result.attempts == 0
    assert result.resolved == 0
    assert result.summary == "resolved 0 of 1 conflicts"
    assert result.as_dict()["incomplete"] is True


def test_single_schedule_is_accepted(scenario_a):
    schedule = generate_schedule(scenario_a).schedules[0]
    result = optimize(schedule, None, scenario_a)
    assert result.schedules == [schedule]
    assert result.targeted == 0
    assert len(result.conflicts) == 0
    assert schedule.last_optimized is not None


def test_conflict_count_never_goes_up(example_catalog):
    generated = generate_schedule(example_catalog)
    before = check_conflicts(generated.assignments, example_catalog)
    result = optimize(generated.schedules, before, example_catalog)
    assert len(result.conflicts) <= len(before)
    assert result.efficiency >= result.previous_efficiency
    assert check_conflicts(
        [a for s in result.schedules for a in s.assignments], example_catalog
    ).keys == result.conflicts.keys


def test_stale_conflicts_are_not_targeted():
    catalog = catalog_from_dict(lab_clash_data())
    schedules = lab_clash_schedules()
    schedules[1].assignments.append(lesson("C2", 1, 0, "eng", "TE", "H2"))
    stale = check_conflicts([a for s in schedules for a in s.assignments], catalog)
    schedules[1].assignments[0] = lesson("C2", 1, 1, "chem", "TC2", "L1")

    result = optimize(schedules, stale, catalog)
    assert result.targeted == 0


def test_improvements_in_dict():
    catalog = catalog_from_dict(lab_clash_data())
    schedules = lab_clash_schedules()
    schedules[1].assignments.append(lesson("C2", 1, 0, "eng", "TE", "H2"))
    data = optimize(schedules, None, catalog).as_dict()
    assert data["improvements"]["conflictsResolved"] == 1
    assert data["improvements"]["summary"] == "resolved 1 of 1 conflicts"
    assert data["improvements"]["efficiencyGain"] > 0
    assert data["conflictCount"] == 0
    assert "last_optimized" in data["schedules"][0]


def test_negative_budget_is_rejected(scenario_a):
    schedule = generate_schedule(scenario_a).schedules[0]
    with pytest.raises(ConfigError):
        optimize(schedule, None, scenario_a, iteration_budget=-1)


def test_two_schedules_for_one_class_are_rejected():
    catalog = catalog_from_dict(lab_clash_data())
    first = Schedule(class_id="C1", academic_year="2024-2025", term="Term 1",
                     assignments=[lesson("C1", 0, 0, "chem", "TC1", "L1")])
    second = Schedule(class_id="C1", academic_year="2024-2025", term="Term 1",
                      assignments=[lesson("C1", 1, 0, "chem", "TC1", "L1")])

    with pytest.raises(ConfigError, match="more than one schedule"):
        optimize([first, second], None, catalog)
    assert first.assignments == [lesson("C1", 0, 0, "chem", "TC1", "L1")]
    assert second.assignments == [lesson("C1", 1, 0, "chem", "TC1", "L1")]
