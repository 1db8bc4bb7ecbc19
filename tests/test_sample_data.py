import pytest

from timetabler.catalog import catalog_from_dict
from timetabler.errors import ConfigError
from timetabler.sample_data import generate_problem


@pytest.mark.parametrize("size, classes", [("small", 2), ("medium", 6), ("large", 12)])
def test_generated_problems_are_valid_catalogs(size, classes):
    catalog = catalog_from_dict(generate_problem(size, seed=4))
    assert len(catalog.class_groups) == classes
    assert len(catalog.grid.teaching_slots) == 30
    for group in catalog.class_groups:
        assert group.total_periods <= len(catalog.grid.teaching_slots)


def test_same_seed_same_problem():
    assert generate_problem("medium", seed=7) == generate_problem("medium", seed=7)
    assert generate_problem("medium", seed=7) != generate_problem("medium", seed=8)


def test_unknown_size():
    with pytest.raises(ConfigError):
        generate_problem("huge")
