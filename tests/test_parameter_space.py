import numpy as np
import pytest
from pydantic import ValidationError

from paramtune.exceptions import DuplicateParameterError, FrozenSpaceError
from paramtune.optimization.search_space.parameter import ParameterDescriptor, ParameterKind, round_half_away
from paramtune.optimization.search_space.space import ParameterSpace
from paramtune.stages.settings import TypedSettings


@pytest.fixture
def space():
    space = ParameterSpace()
    space.register("binary_threshold", 10, 50, ParameterKind.INTEGER, "localizer")
    space.register("honey_std_dev", 0, 255, ParameterKind.REAL, "preprocessor")
    space.register("adaptive_block_size", 3, 61, ParameterKind.ODD_INTEGER, "grid_fitter")
    return space


def test_integer_mapping(space):
    assert space.map_value("binary_threshold", 0.0) == 10
    assert space.map_value("binary_threshold", 1.0) == 50
    assert space.map_value("binary_threshold", 0.5) == 30
    assert isinstance(space.map_value("binary_threshold", 0.33), int)


def test_real_mapping_is_linear(space):
    assert space.map_value("honey_std_dev", 0.5) == pytest.approx(127.5)


def test_odd_mapping_is_always_odd_and_in_bounds(space):
    for raw in np.linspace(0.0, 1.0, 1001):
        value = space.map_value("adaptive_block_size", raw)
        assert value % 2 == 1
        assert 3 <= value <= 61


def test_odd_mapping_moves_to_nearest_odd_neighbour():
    descriptor = ParameterDescriptor(name="k", low=0, high=10, kind=ParameterKind.ODD_INTEGER)

    # 4.1 rounds to 4, below the unrounded value: step up
    assert descriptor.map_value(0.41) == 5
    # 3.9 rounds to 4, above the unrounded value: step down
    assert descriptor.map_value(0.39) == 3


def test_odd_mapping_stays_in_domain_at_the_edges():
    descriptor = ParameterDescriptor(name="k", low=2, high=4, kind=ParameterKind.ODD_INTEGER)

    assert descriptor.map_value(0.0) == 3
    assert descriptor.map_value(1.0) == 3


def test_odd_domain_without_odd_value_is_rejected():
    with pytest.raises(ValidationError):
        ParameterDescriptor(name="k", low=4, high=4, kind=ParameterKind.ODD_INTEGER)


def test_inverted_bounds_are_rejected():
    with pytest.raises(ValidationError):
        ParameterDescriptor(name="k", low=5, high=1)


def test_rounding_is_half_away_from_zero():
    assert round_half_away(2.5) == 3
    assert round_half_away(3.5) == 4
    assert round_half_away(-2.5) == -3


def test_indices_are_dense_in_registration_order(space):
    assert [space.index_of(name) for name in space.names()] == [0, 1, 2]
    assert space.dimension_count() == 3


def test_duplicate_registration_keeps_first_bounds(space):
    index = space.register("binary_threshold", 0, 255, ParameterKind.INTEGER, "localizer")

    assert index == 0
    assert space.dimension_count() == 3
    assert space.get_bounds()["binary_threshold"] == (10, 50)


def test_strict_space_rejects_duplicates():
    space = ParameterSpace(strict=True)
    space.register("alpha", 0, 1)

    with pytest.raises(DuplicateParameterError):
        space.register("alpha", 0, 2)


def test_frozen_space_rejects_registration(space):
    space.freeze()

    with pytest.raises(FrozenSpaceError):
        space.register("eps_pos", 1, 5, ParameterKind.INTEGER, "grid_fitter")


def test_map_query_checks_length_and_clips(space):
    with pytest.raises(ValueError):
        space.map_query([0.5, 0.5])

    mapped = space.map_query([1.2, -0.1, 0.0])
    assert mapped == {"binary_threshold": 50, "honey_std_dev": 0.0, "adaptive_block_size": 3}


def test_apply_writes_into_sections(space):
    settings = {section: TypedSettings(section=section) for section in ("localizer", "preprocessor", "grid_fitter")}

    space.apply(space.map_query([0.5, 0.0, 0.0]), settings)

    assert settings["localizer"]["binary_threshold"] == 30
    assert settings["preprocessor"]["honey_std_dev"] == 0.0
    assert settings["grid_fitter"]["adaptive_block_size"] == 3


def test_apply_without_matching_section_raises(space):
    with pytest.raises(KeyError):
        space.apply({"binary_threshold": 30}, {})


def test_validate_configuration(space):
    assert space.validate_configuration({"binary_threshold": 30, "honey_std_dev": 1.5, "adaptive_block_size": 5})
    assert not space.validate_configuration({"binary_threshold": 30, "honey_std_dev": 1.5, "adaptive_block_size": 4})
    assert not space.validate_configuration({"binary_threshold": 30})
