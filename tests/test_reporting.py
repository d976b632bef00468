"""Unit tests for the violation and penalty reporters."""

import jax.numpy as jnp
import numpy as np
import pytest
from conftest import equality, inequality

from jaxalcon import (
    NO_VIOLATION_MESSAGE,
    ConsistencyError,
    ConstraintParams,
    find_max_violation,
    locate_max_violation,
    max_penalty,
    max_violation,
    norm_violation,
    reporting,
)


@pytest.fixture
def two_constraint_set(build_set):
    conset = build_set([(equality("a", p=2), [0, 1]), (equality("b"), [2])])
    conset[0].value = [[0.1, -0.2], [0.0, 0.15]]
    conset[1].value = [[-0.9]]
    return conset


class TestViolation:
    """Tests for violation norms."""

    def test_max_violation(self, two_constraint_set):
        assert max_violation(two_constraint_set) == pytest.approx(0.9)
        np.testing.assert_allclose(two_constraint_set.c_max, [0.2, 0.9])

    def test_two_norm_violation(self, two_constraint_set):
        expected = float(jnp.sqrt(0.1**2 + 0.2**2 + 0.15**2 + 0.9**2))
        assert norm_violation(two_constraint_set) == pytest.approx(expected)
        np.testing.assert_allclose(
            two_constraint_set.c_max,
            [np.sqrt(0.1**2 + 0.2**2 + 0.15**2), 0.9],
        )

    def test_one_norm_violation(self, two_constraint_set):
        assert norm_violation(two_constraint_set, 1) == pytest.approx(0.1 + 0.2 + 0.15 + 0.9)

    def test_entry_maxima_cached(self, two_constraint_set):
        max_violation(two_constraint_set)
        np.testing.assert_allclose(two_constraint_set[0].entry_c_max, [0.2, 0.15])

    def test_satisfied_inequality_is_not_violated(self, build_set):
        conset = build_set([(inequality(p=2), [0])])
        conset[0].value = [[-5.0, 0.3]]
        assert max_violation(conset) == pytest.approx(0.3)

    def test_empty_set(self, build_set):
        conset = build_set([])
        assert max_violation(conset) == 0.0
        assert max_penalty(conset) == 0.0
        assert find_max_violation(conset) == NO_VIOLATION_MESSAGE


class TestFindMaxViolation:
    """Tests for locating the worst violation."""

    def test_no_violation(self, build_set):
        conset = build_set([(equality(p=2), [0, 1])])
        conset[0].value = [[0.0, 0.0], [0.0, 0.0]]
        assert locate_max_violation(conset) is None
        assert find_max_violation(conset) == NO_VIOLATION_MESSAGE

    def test_locates_worst_component(self, build_set):
        conset = build_set(
            [
                (equality("goal", p=2), [2]),
                (inequality("bound", p=3, labels=("x max 1", "x max 2", "u max 1")), [0, 1]),
            ]
        )
        conset[0].value = [[0.01, -0.02]]
        conset[1].value = [[0.1, -3.0, 0.2], [0.0, 0.4, 0.05]]

        location = locate_max_violation(conset)
        assert location is not None
        assert location.constraint_name == "bound"
        assert location.constraint_index == 1
        assert location.time_step == 1
        assert location.component == 1
        assert location.violation == pytest.approx(0.4)
        assert find_max_violation(conset) == "bound at time step 1 at x max 2"

    def test_default_component_label(self, two_constraint_set):
        assert find_max_violation(two_constraint_set) == "b at time step 2 at index 0"

    def test_stale_cache_raises(self, two_constraint_set, monkeypatch):
        max_violation(two_constraint_set)
        two_constraint_set.c_max = jnp.array([0.2, 0.5])
        # max_violation would refresh the cache, so keep the stale values in place
        monkeypatch.setattr(reporting, "max_violation", lambda conset: 0.5)
        with pytest.raises(ConsistencyError):
            locate_max_violation(two_constraint_set)


class TestMaxPenalty:
    """Tests for the penalty reporter."""

    def test_max_penalty(self, build_set):
        conset = build_set(
            [(equality("a", p=2), [0, 1]), (equality("b"), [2])],
            [ConstraintParams(mu0=2.0), ConstraintParams(mu0=1.0)],
        )
        conset[1].mu = [[7.0]]
        assert max_penalty(conset) == pytest.approx(7.0)
        np.testing.assert_allclose(conset.mu_max, [2.0, 7.0])
        np.testing.assert_allclose(conset[0].entry_mu_max, [2.0, 2.0])

    def test_max_penalty_tracks_updates(self, build_set):
        conset = build_set([(equality(), [0])], ConstraintParams(phi=4.0))
        conset.penalty_update()
        conset.penalty_update()
        assert max_penalty(conset) == pytest.approx(16.0)
