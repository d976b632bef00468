"""Shared fixtures for the constraint set tests."""

import jax
import pytest

from jaxalcon import (
    AugmentedLagrangianConstraintSet,
    ConstraintDefinition,
    ConstraintKind,
    ConstraintList,
    ConstraintParams,
    ConstraintSense,
    ModelDims,
)

# Enable 64-bit precision for numerical accuracy
jax.config.update("jax_enable_x64", True)

NUM_STATES = 2
NUM_INPUTS = 1
NUM_KNOTS = 3


def equality(name="goal", p=1, kind=ConstraintKind.STATE, **kwargs):
    return ConstraintDefinition(name, ConstraintSense.EQUALITY, kind, p, **kwargs)


def inequality(name="bound", p=1, kind=ConstraintKind.STATE, **kwargs):
    return ConstraintDefinition(name, ConstraintSense.INEQUALITY, kind, p, **kwargs)


@pytest.fixture
def build_set():
    """Build a constraint set from ``(definition, indices)`` pairs."""

    def _build(entries, params=None, n=NUM_STATES, m=NUM_INPUTS, N=NUM_KNOTS, **kwargs):
        cons = ConstraintList(n, m, N)
        for con, inds in entries:
            cons.add_constraint(con, inds)
        return AugmentedLagrangianConstraintSet(cons, ModelDims(n, m), params, **kwargs)

    return _build


@pytest.fixture
def scalar_equality_set(build_set):
    """One scalar equality constraint at a single time step with c = 0.5."""
    params = ConstraintParams(mu0=1.0, mu_max=1e8, lambda_max=1e8, phi=10.0)
    conset = build_set([(equality(), [0])], params)
    conset[0].value = [[0.5]]
    return conset
