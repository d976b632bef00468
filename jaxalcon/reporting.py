"""Violation and penalty queries over an augmented Lagrangian constraint set.

These are read-only with respect to the multipliers and penalties; they only
refresh the cached maxima stored on the set and its records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import jax.numpy as jnp

from .exceptions import ConsistencyError
from .types import Float


if TYPE_CHECKING:
    from .constraint_set import AugmentedLagrangianConstraintSet


NO_VIOLATION_MESSAGE = "No constraints violated"

# Violations below machine epsilon are reported as no violation
_VIOLATION_EPS = float(jnp.finfo(jnp.float64).eps)


@dataclass(frozen=True)
class ViolationLocation:
    """Where the largest constraint violation occurs."""

    constraint_name: str
    constraint_index: int
    time_step: int
    component: int
    component_label: str
    violation: Float

    def __str__(self) -> str:
        return f"{self.constraint_name} at time step {self.time_step} at {self.component_label}"


def norm_violation(conset: AugmentedLagrangianConstraintSet, p: Float = 2) -> Float:
    """p-norm of the constraint violation over the whole set.

    Stores the per-constraint norms in ``conset.c_max``.
    """
    if len(conset) == 0:
        return 0.0
    conset.c_max = jnp.array([record.norm_violation(p) for record in conset])
    return float(jnp.linalg.norm(conset.c_max, ord=p))


def max_violation(conset: AugmentedLagrangianConstraintSet) -> Float:
    """Largest violation of any single constraint component."""
    return norm_violation(conset, jnp.inf)


def max_penalty(conset: AugmentedLagrangianConstraintSet) -> Float:
    """Largest penalty across all constraints, stored per constraint in ``conset.mu_max``."""
    if len(conset) == 0:
        return 0.0
    conset.mu_max = jnp.array([record.max_penalty() for record in conset])
    return float(jnp.max(conset.mu_max))


def locate_max_violation(conset: AugmentedLagrangianConstraintSet) -> ViolationLocation | None:
    """Find the constraint, time step and component with the largest violation.

    Returns:
        The location, or None if no component is violated by more than machine
        epsilon.

    Raises:
        ConsistencyError: If the located component does not reproduce the
            cached maximum violation.
    """
    max_violation(conset)
    if len(conset) == 0:
        return None

    j_con = int(jnp.argmax(conset.c_max))
    c_max0 = float(conset.c_max[j_con])
    if c_max0 < _VIOLATION_EPS:
        return None

    record = conset[j_con]
    i_con = int(jnp.argmax(record.entry_c_max))
    viol = jnp.abs(record.violation()[i_con])
    i_max = int(jnp.argmax(viol))
    c_max = float(viol[i_max])
    if c_max != c_max0:
        raise ConsistencyError(
            f"Largest violation {c_max} of {record.name} does not match the cached "
            f"maximum {c_max0}"
        )

    return ViolationLocation(
        constraint_name=record.name,
        constraint_index=j_con,
        time_step=record.indices[i_con],
        component=i_max,
        component_label=record.definition.component_label(i_max),
        violation=c_max,
    )


def find_max_violation(conset: AugmentedLagrangianConstraintSet) -> str:
    """Describe where the largest violation occurs.

    Returns:
        ``"<constraint> at time step <k> at <component>"``, or
        ``NO_VIOLATION_MESSAGE`` when nothing is violated.
    """
    location = locate_max_violation(conset)
    if location is None:
        return NO_VIOLATION_MESSAGE
    return str(location)
