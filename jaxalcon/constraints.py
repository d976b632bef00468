"""Constraint definitions and the registry the constraint set is built from.

Definitions describe a constraint (sense, kind, output dimension and, optionally,
how to evaluate it). The registry attaches them to time steps and hands each
definition a stable identifier that survives being registered in several lists.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, cast

import jax
import jax.numpy as jnp
from jax import Array

from .exceptions import ConfigurationError, DimensionError
from .types import (
    ConstraintFunction,
    ConstraintJacobian,
    ConstraintKind,
    ConstraintSense,
    ErrorCode,
    StateDiffJacobian,
)


# Number of positional arguments a constraint function takes for each kind
_NUM_ARGS = {
    ConstraintKind.STATE: 1,
    ConstraintKind.CONTROL: 1,
    ConstraintKind.STAGE: 2,
    ConstraintKind.COUPLED: 4,
}

# Identifiers are unique across every registry in the process
_constraint_ids = itertools.count()

# Global compiled functions cache to avoid recompilation
_compiled_functions_cache: dict[str, Any] = {}


def _get_or_create_constraint_jacobian(
    constraint_function: ConstraintFunction, kind: ConstraintKind
) -> ConstraintJacobian:
    """Get or create cached constraint Jacobian function.

    The returned function stacks the Jacobians with respect to every argument
    column-wise, in argument order.
    """
    func_id = id(constraint_function)
    cache_key = f"constraint_jac_{kind.name}_{func_id}"

    if cache_key not in _compiled_functions_cache:
        argnums = tuple(range(_NUM_ARGS[kind]))

        @jax.jit
        def auto_constraint_jacobian(*args: Array) -> Array:
            blocks = jax.jacobian(constraint_function, argnums=argnums)(*args)
            return jnp.concatenate([jnp.atleast_2d(b) for b in blocks], axis=1)

        # Holding the function keeps its id from being reused while cached
        _compiled_functions_cache[cache_key] = (constraint_function, auto_constraint_jacobian)

    return cast(ConstraintJacobian, _compiled_functions_cache[cache_key][1])


def jacobian_width(kind: ConstraintKind, num_states: int, num_inputs: int) -> int:
    """Number of Jacobian columns for a constraint of the given kind."""
    if kind == ConstraintKind.STATE:
        return num_states
    if kind == ConstraintKind.CONTROL:
        return num_inputs
    if kind == ConstraintKind.STAGE:
        return num_states + num_inputs
    return 2 * (num_states + num_inputs)


@dataclass(eq=False)
class ConstraintDefinition:
    """A constraint as supplied by the problem definition.

    ``function`` is optional: a definition without one is evaluated by an
    external evaluator writing straight into the constraint records. Its
    arguments depend on ``kind``: ``f(x)`` for STATE, ``f(u)`` for CONTROL,
    ``f(x, u)`` for STAGE and ``f(x, u, x_next, u_next)`` for COUPLED.
    """

    name: str
    sense: ConstraintSense
    kind: ConstraintKind
    output_dim: int
    function: ConstraintFunction | None = None
    jacobian: ConstraintJacobian | None = None
    labels: tuple[str, ...] | None = None
    con_id: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.output_dim <= 0:
            raise DimensionError(
                f"Invalid constraint dimension {self.output_dim} for {self.name}",
                ErrorCode.INVALID_CONSTRAINT_DIM,
            )
        if self.labels is not None and len(self.labels) != self.output_dim:
            raise DimensionError(
                f"{self.name} has {len(self.labels)} labels for {self.output_dim} components"
            )
        if self.function is not None and self.jacobian is None:
            self.jacobian = _get_or_create_constraint_jacobian(self.function, self.kind)

    def __len__(self) -> int:
        return self.output_dim

    def component_label(self, i: int) -> str:
        if self.labels is not None:
            return self.labels[i]
        return f"index {i}"

    def evaluate(self, *args: Array) -> Array:
        if self.function is None:
            raise ConfigurationError(
                f"No constraint function set for {self.name}",
                ErrorCode.MISSING_CONSTRAINT_FUNCTION,
            )
        return jnp.atleast_1d(self.function(*args))

    def evaluate_jacobian(self, *args: Array) -> Array:
        if self.jacobian is None:
            raise ConfigurationError(
                f"No constraint Jacobian set for {self.name}",
                ErrorCode.MISSING_CONSTRAINT_FUNCTION,
            )
        return jnp.atleast_2d(self.jacobian(*args))


@dataclass
class ModelDims:
    """State and control sizes of the dynamics model.

    ``state_diff_size`` is the dimension of the error state for models whose
    state lives on a manifold. ``state_diff_jacobian(x)`` maps error-state
    perturbations to full-state ones and has shape ``(num_states, state_diff_size)``.
    """

    num_states: int
    num_inputs: int
    state_diff_size: int | None = None
    state_diff_jacobian: StateDiffJacobian | None = None

    def __post_init__(self) -> None:
        if self.num_states <= 0 or self.num_inputs <= 0:
            raise DimensionError(
                f"Model dimensions must be positive, got n={self.num_states}, m={self.num_inputs}"
            )
        if self.state_diff_size is None:
            self.state_diff_size = self.num_states
        if self.state_diff_size != self.num_states and self.state_diff_jacobian is None:
            raise DimensionError(
                "A state difference Jacobian is required when the error state size "
                f"({self.state_diff_size}) differs from the state size ({self.num_states})"
            )

    @property
    def error_state_dim(self) -> int:
        assert self.state_diff_size is not None
        return self.state_diff_size


class ConstraintList:
    """Ordered registry of constraints and the time steps they apply to."""

    def __init__(self, num_states: int, num_inputs: int, num_knots: int):
        if num_knots <= 0:
            raise DimensionError(f"Number of knot points must be positive, got {num_knots}")
        self.n = num_states
        self.m = num_inputs
        self.num_knots = num_knots
        self.constraints: list[ConstraintDefinition] = []
        self.inds: list[tuple[int, ...]] = []

    def add_constraint(self, con: ConstraintDefinition, indices) -> int:
        """Register ``con`` at the given time steps and return its position.

        Args:
            con: Constraint definition. Registering the same object in several
                lists keeps its identifier, which is what linking relies on.
            indices: Iterable of time step indices, or a ``range``.

        Returns:
            Position of the constraint in the list.
        """
        inds = tuple(int(k) for k in indices)
        if not inds:
            raise DimensionError(f"{con.name} must apply to at least one time step", ErrorCode.BAD_INDEX)
        if len(set(inds)) != len(inds):
            raise DimensionError(f"Duplicate time steps for {con.name}: {inds}", ErrorCode.BAD_INDEX)
        last = self.num_knots - 1 if con.kind == ConstraintKind.COUPLED else self.num_knots
        for k in inds:
            if k < 0 or k >= last:
                raise DimensionError(
                    f"Time step {k} out of range for {con.name} with {self.num_knots} knot points",
                    ErrorCode.BAD_INDEX,
                )
        if con.con_id is None:
            con.con_id = next(_constraint_ids)

        self.constraints.append(con)
        self.inds.append(inds)
        return len(self.constraints) - 1

    def __len__(self) -> int:
        return len(self.constraints)

    def __getitem__(self, i: int) -> ConstraintDefinition:
        return self.constraints[i]

    def __iter__(self):
        return iter(self.constraints)

    @property
    def p(self) -> list[int]:
        """Output dimension of every constraint."""
        return [len(con) for con in self.constraints]
