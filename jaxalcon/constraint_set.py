"""Augmented Lagrangian constraint set.

The set owns one ConstraintRecord per registered constraint and applies the
augmented Lagrangian updates, cost and cost expansion to all of them. A solver
iteration is expected to call, in order::

    conset.evaluate_constraints(X, U)       # or an external evaluator
    conset.constraint_jacobians(X, U)
    J = conset.cost(J)
    conset.cost_expansion(E)
    ...                                     # primal step, then re-evaluate
    conset.dual_update()
    conset.penalty_update()
    conset.update_active_set()

``cost`` and ``cost_expansion`` read the multipliers and penalties as they are
at the time of the call, so they must run before the dual and penalty updates
of the same iteration.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import replace

import jax.numpy as jnp
from jax import Array

from .constraint_params import ConstraintParams
from .constraint_record import ConstraintRecord
from .constraints import ConstraintList, ModelDims
from .exceptions import ConfigurationError, DimensionError
from .expansion import CostExpansion
from .options import AugmentedLagrangianOptions
from .reporting import max_penalty
from .types import ConstraintKind, ErrorCode, Float, Verbosity


def _constraint_args(kind: ConstraintKind, X, U, k: int) -> tuple[Array, ...]:
    """Arguments of a constraint function of the given kind at time step ``k``."""
    if kind == ConstraintKind.STATE:
        return (X[k],)
    if kind == ConstraintKind.CONTROL:
        return (U[k],)
    if kind == ConstraintKind.STAGE:
        return (X[k], U[k])
    return (X[k], U[k], X[k + 1], U[k + 1])


def _error_state_jacobian(
    record: ConstraintRecord, jac: Array, G: Array | None, G_next: Array | None
) -> Array:
    """Map the state columns of a full-state Jacobian onto the error state."""
    n, m = record.num_states, record.num_inputs
    kind = record.kind
    if kind == ConstraintKind.CONTROL:
        return jac
    if kind == ConstraintKind.STATE:
        return jac @ G
    if kind == ConstraintKind.STAGE:
        return jnp.concatenate([jac[:, :n] @ G, jac[:, n:]], axis=1)
    return jnp.concatenate(
        [jac[:, :n] @ G, jac[:, n : n + m], jac[:, n + m : 2 * n + m] @ G_next, jac[:, 2 * n + m :]],
        axis=1,
    )


class AugmentedLagrangianConstraintSet:
    """Multipliers, penalties and active sets for every constraint of a problem.

    Args:
        cons: Registered constraints and the time steps they apply to.
        model: State and control dimensions of the dynamics model.
        params: Parameters shared as a template by every constraint, or one
            ``ConstraintParams`` per constraint. Each record gets its own copy.
        verbose: Diagnostic printing level.
    """

    def __init__(
        self,
        cons: ConstraintList,
        model: ModelDims,
        params: ConstraintParams | Sequence[ConstraintParams] | None = None,
        verbose: Verbosity = Verbosity.SILENT,
    ):
        if cons.n != model.num_states or cons.m != model.num_inputs:
            raise DimensionError(
                f"Constraint list dimensions (n={cons.n}, m={cons.m}) do not match the model "
                f"(n={model.num_states}, m={model.num_inputs})"
            )

        ncon = len(cons)
        if params is None:
            params = ConstraintParams()
        if isinstance(params, ConstraintParams):
            params = [params] * ncon
        elif len(params) != ncon:
            raise DimensionError(f"Got {len(params)} parameter sets for {ncon} constraints")

        self.model = model
        self.num_knots = cons.num_knots
        self.verbose = verbose
        self.records = [
            ConstraintRecord(
                cons[i],
                cons.inds[i],
                model.num_states,
                model.num_inputs,
                model.error_state_dim,
                replace(params[i]),
            )
            for i in range(ncon)
        ]
        self.c_max = jnp.zeros(ncon)
        self.mu_max = jnp.zeros(ncon)

    # Indexing and iteration
    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, i: int) -> ConstraintRecord:
        return self.records[i]

    def __iter__(self) -> Iterator[ConstraintRecord]:
        return iter(self.records)

    @property
    def params(self) -> list[ConstraintParams]:
        return [record.params for record in self.records]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_constraints(self, X, U) -> None:
        """Evaluate every constraint that has a function along the trajectory.

        Args:
            X: States indexed by time step, e.g. an ``(N, n)`` array.
            U: Controls indexed by time step, e.g. an ``(N, m)`` array.
        """
        for record in self.records:
            con = record.definition
            if con.function is None:
                continue
            record.value = jnp.stack(
                [con.evaluate(*_constraint_args(record.kind, X, U, k)) for k in record.indices]
            )

    def constraint_jacobians(self, X, U) -> None:
        """Evaluate the full-state and error-state Jacobians along the trajectory."""
        G_fun = self.model.state_diff_jacobian
        for record in self.records:
            con = record.definition
            if con.jacobian is None:
                continue
            jacs = []
            error_jacs = []
            for k in record.indices:
                jac = con.evaluate_jacobian(*_constraint_args(record.kind, X, U, k))
                jacs.append(jac)
                if G_fun is not None:
                    G = G_fun(X[k]) if record.kind != ConstraintKind.CONTROL else None
                    G_next = G_fun(X[k + 1]) if record.kind == ConstraintKind.COUPLED else None
                    error_jacs.append(_error_state_jacobian(record, jac, G, G_next))
            record.jacobian = jnp.stack(jacs)
            if error_jacs:
                record.error_jacobian = jnp.stack(error_jacs)

    # ------------------------------------------------------------------
    # Augmented Lagrangian updates
    # ------------------------------------------------------------------

    def dual_update(self) -> None:
        for record in self.records:
            record.dual_update()
        if self.verbose == Verbosity.INNER:
            lam_max = max((float(jnp.max(jnp.abs(r.lam))) for r in self.records), default=0.0)
            print(f"  dual update: max |lambda| = {lam_max:.3e}")

    def penalty_update(self) -> None:
        for record in self.records:
            record.penalty_update()
        if self.verbose == Verbosity.INNER:
            print(f"  penalty update: max penalty = {max_penalty(self):.3e}")

    def update_active_set(self, tol: Float = 0.0) -> None:
        """Refresh the active set of every inequality constraint."""
        if tol < 0:
            raise ConfigurationError(
                f"Active set tolerance must be non-negative, got {tol}", ErrorCode.INVALID_PARAMETER
            )
        for record in self.records:
            record.update_active_set(tol)

    # ------------------------------------------------------------------
    # Cost
    # ------------------------------------------------------------------

    def cost(self, J: Array) -> Array:
        """Add the augmented Lagrangian terms to the per-time-step cost ``J``.

        Args:
            J: Cost at each of the ``num_knots`` time steps.

        Returns:
            ``J`` plus ``lambda'c + 0.5 c'I_mu c`` of every constraint entry at
            its time step.
        """
        J = jnp.asarray(J, dtype=float)
        if J.shape != (self.num_knots,):
            raise DimensionError(
                f"Cost vector has shape {J.shape}, expected ({self.num_knots},)"
            )
        for record in self.records:
            J = record.cost(J)
        return J

    def total_cost(self) -> Float:
        """Sum of the augmented Lagrangian terms over every constraint and time step."""
        return float(sum(jnp.sum(record.entry_costs()) for record in self.records))

    def cost_expansion(self, E: CostExpansion, error_state: bool = False) -> None:
        """Add the quadratic expansion of the augmented Lagrangian terms to ``E``.

        Nothing is accumulated if any constraint is coupled across time steps or
        if ``E`` does not match the dimensions of a record.
        """
        for record in self.records:
            if record.kind == ConstraintKind.COUPLED:
                raise ConfigurationError(
                    f"Cost expansion not supported for coupled constraint {record.name}"
                )
            n = record.error_state_dim if error_state else record.num_states
            if not E.shapes_match(self.num_knots, n, record.num_inputs):
                raise DimensionError(
                    f"Cost expansion storage does not match {record.name}: expected "
                    f"N={self.num_knots}, n={n}, m={record.num_inputs}"
                )
        for record in self.records:
            record.cost_expansion(E, error_state)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset_duals(self) -> None:
        for record in self.records:
            record.reset_duals()

    def reset_penalties(self) -> None:
        for record in self.records:
            record.reset_penalties()

    def reset(self, opts: AugmentedLagrangianOptions | None = None) -> None:
        """Reset multipliers and penalties.

        Without options both are reset. With options, the parameter overrides
        the options specify are written to every constraint first, and the
        multipliers and penalties are reset only if the options ask for it.
        """
        if opts is None:
            self.reset_duals()
            self.reset_penalties()
            return

        # Every record must accept the overrides before any is changed
        for record in self.records:
            record.params.with_options(opts)
        for record in self.records:
            record.params.apply_options(opts)
        self.verbose = opts.verbose
        if opts.reset_duals:
            self.reset_duals()
        if opts.reset_penalties:
            self.reset_penalties()

        if self.verbose != Verbosity.SILENT:
            print(
                f"Reset {len(self)} constraints (duals: {opts.reset_duals}, "
                f"penalties: {opts.reset_penalties})"
            )


def link_constraints(
    set1: AugmentedLagrangianConstraintSet, set2: AugmentedLagrangianConstraintSet
) -> list[tuple[int, int]]:
    """Make the constraints ``set1`` shares with ``set2`` use ``set2``'s storage.

    Records are matched by the identifier of their constraint definition. After
    linking, the evaluation buffers, multipliers, penalties and active sets of
    matched records are the same objects in both sets. Parameters stay separate.

    Returns:
        ``(i, j)`` pairs of matched record positions in ``set1`` and ``set2``.
    """
    links = []
    for i, rec1 in enumerate(set1):
        for j, rec2 in enumerate(set2):
            id1 = rec1.definition.con_id
            if id1 is not None and id1 == rec2.definition.con_id:
                links.append((i, j))

    for i, j in links:
        rec1, rec2 = set1[i], set2[j]
        if rec1.indices != rec2.indices:
            raise DimensionError(
                f"Cannot link {rec1.name}: time steps {rec1.indices} and {rec2.indices} differ"
            )
        rec1.evaluation = rec2.evaluation
        rec1.duals = rec2.duals
        # The shared Jacobians are laid out for set2's state representation
        rec1.num_states = rec2.num_states
        rec1.num_inputs = rec2.num_inputs
        rec1.error_state_dim = rec2.error_state_dim

    if set1.verbose != Verbosity.SILENT:
        print(f"Linked {len(links)} of {len(set1)} constraints")
    return links
