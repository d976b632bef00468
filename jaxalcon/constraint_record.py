"""Per-constraint storage and augmented Lagrangian arithmetic.

A ConstraintRecord keeps every per-time-step quantity of one constraint stacked
along a leading entry axis, so ``value`` is ``(K, p)``, ``jacobian`` is
``(K, p, w)`` and the multiplier, penalty and active-set arrays are ``(K, p)``,
with entry ``i`` belonging to time step ``indices[i]``.

The evaluation results and the dual state live in separate holder objects.
Linking two constraint sets makes two records share these holders, so an update
made through one set is seen by the other.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp
from jax import Array

from .constraint_params import ConstraintParams
from .constraints import ConstraintDefinition, jacobian_width
from .exceptions import ConfigurationError, DimensionError
from .expansion import CostExpansion
from .types import ConstraintKind, ConstraintSense, ErrorCode, Float


@jax.jit
def _dual_update_jit(lam: Array, mu: Array, c: Array, lam_min: Float, lam_max: Float) -> Array:
    """JIT-compiled multiplier ascent step with clamping."""
    return jnp.clip(lam + mu * c, lam_min, lam_max)


@jax.jit
def _penalty_update_jit(mu: Array, phi: Float, mu_max: Float) -> Array:
    """JIT-compiled geometric penalty growth."""
    return jnp.clip(phi * mu, 0.0, mu_max)


@jax.jit
def _active_set_jit(c: Array, lam: Array, tol: Float) -> Array:
    """JIT-compiled inequality active set."""
    return (c >= -tol) | (lam > 0.0)


@jax.jit
def _penalty_weights_jit(mu: Array, active: Array) -> Array:
    """JIT-compiled diagonal of I_mu."""
    return jnp.where(active, mu, 0.0)


@jax.jit
def _al_cost_jit(c: Array, lam: Array, weights: Array) -> Array:
    """JIT-compiled per-entry cost lambda'c + 0.5 c'I_mu c."""
    return jnp.sum(lam * c, axis=-1) + 0.5 * jnp.sum(weights * c * c, axis=-1)


@jax.jit
def _weighted_outer_jit(jac_a: Array, weights: Array, jac_b: Array) -> Array:
    """JIT-compiled batched jac_a' I_mu jac_b."""
    return jnp.einsum("kpi,kp,kpj->kij", jac_a, weights, jac_b)


@jax.jit
def _transpose_product_jit(jac: Array, g: Array) -> Array:
    """JIT-compiled batched jac' g."""
    return jnp.einsum("kpi,kp->ki", jac, g)


@jax.jit
def _violation_jit(c: Array, is_inequality: bool) -> Array:
    """JIT-compiled violation: positive part for inequalities, residual otherwise."""
    return jnp.where(is_inequality, jnp.maximum(c, 0.0), c)


@dataclass(eq=False)
class EvaluationBuffer:
    """Residuals and Jacobians written by the constraint evaluator."""

    value: Array
    jacobian: Array
    error_jacobian: Array


@dataclass(eq=False)
class DualState:
    """Multipliers, penalties and active-set mask of one constraint."""

    lam: Array
    mu: Array
    active: Array


class ConstraintRecord:
    """Augmented Lagrangian state of one constraint across its time steps."""

    def __init__(
        self,
        definition: ConstraintDefinition,
        indices: tuple[int, ...],
        num_states: int,
        num_inputs: int,
        error_state_dim: int | None = None,
        params: ConstraintParams | None = None,
    ):
        self.definition = definition
        self.indices = tuple(indices)
        self.params = params if params is not None else ConstraintParams()
        self.num_states = num_states
        self.num_inputs = num_inputs
        self.error_state_dim = num_states if error_state_dim is None else error_state_dim

        K = len(self.indices)
        p = definition.output_dim
        w = jacobian_width(definition.kind, num_states, num_inputs)
        w_err = jacobian_width(definition.kind, self.error_state_dim, num_inputs)
        self._inds = jnp.array(self.indices, dtype=jnp.int32)

        self.evaluation = EvaluationBuffer(
            value=jnp.zeros((K, p)),
            jacobian=jnp.zeros((K, p, w)),
            error_jacobian=jnp.zeros((K, p, w_err)),
        )
        self.duals = DualState(
            lam=jnp.zeros((K, p)),
            mu=jnp.full((K, p), self.params.mu0),
            active=jnp.ones((K, p), dtype=bool),
        )

        # Cached per-entry maxima, refreshed by the reporting queries
        self.entry_c_max = jnp.zeros(K)
        self.entry_mu_max = jnp.zeros(K)

    def __repr__(self) -> str:
        return (
            f"ConstraintRecord({self.name!r}, {self.sense.value}, {self.kind.value}, "
            f"p={self.p}, indices={self.indices})"
        )

    # ------------------------------------------------------------------
    # Shape information
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def sense(self) -> ConstraintSense:
        return self.definition.sense

    @property
    def kind(self) -> ConstraintKind:
        return self.definition.kind

    @property
    def p(self) -> int:
        return self.definition.output_dim

    @property
    def num_entries(self) -> int:
        return len(self.indices)

    def _error_jacobian_is_full(self) -> bool:
        """Whether the error-state Jacobian equals the full-state one."""
        return self.kind == ConstraintKind.CONTROL or self.error_state_dim == self.num_states

    def _check_shape(self, what: str, arr: Array, shape: tuple[int, ...]) -> None:
        if tuple(arr.shape) != shape:
            raise DimensionError(
                f"{what} for {self.name} has shape {tuple(arr.shape)}, expected {shape}"
            )

    def _check_entry(self, i: int) -> None:
        if not 0 <= i < self.num_entries:
            raise DimensionError(
                f"Entry {i} out of range for {self.name} with {self.num_entries} entries",
                ErrorCode.BAD_INDEX,
            )

    # ------------------------------------------------------------------
    # Evaluation storage
    # ------------------------------------------------------------------

    @property
    def value(self) -> Array:
        return self.evaluation.value

    @value.setter
    def value(self, values: Array) -> None:
        values = jnp.asarray(values, dtype=float)
        self._check_shape("Constraint values", values, self.evaluation.value.shape)
        self.evaluation.value = values

    @property
    def jacobian(self) -> Array:
        return self.evaluation.jacobian

    @jacobian.setter
    def jacobian(self, jacs: Array) -> None:
        jacs = jnp.asarray(jacs, dtype=float)
        self._check_shape("Constraint Jacobians", jacs, self.evaluation.jacobian.shape)
        self.evaluation.jacobian = jacs
        if self._error_jacobian_is_full():
            self.evaluation.error_jacobian = jacs

    @property
    def error_jacobian(self) -> Array:
        return self.evaluation.error_jacobian

    @error_jacobian.setter
    def error_jacobian(self, jacs: Array) -> None:
        jacs = jnp.asarray(jacs, dtype=float)
        self._check_shape("Error-state Jacobians", jacs, self.evaluation.error_jacobian.shape)
        self.evaluation.error_jacobian = jacs

    def set_value(self, i: int, c: Array) -> None:
        """Store the residual of entry ``i``."""
        self._check_entry(i)
        c = jnp.atleast_1d(jnp.asarray(c, dtype=float))
        self._check_shape("Constraint value", c, (self.p,))
        self.evaluation.value = self.evaluation.value.at[i].set(c)

    def set_jacobian(self, i: int, jac: Array, error_jac: Array | None = None) -> None:
        """Store the Jacobian of entry ``i``.

        The error-state Jacobian is copied from ``jac`` when both state
        representations coincide and no separate one is given.
        """
        self._check_entry(i)
        jac = jnp.atleast_2d(jnp.asarray(jac, dtype=float))
        self._check_shape("Constraint Jacobian", jac, self.evaluation.jacobian.shape[1:])
        self.evaluation.jacobian = self.evaluation.jacobian.at[i].set(jac)
        if error_jac is None and self._error_jacobian_is_full():
            error_jac = jac
        if error_jac is not None:
            error_jac = jnp.atleast_2d(jnp.asarray(error_jac, dtype=float))
            self._check_shape(
                "Error-state Jacobian", error_jac, self.evaluation.error_jacobian.shape[1:]
            )
            self.evaluation.error_jacobian = self.evaluation.error_jacobian.at[i].set(error_jac)

    # ------------------------------------------------------------------
    # Dual state
    # ------------------------------------------------------------------

    @property
    def lam(self) -> Array:
        return self.duals.lam

    @lam.setter
    def lam(self, lam: Array) -> None:
        lam = jnp.asarray(lam, dtype=float)
        self._check_shape("Multipliers", lam, self.duals.lam.shape)
        self.duals.lam = lam

    @property
    def mu(self) -> Array:
        return self.duals.mu

    @mu.setter
    def mu(self, mu: Array) -> None:
        mu = jnp.asarray(mu, dtype=float)
        self._check_shape("Penalties", mu, self.duals.mu.shape)
        self.duals.mu = mu

    @property
    def active(self) -> Array:
        return self.duals.active

    @active.setter
    def active(self, active: Array) -> None:
        active = jnp.asarray(active, dtype=bool)
        self._check_shape("Active set", active, self.duals.active.shape)
        self.duals.active = active

    def lambda_bounds(self) -> tuple[Float, Float]:
        lam_max = self.params.lambda_max
        lam_min = -lam_max if self.sense == ConstraintSense.EQUALITY else 0.0
        return lam_min, lam_max

    # ------------------------------------------------------------------
    # Augmented Lagrangian updates
    # ------------------------------------------------------------------

    def dual_update(self) -> None:
        """lambda <- clamp(lambda + mu * c, lambda_min, lambda_max).

        Uses the stored residuals, which must be re-evaluated before every call.
        """
        lam_min, lam_max = self.lambda_bounds()
        self.duals.lam = _dual_update_jit(
            self.duals.lam, self.duals.mu, self.evaluation.value, lam_min, lam_max
        )

    def penalty_update(self) -> None:
        """mu <- clamp(phi * mu, 0, mu_max)."""
        self.duals.mu = _penalty_update_jit(self.duals.mu, self.params.phi, self.params.mu_max)

    def update_active_set(self, tol: Float = 0.0) -> None:
        """Mark inequality components that are violated or carry a positive multiplier."""
        if self.sense == ConstraintSense.INEQUALITY:
            self.duals.active = _active_set_jit(self.evaluation.value, self.duals.lam, tol)

    def reset_duals(self) -> None:
        self.duals.lam = jnp.zeros_like(self.duals.lam)

    def reset_penalties(self) -> None:
        self.duals.mu = jnp.full_like(self.duals.mu, self.params.mu0)

    # ------------------------------------------------------------------
    # Cost
    # ------------------------------------------------------------------

    def entry_costs(self) -> Array:
        """Augmented Lagrangian cost of every entry, shape ``(K,)``."""
        weights = _penalty_weights_jit(self.duals.mu, self.duals.active)
        return _al_cost_jit(self.evaluation.value, self.duals.lam, weights)

    def cost(self, J: Array) -> Array:
        """Return ``J`` with this constraint's cost added at its time steps."""
        J = jnp.asarray(J, dtype=float)
        return J.at[self._inds].add(self.entry_costs())

    def cost_expansion(self, E: CostExpansion, error_state: bool = False) -> None:
        """Add the Gauss-Newton expansion of the cost terms to ``E``.

        Args:
            E: Quadratic expansion storage, accumulated in place.
            error_state: Expand with the error-state Jacobians instead of the
                full-state ones.
        """
        if self.kind == ConstraintKind.COUPLED:
            raise ConfigurationError(
                f"Cost expansion not supported for coupled constraint {self.name}"
            )

        jac = self.evaluation.error_jacobian if error_state else self.evaluation.jacobian
        c = self.evaluation.value
        weights = _penalty_weights_jit(self.duals.mu, self.duals.active)
        g = weights * c + self.duals.lam
        k = self._inds

        if self.kind == ConstraintKind.STATE:
            E.Q = E.Q.at[k].add(_weighted_outer_jit(jac, weights, jac))
            E.q = E.q.at[k].add(_transpose_product_jit(jac, g))
        elif self.kind == ConstraintKind.CONTROL:
            E.R = E.R.at[k].add(_weighted_outer_jit(jac, weights, jac))
            E.r = E.r.at[k].add(_transpose_product_jit(jac, g))
        else:
            n = self.error_state_dim if error_state else self.num_states
            cx = jac[:, :, :n]
            cu = jac[:, :, n:]
            E.Q = E.Q.at[k].add(_weighted_outer_jit(cx, weights, cx))
            E.q = E.q.at[k].add(_transpose_product_jit(cx, g))
            E.H = E.H.at[k].add(_weighted_outer_jit(cu, weights, cx))
            E.R = E.R.at[k].add(_weighted_outer_jit(cu, weights, cu))
            E.r = E.r.at[k].add(_transpose_product_jit(cu, g))

    # ------------------------------------------------------------------
    # Violation and penalty magnitudes
    # ------------------------------------------------------------------

    def violation(self) -> Array:
        """Residuals, with satisfied inequality components reported as zero."""
        return _violation_jit(self.evaluation.value, self.sense == ConstraintSense.INEQUALITY)

    def norm_violation(self, p: Float = 2) -> Float:
        """p-norm of the violation over every entry, caching the per-entry norms."""
        self.entry_c_max = jnp.linalg.norm(self.violation(), ord=p, axis=-1)
        return float(jnp.linalg.norm(self.entry_c_max, ord=p))

    def max_penalty(self) -> Float:
        """Largest penalty over every entry, caching the per-entry maxima."""
        self.entry_mu_max = jnp.max(self.duals.mu, axis=-1)
        return float(jnp.max(self.entry_mu_max))
