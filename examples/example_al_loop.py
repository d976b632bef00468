"""Augmented Lagrangian outer loop on a double integrator.

This example drives a 1D double integrator from rest at the origin to rest at
position 1 while minimizing control effort, subject to a control bound. It shows
the order in which an outer solver calls into the constraint set:

1. Evaluate constraints and Jacobians along the current trajectory
2. Accumulate the augmented Lagrangian cost and its quadratic expansion
3. Take a primal (Newton) step on the controls
4. Re-evaluate, then update multipliers, penalties and the active set
5. Query the violation and penalty reporters
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array

from jaxalcon import (
    AugmentedLagrangianConstraintSet,
    AugmentedLagrangianOptions,
    ConstraintDefinition,
    ConstraintKind,
    ConstraintList,
    ConstraintSense,
    CostExpansion,
    ModelDims,
    Verbosity,
    find_max_violation,
    max_penalty,
    max_violation,
)


N = 21  # knot points
h = 0.1  # time step
u_max = 1.5
r_weight = 0.1

A = jnp.array([[1.0, h], [0.0, 1.0]])
B = jnp.array([[0.5 * h**2], [h]])
x0 = jnp.zeros(2)
x_goal = jnp.array([1.0, 0.0])


def trajectory(z: Array) -> tuple[Array, Array]:
    """Roll out the dynamics for the controls ``z`` of the first N-1 knot points."""
    U = jnp.concatenate([z.reshape(N - 1, 1), jnp.zeros((1, 1))])

    def step(x, u):
        x_next = A @ x + B @ u
        return x_next, x_next

    _, X = jax.lax.scan(step, x0, U[:-1])
    return jnp.vstack([x0, X]), U


def build_constraint_set() -> AugmentedLagrangianConstraintSet:
    cons = ConstraintList(num_states=2, num_inputs=1, num_knots=N)
    goal = ConstraintDefinition(
        "GoalConstraint",
        ConstraintSense.EQUALITY,
        ConstraintKind.STATE,
        2,
        function=lambda x: x - x_goal,
        labels=("x 1", "x 2"),
    )
    bound = ConstraintDefinition(
        "BoundConstraint",
        ConstraintSense.INEQUALITY,
        ConstraintKind.CONTROL,
        2,
        function=lambda u: jnp.concatenate([u - u_max, -u - u_max]),
        labels=("u max 1", "u min 1"),
    )
    cons.add_constraint(goal, [N - 1])
    cons.add_constraint(bound, range(N - 1))
    return AugmentedLagrangianConstraintSet(cons, ModelDims(2, 1))


def newton_step(conset: AugmentedLagrangianConstraintSet, z: Array) -> Array:
    """One Gauss-Newton step on the controls for the current multipliers and penalties."""
    X, U = trajectory(z)
    conset.evaluate_constraints(X, U)
    conset.constraint_jacobians(X, U)

    E = CostExpansion.zeros(N, 2, 1)
    conset.cost_expansion(E)

    # Sensitivity of every state to every control, shape (N, 2, N-1)
    JX = jax.jacfwd(lambda z: trajectory(z)[0])(z)

    grad = r_weight * z + jnp.einsum("kin,ki->n", JX, E.q) + E.r[:-1, 0]
    hess = r_weight * jnp.eye(N - 1) + jnp.einsum("kia,kij,kjb->ab", JX, E.Q, JX)
    hess = hess + jnp.diag(E.R[:-1, 0, 0])
    cross = jnp.einsum("kj,kjb->kb", E.H[:-1, 0, :], JX[:-1])
    hess = hess + cross + cross.T

    return z - jnp.linalg.solve(hess + 1e-8 * jnp.eye(N - 1), grad)


def solve(outer_iterations: int = 10, inner_iterations: int = 3) -> Array:
    conset = build_constraint_set()
    conset.reset(AugmentedLagrangianOptions(penalty_initial=10.0, verbose=Verbosity.OUTER))
    z = jnp.zeros(N - 1)

    for iteration in range(outer_iterations):
        for _ in range(inner_iterations):
            z = newton_step(conset, z)

        X, U = trajectory(z)
        conset.evaluate_constraints(X, U)
        J = conset.cost(jnp.zeros(N))
        conset.dual_update()
        conset.penalty_update()
        conset.update_active_set()

        viol = max_violation(conset)
        print(
            f"  iter = {iteration:2d}, al cost = {float(jnp.sum(J)):10.3e}, "
            f"viol = {viol:8.3e}, max penalty = {max_penalty(conset):7.2g}"
        )
        print(f"    worst: {find_max_violation(conset)}")
        if viol < 1e-6:
            break

    return z


if __name__ == "__main__":
    print("Augmented Lagrangian Double Integrator Example")
    print("=" * 50)

    z = solve()
    X, U = trajectory(z)
    print(f"\nFinal state: {X[-1]}")
    print(f"Largest control: {float(jnp.max(jnp.abs(z))):.4f} (bound {u_max})")
