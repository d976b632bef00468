"""Caller-owned storage for the quadratic expansion of the objective.

Every block is stacked along a leading knot-point axis. The constraint set only
ever adds to these blocks, so the same storage can collect the expansion of the
original objective and of any number of constraint sets.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
from jax import Array


@dataclass(eq=False)
class CostExpansion:
    """Second-order expansion of a cost along a trajectory.

    At knot point ``k`` the expansion reads
    ``0.5 dx'Q dx + 0.5 du'R du + du'H dx + q'dx + r'du``.
    """

    Q: Array  # (N, n, n) state Hessian
    R: Array  # (N, m, m) control Hessian
    H: Array  # (N, m, n) cross term
    q: Array  # (N, n) state gradient
    r: Array  # (N, m) control gradient

    @classmethod
    def zeros(cls, num_knots: int, num_states: int, num_inputs: int) -> CostExpansion:
        return cls(
            Q=jnp.zeros((num_knots, num_states, num_states)),
            R=jnp.zeros((num_knots, num_inputs, num_inputs)),
            H=jnp.zeros((num_knots, num_inputs, num_states)),
            q=jnp.zeros((num_knots, num_states)),
            r=jnp.zeros((num_knots, num_inputs)),
        )

    @property
    def num_knots(self) -> int:
        return int(self.q.shape[0])

    @property
    def num_states(self) -> int:
        return int(self.q.shape[1])

    @property
    def num_inputs(self) -> int:
        return int(self.r.shape[1])

    def shapes_match(self, num_knots: int, num_states: int, num_inputs: int) -> bool:
        """Check every block against the given knot count and dimensions."""
        N, n, m = num_knots, num_states, num_inputs
        return (
            self.Q.shape == (N, n, n)
            and self.R.shape == (N, m, m)
            and self.H.shape == (N, m, n)
            and self.q.shape == (N, n)
            and self.r.shape == (N, m)
        )

    def reset(self) -> None:
        """Zero every block."""
        self.Q = jnp.zeros_like(self.Q)
        self.R = jnp.zeros_like(self.R)
        self.H = jnp.zeros_like(self.H)
        self.q = jnp.zeros_like(self.q)
        self.r = jnp.zeros_like(self.r)
