"""Per-constraint tunable parameters of the augmented Lagrangian method."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .exceptions import ConfigurationError
from .options import AugmentedLagrangianOptions, is_specified
from .types import ErrorCode, Float


@dataclass
class ConstraintParams:
    """Penalty and multiplier parameters of a single constraint.

    Attributes:
        mu0: Initial penalty, restored by ``reset_penalties``.
        mu_max: Upper bound on every penalty component.
        lambda_max: Bound on the absolute value of every multiplier component.
        phi: Geometric penalty growth factor.
    """

    mu0: Float = 1.0
    mu_max: Float = 1e8
    lambda_max: Float = 1e8
    phi: Float = 10.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check ``0 < mu0 <= mu_max``, ``phi > 1`` and ``lambda_max >= 0``."""
        if self.mu0 <= 0:
            raise ConfigurationError(
                f"Non-positive initial penalty {self.mu0}", ErrorCode.NON_POSITIVE_PENALTY
            )
        if self.mu_max < self.mu0:
            raise ConfigurationError(
                f"Maximum penalty {self.mu_max} is smaller than initial penalty {self.mu0}",
                ErrorCode.INVALID_PARAMETER,
            )
        if self.phi <= 1:
            raise ConfigurationError(
                f"Penalty scaling {self.phi} must be greater than 1", ErrorCode.INVALID_PARAMETER
            )
        if self.lambda_max < 0:
            raise ConfigurationError(
                f"Negative multiplier bound {self.lambda_max}", ErrorCode.INVALID_PARAMETER
            )

    def with_options(self, opts: AugmentedLagrangianOptions) -> ConstraintParams:
        """Return a validated copy with the fields the options specify overwritten."""
        changes = {}
        if is_specified(opts.dual_max):
            changes["lambda_max"] = opts.dual_max
        if is_specified(opts.penalty_max):
            changes["mu_max"] = opts.penalty_max
        if is_specified(opts.penalty_initial):
            changes["mu0"] = opts.penalty_initial
        if is_specified(opts.penalty_scaling):
            changes["phi"] = opts.penalty_scaling
        return replace(self, **changes)

    def apply_options(self, opts: AugmentedLagrangianOptions) -> None:
        """Overwrite the fields the options specify and leave the others untouched.

        Nothing is changed if the resulting parameters are invalid.
        """
        params = self.with_options(opts)
        self.mu0 = params.mu0
        self.mu_max = params.mu_max
        self.lambda_max = params.lambda_max
        self.phi = params.phi
