from __future__ import annotations

import math
from dataclasses import dataclass

from .types import Float, Verbosity


def is_specified(value: Float) -> bool:
    """Return True unless the option value is the NaN placeholder."""
    return not math.isnan(value)


@dataclass(frozen=True)
class AugmentedLagrangianOptions:
    # Parameter overrides applied by reset; NaN leaves the constraint's value alone
    dual_max: Float = float("nan")
    penalty_max: Float = float("nan")
    penalty_initial: Float = float("nan")
    penalty_scaling: Float = float("nan")

    # Whether reset also clears multipliers and penalties
    reset_duals: bool = True
    reset_penalties: bool = True

    # Verbosity level
    verbose: Verbosity = Verbosity.SILENT

    def __post_init__(self) -> None:
        """Validate the option values that were specified."""
        if is_specified(self.dual_max) and self.dual_max < 0:
            raise ValueError("dual_max must be non-negative")
        if is_specified(self.penalty_max) and self.penalty_max <= 0:
            raise ValueError("penalty_max must be positive")
        if is_specified(self.penalty_initial) and self.penalty_initial <= 0:
            raise ValueError("penalty_initial must be positive")
        if is_specified(self.penalty_scaling) and self.penalty_scaling <= 1:
            raise ValueError("penalty_scaling must be greater than 1")
        if (
            is_specified(self.penalty_max)
            and is_specified(self.penalty_initial)
            and self.penalty_max < self.penalty_initial
        ):
            raise ValueError("penalty_max must be at least penalty_initial")
