"""JAX augmented Lagrangian constraint set for trajectory optimization.

This package stores, updates and evaluates the multiplier and penalty terms an
augmented Lagrangian trajectory optimizer attaches to each constraint, and
produces the cost and quadratic cost expansion those terms contribute.
"""

from __future__ import annotations

import jax

from .constraint_params import ConstraintParams
from .constraint_record import ConstraintRecord, DualState, EvaluationBuffer
from .constraint_set import AugmentedLagrangianConstraintSet, link_constraints
from .constraints import ConstraintDefinition, ConstraintList, ModelDims, jacobian_width

# Exception hierarchy
from .exceptions import AugLagException, ConfigurationError, ConsistencyError, DimensionError
from .expansion import CostExpansion

# Configuration classes
from .options import AugmentedLagrangianOptions

# Reporting
from .reporting import (
    NO_VIOLATION_MESSAGE,
    ViolationLocation,
    find_max_violation,
    locate_max_violation,
    max_penalty,
    max_violation,
    norm_violation,
)

# Type definitions
from .types import (
    ActiveMask,
    ConstraintFunction,
    ConstraintJacobian,
    ConstraintKind,
    ConstraintSense,
    ConstraintValue,
    ControlInput,
    DualVariable,
    ErrorCode,
    Float,
    JacobianMatrix,
    PenaltyVector,
    StateVector,
    Verbosity,
)


# Version information
__version__ = "0.1.0"
__license__ = "MIT"

# Public API
__all__ = [
    "NO_VIOLATION_MESSAGE",
    "ActiveMask",
    "AugLagException",
    "AugmentedLagrangianConstraintSet",
    "AugmentedLagrangianOptions",
    "ConfigurationError",
    "ConsistencyError",
    "ConstraintDefinition",
    "ConstraintFunction",
    "ConstraintJacobian",
    "ConstraintKind",
    "ConstraintList",
    "ConstraintParams",
    "ConstraintRecord",
    "ConstraintSense",
    "ConstraintValue",
    "ControlInput",
    "CostExpansion",
    "DimensionError",
    "DualState",
    "DualVariable",
    "ErrorCode",
    "EvaluationBuffer",
    "Float",
    "JacobianMatrix",
    "ModelDims",
    "PenaltyVector",
    "StateVector",
    "Verbosity",
    "ViolationLocation",
    "__license__",
    "__version__",
    "find_max_violation",
    "jacobian_width",
    "link_constraints",
    "locate_max_violation",
    "max_penalty",
    "max_violation",
    "norm_violation",
]


def _check_jax_installation() -> None:
    """Check that JAX is properly installed and accessible."""
    try:
        import jax.numpy as jnp

        _ = jnp.array([1.0, 2.0, 3.0])
    except ImportError as e:
        raise ImportError(
            "JAX is required for jaxalcon but not found. "
            "Please install JAX with: pip install jax jaxlib"
        ) from e
    except Exception as e:
        raise RuntimeError(
            "JAX installation appears to be broken. "
            "Please reinstall JAX with: pip install --upgrade jax jaxlib"
        ) from e


_check_jax_installation()

# Enable 64-bit precision for numerical stability
jax.config.update("jax_enable_x64", True)
