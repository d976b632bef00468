"""Core type definitions for the JAX augmented Lagrangian constraint set.

This module provides the JAX-compatible type aliases and enums shared by the
constraint records, the constraint set and the reporting utilities.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TypeAlias

from jax import Array


# Core JAX array types
StateVector: TypeAlias = Array
ControlInput: TypeAlias = Array
ConstraintValue: TypeAlias = Array  # (K, p) residuals of one record
DualVariable: TypeAlias = Array  # (K, p) multipliers of one record
PenaltyVector: TypeAlias = Array  # (K, p) penalties of one record
ActiveMask: TypeAlias = Array  # (K, p) boolean mask of one record
JacobianMatrix: TypeAlias = Array

# Scalar types
Float: TypeAlias = float

# Constraint callables, signature depends on the constraint kind
ConstraintFunction: TypeAlias = Callable[..., Array]
ConstraintJacobian: TypeAlias = Callable[..., JacobianMatrix]
StateDiffJacobian: TypeAlias = Callable[[StateVector], JacobianMatrix]


class ConstraintSense(Enum):
    """Whether a constraint is enforced as c(x) = 0 or c(x) <= 0."""

    EQUALITY = "Equality"
    INEQUALITY = "Inequality"


class ConstraintKind(Enum):
    """Which trajectory variables a constraint depends on.

    The kind decides which blocks of the quadratic cost expansion a constraint
    contributes to.
    """

    STATE = "StateOnly"
    CONTROL = "ControlOnly"
    STAGE = "StageCoupled"
    COUPLED = "Coupled"


class Verbosity(Enum):
    """Verbosity levels for diagnostic printing."""

    SILENT = "Silent"
    OUTER = "Outer"
    INNER = "Inner"


class ErrorCode(Enum):
    """Error codes carried by every exception of the package."""

    DIMENSION_MISMATCH = "DimensionMismatch"
    INVALID_CONSTRAINT_DIM = "InvalidConstraintDim"
    BAD_INDEX = "BadIndex"
    NON_POSITIVE_PENALTY = "NonPositivePenalty"
    INVALID_PARAMETER = "InvalidParameter"
    UNSUPPORTED_CONSTRAINT_KIND = "UnsupportedConstraintKind"
    MISSING_CONSTRAINT_FUNCTION = "MissingConstraintFunction"
    STALE_VIOLATION_CACHE = "StaleViolationCache"
