"""Unit tests for constraint parameters and solver options."""

import math

import pytest

from jaxalcon import AugmentedLagrangianOptions, ConfigurationError, ConstraintParams, ErrorCode


class TestConstraintParams:
    """Tests for parameter defaults and validation."""

    def test_defaults(self):
        params = ConstraintParams()
        assert params.mu0 == 1.0
        assert params.mu_max == 1e8
        assert params.lambda_max == 1e8
        assert params.phi == 10.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"mu0": 0.0},
            {"mu0": -1.0},
            {"mu0": 10.0, "mu_max": 1.0},
            {"phi": 1.0},
            {"lambda_max": -1.0},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ConfigurationError):
            ConstraintParams(**kwargs)

    def test_non_positive_penalty_error_code(self):
        with pytest.raises(ConfigurationError) as excinfo:
            ConstraintParams(mu0=0.0)
        assert excinfo.value.error_code == ErrorCode.NON_POSITIVE_PENALTY
        assert "NonPositivePenalty" in str(excinfo.value)

    def test_apply_options_overrides_specified_fields(self):
        params = ConstraintParams()
        params.apply_options(AugmentedLagrangianOptions(penalty_initial=2.0, dual_max=50.0))
        assert params.mu0 == 2.0
        assert params.lambda_max == 50.0
        # Unspecified fields persist
        assert params.mu_max == 1e8
        assert params.phi == 10.0

    def test_apply_options_all_fields(self):
        params = ConstraintParams()
        opts = AugmentedLagrangianOptions(
            dual_max=1.0, penalty_max=100.0, penalty_initial=5.0, penalty_scaling=2.0
        )
        params.apply_options(opts)
        assert params == ConstraintParams(mu0=5.0, mu_max=100.0, lambda_max=1.0, phi=2.0)

    def test_apply_options_rejects_inconsistent_result(self):
        params = ConstraintParams(mu_max=10.0)
        with pytest.raises(ConfigurationError):
            params.apply_options(
                AugmentedLagrangianOptions(penalty_initial=100.0, penalty_scaling=2.0)
            )
        assert params == ConstraintParams(mu_max=10.0)

    def test_with_options_returns_copy(self):
        params = ConstraintParams()
        updated = params.with_options(AugmentedLagrangianOptions(penalty_scaling=3.0))
        assert updated.phi == 3.0
        assert params.phi == 10.0


class TestAugmentedLagrangianOptions:
    """Tests for option defaults and validation."""

    def test_defaults_are_unspecified(self):
        opts = AugmentedLagrangianOptions()
        assert math.isnan(opts.dual_max)
        assert math.isnan(opts.penalty_max)
        assert math.isnan(opts.penalty_initial)
        assert math.isnan(opts.penalty_scaling)
        assert opts.reset_duals
        assert opts.reset_penalties

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"dual_max": -1.0},
            {"penalty_max": 0.0},
            {"penalty_initial": -2.0},
            {"penalty_scaling": 0.5},
            {"penalty_initial": 10.0, "penalty_max": 1.0},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            AugmentedLagrangianOptions(**kwargs)

    def test_options_are_frozen(self):
        opts = AugmentedLagrangianOptions()
        with pytest.raises(AttributeError):
            opts.dual_max = 1.0
