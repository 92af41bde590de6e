"""
Tests for the training objectives and the optimization loop.
"""

import numpy as np
import pytest
import scipy.stats

from triangular_maps import (
    ForcedStop,
    IdentityMap,
    KLObjective,
    OptimizationResult,
    OptimizationWarning,
    TrainOptions,
    TriangularMap,
    create_triangular,
    log_pullback_density,
    log_pullback_density_input_grad,
    result_message,
    train_map,
)


def flat_objective(coeffs, grad, tmap):
    """Constant objective with zero gradient."""
    tmap.set_coeffs(coeffs)
    if grad is not None:
        grad[:] = 0.0
    return 0.0


@pytest.fixture
def samples():
    """Correlated 2D Gaussian samples, one sample per column."""
    rng = np.random.default_rng(42)
    z = rng.standard_normal((2, 500))
    x0 = 1.0 + 2.0 * z[0]
    x1 = -0.5 + 0.8 * x0 + 0.5 * z[1]
    return np.vstack((x0, x1))


@pytest.fixture
def tmap():
    return create_triangular(input_dim=2, output_dim=2, total_order=1)


class TestObjectives:
    """Test the pullback density and the KL objective."""

    def test_pullback_of_identity_is_reference(self):
        tm = TriangularMap([IdentityMap(1, 1), IdentityMap(2, 1)])
        pts = np.random.default_rng(0).standard_normal((2, 6))
        expected = np.sum(scipy.stats.norm.logpdf(pts), axis=0)
        np.testing.assert_allclose(log_pullback_density(tm, pts), expected)
        np.testing.assert_allclose(log_pullback_density_input_grad(tm, pts), -pts)

    def test_pullback_input_grad(self, tmap):
        tmap.set_coeffs(np.linspace(0.1, 0.6, tmap.num_coeffs))
        pts = np.random.default_rng(1).standard_normal((2, 5))

        eps = 1e-6
        fd = np.zeros(pts.shape)
        for i in range(2):
            step = np.zeros(pts.shape)
            step[i] = eps
            fd[i] = (
                log_pullback_density(tmap, pts + step)
                - log_pullback_density(tmap, pts - step)
            ) / (2 * eps)

        np.testing.assert_allclose(
            log_pullback_density_input_grad(tmap, pts), fd, rtol=1e-5, atol=1e-6
        )

    def test_objective_gradient(self, tmap, samples):
        objective = KLObjective(samples)
        coeffs = np.linspace(-0.5, 0.5, tmap.num_coeffs)
        grad = np.zeros(tmap.num_coeffs)
        objective(coeffs, grad, tmap)

        eps = 1e-6
        fd = np.zeros(tmap.num_coeffs)
        for j in range(tmap.num_coeffs):
            step = np.zeros(tmap.num_coeffs)
            step[j] = eps
            fd[j] = (
                objective(coeffs + step, None, tmap)
                - objective(coeffs - step, None, tmap)
            ) / (2 * eps)

        np.testing.assert_allclose(grad, fd, rtol=1e-5, atol=1e-6)

    def test_objective_sets_coefficients(self, tmap, samples):
        objective = KLObjective(samples)
        coeffs = np.full(tmap.num_coeffs, 0.25)
        objective(coeffs, None, tmap)
        np.testing.assert_array_equal(tmap.coeffs, coeffs)

    def test_test_error(self, tmap, samples):
        objective = KLObjective(samples[:, :400], samples[:, 400:])
        tmap.set_coeffs(np.ones(tmap.num_coeffs))
        assert np.isfinite(objective.test_error(tmap))

        with pytest.raises(ValueError, match="No test samples"):
            KLObjective(samples).test_error(tmap)

    def test_sample_dimension_checks(self, tmap, samples):
        with pytest.raises(ValueError):
            KLObjective(samples, samples[:1])
        with pytest.raises(ValueError):
            KLObjective(samples[0])
        with pytest.raises(ValueError, match="dimension"):
            KLObjective(np.vstack((samples, samples)))(
                np.ones(tmap.num_coeffs), None, tmap
            )


class TestTrainMap:
    """Test the optimization loop and its stopping criteria."""

    def test_flat_objective_keeps_default_coefficients(self, tmap):
        """Unset coefficients start at one and a flat objective keeps them."""
        assert tmap.coeffs is None

        result = train_map(tmap, flat_objective)

        assert result > 0
        np.testing.assert_array_equal(tmap.coeffs, 1.0)

    def test_kl_training(self, tmap, samples):
        """Training pushes the samples forward to a standard Gaussian."""
        objective = KLObjective(samples)
        tmap.set_coeffs(np.ones(tmap.num_coeffs))
        initial = objective(tmap.coeffs.copy(), None, tmap)

        options = TrainOptions(opt_ftol_abs=0.0, opt_ftol_rel=1e-12, opt_xtol_rel=0.0)
        result = train_map(tmap, objective, options)

        assert result > 0
        assert objective.objective_impl(samples, tmap) < initial

        Z = tmap.evaluate(samples)
        np.testing.assert_allclose(np.mean(Z, axis=1), 0.0, atol=0.05)
        np.testing.assert_allclose(np.std(Z, axis=1), 1.0, atol=0.05)

    def test_maxeval(self, tmap, samples):
        options = TrainOptions(opt_maxeval=2, opt_ftol_abs=0.0, opt_ftol_rel=0.0)
        result = train_map(tmap, KLObjective(samples), options)
        assert result == OptimizationResult.MAXEVAL_REACHED
        assert tmap.coeffs is not None

    def test_stopval(self, tmap, samples):
        options = TrainOptions(opt_stopval=1e10)
        result = train_map(tmap, KLObjective(samples), options)
        assert result == OptimizationResult.STOPVAL_REACHED
        np.testing.assert_array_equal(tmap.coeffs, 1.0)

    def test_ftol(self, tmap, samples):
        options = TrainOptions(opt_ftol_abs=1e3)
        result = train_map(tmap, KLObjective(samples), options)
        assert result == OptimizationResult.FTOL_REACHED

    def test_xtol(self, tmap, samples):
        options = TrainOptions(opt_xtol_rel=1e3, opt_ftol_abs=0.0, opt_ftol_rel=0.0)
        result = train_map(tmap, KLObjective(samples), options)
        assert result == OptimizationResult.XTOL_REACHED

    def test_maxtime(self, tmap, samples):
        """A zero time budget stops at the first evaluation."""
        result = train_map(tmap, KLObjective(samples), TrainOptions(opt_maxtime=0.0))
        assert result == OptimizationResult.MAXTIME_REACHED
        np.testing.assert_array_equal(tmap.coeffs, 1.0)

    def test_forced_stop(self, tmap):
        def stopping_objective(coeffs, grad, tmap):
            raise ForcedStop()

        with pytest.warns(OptimizationWarning, match="forced termination"):
            result = train_map(tmap, stopping_objective)

        assert result == OptimizationResult.FORCED_STOP
        np.testing.assert_array_equal(tmap.coeffs, 1.0)

    def test_invalid_algorithm(self, tmap):
        with pytest.warns(OptimizationWarning, match="invalid arguments"):
            result = train_map(tmap, flat_objective, TrainOptions(opt_alg="unknown"))
        assert result == OptimizationResult.INVALID_ARGS
        np.testing.assert_array_equal(tmap.coeffs, 1.0)

    def test_verbose_output(self, tmap, capsys):
        train_map(tmap, flat_objective, TrainOptions(verbose=True))
        out = capsys.readouterr().out
        assert "Initializing map coeffs to 1." in out
        assert "Optimization Settings:" in out
        assert "Algorithm: L-BFGS-B" in out


class TestResultMessages:
    """Test the lookup of result descriptions."""

    def test_known_codes(self):
        assert result_message(OptimizationResult.SUCCESS) == "Generic success"
        assert result_message(OptimizationResult.FTOL_REACHED) == "ftol reached"
        assert result_message(-4) == "roundoff error limited progress"

    def test_unknown_code(self):
        assert result_message(42) == "UNDEFINED OPTIMIZATION RESULT"

    def test_sign_convention(self):
        failures = [OptimizationResult.FAILURE, OptimizationResult.FORCED_STOP]
        successes = [OptimizationResult.SUCCESS, OptimizationResult.MAXTIME_REACHED]
        assert all(code < 0 for code in failures)
        assert all(code > 0 for code in successes)
