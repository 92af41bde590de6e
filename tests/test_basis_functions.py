"""
Tests for univariate basis families and multivariate expansions.
"""

import numpy as np
import pytest

from triangular_maps import (
    HermiteFunction,
    MultiIndexSet,
    MultivariateExpansion,
    PhysicistHermite,
    ProbabilistHermite,
)


class TestHermitePolynomials:
    """Test the numpy-backed polynomial families."""

    def test_probabilist_values(self):
        basis = ProbabilistHermite()
        x = np.array([0.0, 1.0, 2.0])
        np.testing.assert_allclose(basis.evaluate(0, x), [1.0, 1.0, 1.0])
        np.testing.assert_allclose(basis.evaluate(1, x), x)
        np.testing.assert_allclose(basis.evaluate(2, x), x**2 - 1)

    def test_physicist_values(self):
        basis = PhysicistHermite()
        x = np.array([0.0, 1.0, 2.0])
        np.testing.assert_allclose(basis.evaluate(1, x), 2 * x)
        np.testing.assert_allclose(basis.evaluate(2, x), 4 * x**2 - 2)

    @pytest.mark.parametrize(
        "basis", [ProbabilistHermite(), PhysicistHermite(), HermiteFunction()]
    )
    def test_derivatives_match_finite_differences(self, basis):
        """First and second derivatives agree with central differences."""
        x = np.linspace(-3, 3, 13)
        eps = 1e-5
        for order in range(5):
            fd = (basis.evaluate(order, x + eps) - basis.evaluate(order, x - eps)) / (
                2 * eps
            )
            np.testing.assert_allclose(
                basis.derivative(order, x), fd, rtol=1e-6, atol=1e-6
            )

            fd2 = (
                basis.derivative(order, x + eps) - basis.derivative(order, x - eps)
            ) / (2 * eps)
            np.testing.assert_allclose(
                basis.second_derivative(order, x), fd2, rtol=1e-6, atol=1e-6
            )

    def test_batched_evaluation(self):
        basis = ProbabilistHermite()
        x = np.array([0.5, -1.5])
        vals, ders, ders2 = basis.evaluate_second_derivatives(3, x)
        assert vals.shape == (4, 2)
        assert ders.shape == (4, 2)
        assert ders2.shape == (4, 2)
        np.testing.assert_allclose(vals[3], x**3 - 3 * x)
        np.testing.assert_allclose(ders[3], 3 * x**2 - 3)
        np.testing.assert_allclose(ders2[3], 6 * x)


class TestHermiteFunction:
    """Test the Hermite functions with constant and linear terms."""

    @pytest.fixture
    def basis(self):
        return HermiteFunction()

    def test_low_orders(self, basis):
        x = np.array([-2.0, 0.0, 3.0])
        np.testing.assert_allclose(basis.evaluate(0, x), 1.0)
        np.testing.assert_allclose(basis.evaluate(1, x), x)

    def test_normalized_to_unit_maximum(self, basis):
        """x exp(-x^2/4) peaks at sqrt(2); the scaled peak is one."""
        peak = basis.evaluate(3, np.array([np.sqrt(2.0)]))
        np.testing.assert_allclose(peak, 1.0, rtol=1e-5)

    def test_decays_in_the_tails(self, basis):
        x = np.array([-40.0, 40.0])
        for order in range(2, 6):
            np.testing.assert_allclose(basis.evaluate(order, x), 0.0, atol=1e-12)


class TestMultivariateExpansion:
    """Test assembly of tensor-product terms."""

    @pytest.fixture
    def expansion(self):
        return MultivariateExpansion(
            ProbabilistHermite(), MultiIndexSet.create_total_order(2, 2)
        )

    def test_dimensions(self, expansion):
        assert expansion.num_terms == 6
        assert expansion.dim == 2

    def test_terms(self, expansion):
        # Terms in order [0,0], [0,1], [1,0], [1,1], [0,2], [2,0]
        pts = np.array([[2.0], [3.0]])
        terms = expansion.evaluate_terms(pts)
        np.testing.assert_allclose(terms[:, 0], [1.0, 3.0, 2.0, 6.0, 8.0, 3.0])

    def test_derivative_terms(self, expansion):
        pts = np.array([[2.0], [3.0]])
        d1 = expansion.derivative_terms(pts, 1)
        np.testing.assert_allclose(d1[:, 0], [0.0, 1.0, 0.0, 2.0, 6.0, 0.0])

    def test_second_derivative_terms(self, expansion):
        pts = np.array([[2.0], [3.0]])
        mixed = expansion.second_derivative_terms(pts, 0, 1)
        np.testing.assert_allclose(mixed[:, 0], [0.0, 0.0, 0.0, 1.0, 0.0, 0.0])

        pure = expansion.second_derivative_terms(pts, 1, 1)
        np.testing.assert_allclose(pure[:, 0], [0.0, 0.0, 0.0, 0.0, 2.0, 0.0])
