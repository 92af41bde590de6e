"""
Tests for rectifiers, quadrature, coefficient storage and map options.
"""

import numpy as np
import pytest

from triangular_maps import (
    BasisTypes,
    CoeffBuffer,
    CoeffView,
    HermiteFunction,
    MapOptions,
    PhysicistHermite,
    PosFuncTypes,
    Rectifier,
)
from triangular_maps.quadrature import GaussLegendre


class TestRectifier:
    """Test the rectifier functions and their derivatives."""

    @pytest.mark.parametrize("mode", ["exponential", "softplus", "explinearunit"])
    def test_positive(self, mode):
        X = np.linspace(-20, 20, 41)
        assert np.all(Rectifier(mode).evaluate(X) > 0)

    @pytest.mark.parametrize("mode", ["exponential", "softplus", "explinearunit"])
    def test_derivative(self, mode):
        rect = Rectifier(mode)
        X = np.array([-2.5, -0.7, 0.3, 1.9])
        eps = 1e-6
        fd = (rect.evaluate(X + eps) - rect.evaluate(X - eps)) / (2 * eps)
        np.testing.assert_allclose(rect.evaluate_dx(X), fd, rtol=1e-6)

    def test_softplus_values(self):
        """Softplus is log(1 + 2^x) / log(2), so g(0) = 1."""
        rect = Rectifier("softplus")
        np.testing.assert_allclose(rect.evaluate(np.array([0.0, 1.0])), [1.0, np.log2(3)])

    def test_softplus_does_not_overflow(self):
        rect = Rectifier("softplus")
        np.testing.assert_allclose(rect.evaluate(np.array([2000.0])), [2000.0])

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="not understood"):
            Rectifier("relu")


class TestGaussLegendre:
    """Test the quadrature rule on [0, upper]."""

    def test_weights_sum_to_interval_length(self):
        rule = GaussLegendre(10)
        _, weights = rule.nodes_and_weights(np.array([2.0, -3.0]))
        np.testing.assert_allclose(np.sum(weights, axis=0), [2.0, -3.0])

    def test_polynomial_exactness(self):
        """An order-n rule integrates degree 2n - 1 exactly."""
        rule = GaussLegendre(4)
        upper = np.array([1.0, 2.5, -1.5])
        result = rule.integrate(lambda t: t**7, upper)
        np.testing.assert_allclose(result, upper**8 / 8)

    def test_invalid_order(self):
        with pytest.raises(ValueError):
            GaussLegendre(0)


class TestCoefficientStorage:
    """Test the coefficient buffer and its range-checked views."""

    def test_partition(self):
        buffer = CoeffBuffer(np.arange(6.0))
        views = buffer.partition([2, 0, 4])
        assert [len(view) for view in views] == [2, 0, 4]
        np.testing.assert_array_equal(views[2].array, [2.0, 3.0, 4.0, 5.0])

    def test_partition_size_mismatch(self):
        with pytest.raises(ValueError):
            CoeffBuffer(np.zeros(3)).partition([1, 1])

    def test_views_alias_the_buffer(self):
        buffer = CoeffBuffer(np.zeros(5))
        view = buffer.view(1, 4)
        view[0] = 3.0
        view.array[2] = 7.0
        np.testing.assert_array_equal(buffer.values, [0.0, 3.0, 0.0, 7.0, 0.0])
        assert view[-1] == 7.0

    def test_view_range_checks(self):
        buffer = CoeffBuffer(np.zeros(5))
        with pytest.raises(ValueError):
            CoeffView(buffer, 3, 6)
        view = buffer.view(1, 3)
        with pytest.raises(IndexError):
            view[2]
        with pytest.raises(IndexError):
            view[-3] = 1.0

    def test_assign(self):
        buffer = CoeffBuffer(np.zeros(4))
        view = buffer.view(2, 4)
        view.assign([1.0, 2.0])
        np.testing.assert_array_equal(np.asarray(view), [1.0, 2.0])
        with pytest.raises(ValueError):
            view.assign([1.0])

    def test_buffer_copies_its_input(self):
        values = np.ones(3)
        buffer = CoeffBuffer(values)
        buffer.values[0] = 5.0
        assert values[0] == 1.0


class TestMapOptions:
    """Test option parsing and validation."""

    def test_defaults(self):
        options = MapOptions()
        assert options.basis_type == BasisTypes.ProbabilistHermite
        assert options.pos_func_type == PosFuncTypes.SoftPlus
        assert options.nugget == 1e-8
        assert options.create_rectifier().mode == "softplus"

    def test_string_keywords(self):
        options = MapOptions(basis_type="physicist's hermite", pos_func_type="Exp")
        assert isinstance(options.create_basis(), PhysicistHermite)
        assert options.create_rectifier().mode == "exponential"

        options = MapOptions(basis_type=BasisTypes.HermiteFunctions)
        assert isinstance(options.create_basis(), HermiteFunction)

    def test_invalid_values(self):
        with pytest.raises(ValueError, match="not a valid BasisTypes"):
            MapOptions(basis_type="legendre")
        with pytest.raises(ValueError):
            MapOptions(quad_pts=0)
        with pytest.raises(ValueError):
            MapOptions(nugget=-1.0)
        with pytest.raises(ValueError):
            MapOptions(inverse_max_iterations=0)
        with pytest.raises(ValueError):
            MapOptions(inverse_start_distance=0.0)
