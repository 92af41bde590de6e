"""
Basis functions for polynomial map components.

This module provides univariate basis families built on ``numpy.polynomial``
and the tensor-product expansion that combines them according to a
multi-index set.

Classes
-------
UnivariateBasis : ABC
    Abstract base class for one-dimensional basis families.
ProbabilistHermite : UnivariateBasis
    Probabilist's Hermite polynomials He_k.
PhysicistHermite : UnivariateBasis
    Physicist's Hermite polynomials H_k.
HermiteFunction : UnivariateBasis
    Constant, linear, then Hermite polynomials with a Gaussian envelope.
MultivariateExpansion
    Tensor-product terms Psi_j(x) = prod_i p_{alpha_j,i}(x_i).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import numpy as np

from .multi_index import MultiIndexSet

# =============================================================================
# Univariate families
# =============================================================================


class UnivariateBasis(ABC):
    """
    Abstract base class for one-dimensional basis families.

    Subclasses implement the value, first and second derivative of the basis
    function of a given order. The batched ``evaluate_*`` methods stack the
    orders 0, ..., max_order along a new leading axis.
    """

    @abstractmethod
    def evaluate(self, order: int, x: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def derivative(self, order: int, x: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def second_derivative(self, order: int, x: np.ndarray) -> np.ndarray:
        pass

    def evaluate_all(self, max_order: int, x) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        return np.stack([self.evaluate(k, x) for k in range(max_order + 1)])

    def evaluate_derivatives(self, max_order: int, x):
        """Values and first derivatives of all orders up to max_order."""
        x = np.asarray(x, dtype=float)
        return (
            self.evaluate_all(max_order, x),
            np.stack([self.derivative(k, x) for k in range(max_order + 1)]),
        )

    def evaluate_second_derivatives(self, max_order: int, x):
        """Values, first and second derivatives of all orders up to max_order."""
        x = np.asarray(x, dtype=float)
        vals, ders = self.evaluate_derivatives(max_order, x)
        return (
            vals,
            ders,
            np.stack([self.second_derivative(k, x) for k in range(max_order + 1)]),
        )


class _NumpyPolynomialFamily(UnivariateBasis):
    """
    Family of orthogonal polynomials backed by a numpy polynomial class.

    The k-th member has the standard basis coefficients [0, ..., 0, 1].
    """

    polyfunc: Callable = None
    polyfunc_der: Callable = None

    def __init__(self):
        self._cache = []

    def _polynomials(self, order: int):
        # Build and cache the polynomial and its first two derivatives
        while len(self._cache) <= order:
            coefficients = np.array([0.0] * len(self._cache) + [1.0])
            self._cache.append(
                (
                    self.polyfunc(coefficients),
                    self.polyfunc(self.polyfunc_der(coefficients)),
                    self.polyfunc(self.polyfunc_der(coefficients, 2)),
                )
            )
        return self._cache[order]

    def evaluate(self, order, x):
        return self._polynomials(order)[0](np.asarray(x, dtype=float))

    def derivative(self, order, x):
        return self._polynomials(order)[1](np.asarray(x, dtype=float))

    def second_derivative(self, order, x):
        return self._polynomials(order)[2](np.asarray(x, dtype=float))


class ProbabilistHermite(_NumpyPolynomialFamily):
    """Probabilist's Hermite polynomials: He_0 = 1, He_1 = x, He_2 = x^2 - 1."""

    polyfunc = np.polynomial.hermite_e.HermiteE
    polyfunc_der = staticmethod(np.polynomial.hermite_e.hermeder)


class PhysicistHermite(_NumpyPolynomialFamily):
    """Physicist's Hermite polynomials: H_0 = 1, H_1 = 2x, H_2 = 4x^2 - 2."""

    polyfunc = np.polynomial.hermite.Hermite
    polyfunc_der = staticmethod(np.polynomial.hermite.hermder)


class HermiteFunction(UnivariateBasis):
    """
    Hermite functions with a constant and a linear term.

    Order 0 is the constant 1 and order 1 is x. Order k >= 2 is the
    probabilist's Hermite polynomial He_{k-2}(x) multiplied by the Gaussian
    envelope exp(-x^2/4), scaled to have a maximum absolute value of 1. The
    envelope makes the higher-order terms decay to zero far from the origin,
    so the map behaves linearly in the tails.
    """

    def __init__(self):
        self._hermite = ProbabilistHermite()
        self._normalization = {}

    def _scale(self, order: int) -> float:
        if order not in self._normalization:
            # Evaluate over a wide range to find the maximum
            hf_x = np.linspace(-100, 100, 100001)
            hf_eval = self._hermite.evaluate(order - 2, hf_x) * np.exp(-(hf_x**2) / 4)
            self._normalization[order] = 1.0 / np.max(np.abs(hf_eval))
        return self._normalization[order]

    def evaluate(self, order, x):
        x = np.asarray(x, dtype=float)
        if order == 0:
            return np.ones(x.shape)
        if order == 1:
            return x.copy()

        poly_val = self._hermite.evaluate(order - 2, x)
        return self._scale(order) * poly_val * np.exp(-(x**2) / 4)

    def derivative(self, order, x):
        """d/dx[p(x) exp(-x^2/4)] = (p'(x) - x p(x) / 2) exp(-x^2/4)."""
        x = np.asarray(x, dtype=float)
        if order == 0:
            return np.zeros(x.shape)
        if order == 1:
            return np.ones(x.shape)

        poly_val = self._hermite.evaluate(order - 2, x)
        der_poly_val = self._hermite.derivative(order - 2, x)
        gaussian = np.exp(-(x**2) / 4)
        return self._scale(order) * (der_poly_val - x * poly_val / 2) * gaussian

    def second_derivative(self, order, x):
        x = np.asarray(x, dtype=float)
        if order <= 1:
            return np.zeros(x.shape)

        poly_val = self._hermite.evaluate(order - 2, x)
        der_poly_val = self._hermite.derivative(order - 2, x)
        der2_poly_val = self._hermite.second_derivative(order - 2, x)
        gaussian = np.exp(-(x**2) / 4)

        # Product rule twice, with g = exp(-x^2/4), g' = -x/2 g and
        # g'' = (x^2/4 - 1/2) g
        return (
            self._scale(order)
            * (der2_poly_val - x * der_poly_val + (x**2 / 4 - 0.5) * poly_val)
            * gaussian
        )


# =============================================================================
# Multivariate expansion
# =============================================================================


@dataclass
class ExpansionEvaluations:
    """
    Univariate basis evaluations at a batch of points, reused to assemble the
    terms of an expansion and their partial derivatives.

    ``values[i]``, ``first[i]`` and ``second[i]`` have shape
    (max_degree_i + 1, n_points).
    """

    multis: np.ndarray
    values: list
    first: list
    second: list

    def _assemble(self, factors) -> np.ndarray:
        num_terms, dim = self.multis.shape
        n_points = self.values[0].shape[-1] if dim > 0 else 0
        out = np.ones((num_terms, n_points))
        for i in range(dim):
            out *= factors[i][self.multis[:, i], :]
        return out

    def terms(self) -> np.ndarray:
        return self._assemble(self.values)

    def derivative(self, dim: int) -> np.ndarray:
        factors = list(self.values)
        factors[dim] = self.first[dim]
        return self._assemble(factors)

    def second_derivative(self, dim_a: int, dim_b: int) -> np.ndarray:
        factors = list(self.values)
        if dim_a == dim_b:
            factors[dim_a] = self.second[dim_a]
        else:
            factors[dim_a] = self.first[dim_a]
            factors[dim_b] = self.first[dim_b]
        return self._assemble(factors)


class MultivariateExpansion:
    """
    Tensor-product expansion defined by a univariate family and a multi-index
    set.

    Term j is Psi_j(x) = prod_i p_{alpha_j,i}(x_i), where alpha_j is the j-th
    multi-index in the set.

    Parameters
    ----------
    basis : UnivariateBasis
        The one-dimensional family used in every dimension.
    multi_set : MultiIndexSet
        The multi-indices of the terms. Their order defines the order of the
        coefficients.
    """

    def __init__(self, basis: UnivariateBasis, multi_set: MultiIndexSet):
        self.basis = basis
        self.multi_set = multi_set
        self.multis = multi_set.to_array()
        self.max_degrees = multi_set.max_orders()

    @property
    def num_terms(self) -> int:
        return self.multis.shape[0]

    @property
    def dim(self) -> int:
        return self.multis.shape[1]

    def evaluations(self, pts: np.ndarray) -> ExpansionEvaluations:
        """Evaluate the univariate factors at the columns of ``pts``."""
        values, first, second = [], [], []
        for i in range(self.dim):
            vals, ders, ders2 = self.basis.evaluate_second_derivatives(
                int(self.max_degrees[i]), pts[i, :]
            )
            values.append(vals)
            first.append(ders)
            second.append(ders2)
        return ExpansionEvaluations(self.multis, values, first, second)

    def evaluate_terms(self, pts: np.ndarray) -> np.ndarray:
        """All terms Psi_j at the columns of pts, shape (num_terms, n)."""
        return self.evaluations(pts).terms()

    def derivative_terms(self, pts: np.ndarray, dim: int) -> np.ndarray:
        """d Psi_j / d x_dim, shape (num_terms, n)."""
        return self.evaluations(pts).derivative(dim)

    def second_derivative_terms(
        self, pts: np.ndarray, dim_a: int, dim_b: int
    ) -> np.ndarray:
        """d^2 Psi_j / (d x_dim_a d x_dim_b), shape (num_terms, n)."""
        return self.evaluations(pts).second_derivative(dim_a, dim_b)
