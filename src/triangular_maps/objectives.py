"""
Training objectives and pullback densities.

The reference distribution is a standard multivariate Gaussian. For a map T
with output dimension M, the pullback density of the reference is

    log p(x) = log eta(T(x)) + log det dT/dx2(x),

which is the (conditional) density of the trailing inputs x2 given the
leading inputs x1 when T is not square.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import scipy.stats

from .map_base import ConditionalMapBase


def reference_log_density(Z: np.ndarray) -> np.ndarray:
    """Log density of the standard Gaussian at the columns of Z, shape (n,)."""
    return np.sum(scipy.stats.norm.logpdf(Z), axis=0)


def log_pullback_density(tmap: ConditionalMapBase, pts) -> np.ndarray:
    """
    Log pullback density of the standard Gaussian reference through tmap.

    Parameters
    ----------
    tmap : ConditionalMapBase
        The transport map.
    pts : ndarray
        Points of shape (tmap.input_dim, n).
    """
    Z = tmap.evaluate(pts)
    return reference_log_density(Z) + tmap.log_determinant(pts)


def log_pullback_density_input_grad(tmap: ConditionalMapBase, pts) -> np.ndarray:
    """Gradient of ``log_pullback_density`` wrt the inputs, (input_dim, n)."""
    Z = tmap.evaluate(pts)

    # d/dx log eta(T(x)) = -J(x)^T T(x) for the standard Gaussian
    return tmap.gradient(pts, -Z) + tmap.log_determinant_input_grad(pts)


class KLObjective:
    """
    Kullback-Leibler divergence between the target and the pullback density.

    Up to a constant, the divergence is estimated by the negative average log
    pullback density over samples of the target,

        L(c) = -1/n sum_i [ log eta(T(x_i; c)) + log det dT/dx2(x_i; c) ].

    Parameters
    ----------
    train_pts : ndarray
        Training samples of shape (dim, n_train), one sample per column.
    test_pts : ndarray, optional
        Held-out samples of the same dimension, used by ``test_error``.

    Notes
    -----
    The objective is called as ``objective(coeffs, grad, tmap)``. It writes
    ``coeffs`` into the map, returns the loss and, when ``grad`` is not None,
    fills ``grad`` in place with the gradient wrt the coefficients.
    """

    def __init__(self, train_pts, test_pts=None):
        self.train_pts = self._check_samples(train_pts, "train_pts")
        self.dim = self.train_pts.shape[0]

        self.test_pts = None
        if test_pts is not None:
            self.test_pts = self._check_samples(test_pts, "test_pts")
            if self.test_pts.shape[0] != self.dim:
                raise ValueError(
                    f"test_pts has {self.test_pts.shape[0]} rows, but the "
                    f"training samples have {self.dim}."
                )

    @staticmethod
    def _check_samples(samples, name):
        samples = np.asarray(samples, dtype=float)
        if samples.ndim != 2 or samples.shape[1] == 0:
            raise ValueError(
                f"{name} must be a non-empty array of shape (dim, n_samples), "
                f"got shape {samples.shape}."
            )
        return samples

    def __call__(
        self,
        coeffs: np.ndarray,
        grad: Optional[np.ndarray],
        tmap: ConditionalMapBase,
    ) -> float:
        tmap.set_coeffs(coeffs)
        return self.objective_impl(self.train_pts, tmap, grad)

    def test_error(self, tmap: ConditionalMapBase) -> float:
        """Objective value on the held-out samples."""
        if self.test_pts is None:
            raise ValueError("No test samples were given to this KLObjective.")
        return self.objective_impl(self.test_pts, tmap)

    def objective_impl(self, pts, tmap, grad=None) -> float:
        if pts.shape[0] != tmap.input_dim:
            raise ValueError(
                f"The samples have dimension {pts.shape[0]}, but the map "
                f"expects inputs of dimension {tmap.input_dim}."
            )
        n = pts.shape[1]

        Z = tmap.evaluate(pts)
        log_det = tmap.log_determinant(pts)
        loss = -np.sum(reference_log_density(Z) + log_det) / n

        if grad is not None:
            # d/dc [-log eta(T)] = (dT/dc)^T T for the standard Gaussian
            grad[:] = (
                np.sum(tmap.coeff_grad(pts, Z), axis=1)
                - np.sum(tmap.log_determinant_coeff_grad(pts), axis=1)
            ) / n

        return float(loss)
