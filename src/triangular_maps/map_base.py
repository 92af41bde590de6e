"""
Abstract base classes for parameterized functions and conditional maps.

Point batches are two-dimensional arrays with one point per column, i.e. an
array of shape (dim, n_points). The public methods validate their inputs,
allocate the output and dispatch to an ``*_impl`` method which writes into a
preallocated output array. Subclasses implement the ``*_impl`` methods.
"""

from __future__ import annotations

import warnings
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .coefficients import CoeffBuffer, CoeffView
from .errors import ConvergenceWarning


class ParameterizedFunctionBase(ABC):
    """
    A function f: R^N -> R^M with ``num_coeffs`` tunable coefficients.

    Parameters
    ----------
    input_dim : int
        Dimension N of the input.
    output_dim : int
        Dimension M of the output.
    num_coeffs : int
        Number of coefficients parameterizing the function.

    Notes
    -----
    The coefficients are held through a ``CoeffView``. Either the function
    owns the underlying buffer (after ``set_coeffs``) or the view points into
    a buffer owned by someone else (after ``wrap_coeffs``), typically a
    ``TriangularMap`` combining several components.
    """

    def __init__(self, input_dim: int, output_dim: int, num_coeffs: int):
        if input_dim < 0 or output_dim < 0 or num_coeffs < 0:
            raise ValueError(
                "Dimensions and coefficient counts must be nonnegative, got "
                f"input_dim={input_dim}, output_dim={output_dim}, "
                f"num_coeffs={num_coeffs}."
            )
        self.input_dim = input_dim
        self.output_dim = output_dim
        self.num_coeffs = num_coeffs

        self._coeff_view: Optional[CoeffView] = None
        if num_coeffs == 0:
            self._coeff_view = CoeffBuffer.empty(0).view(0, 0)

    # -------------------------------------------------------------------------
    # Coefficients
    # -------------------------------------------------------------------------

    @property
    def coeffs(self) -> Optional[np.ndarray]:
        """Writable view of the coefficients, or None if they are unset."""
        if self._coeff_view is None:
            return None
        return self._coeff_view.array

    def is_coeffs_set(self) -> bool:
        return self._coeff_view is not None

    def set_coeffs(self, coeffs):
        """
        Copy ``coeffs`` into the coefficient storage of this function.

        If the function already holds coefficients, the values are written
        into the existing storage, so any other handle on the same buffer sees
        the update. Otherwise a new buffer is allocated.
        """
        coeffs = np.asarray(coeffs, dtype=float).ravel()
        if coeffs.shape[0] != self.num_coeffs:
            raise ValueError(
                f"Wrong number of coefficients: expected {self.num_coeffs}, "
                f"got {coeffs.shape[0]}."
            )

        if self._coeff_view is None:
            self._coeff_view = CoeffBuffer(coeffs).view(0, self.num_coeffs)
        else:
            self._coeff_view.assign(coeffs)

    def wrap_coeffs(self, view: CoeffView):
        """Use ``view`` as coefficient storage without copying."""
        if len(view) != self.num_coeffs:
            raise ValueError(
                f"Wrong number of coefficients: expected {self.num_coeffs}, "
                f"got a view of length {len(view)}."
            )
        self._coeff_view = view

    def _check_coefficients(self, operation: str):
        if not self.is_coeffs_set():
            raise RuntimeError(
                f"The coefficients of this {type(self).__name__} have not been "
                f"set. Call set_coeffs before calling {operation}."
            )

    # -------------------------------------------------------------------------
    # Input validation
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_batch(array, rows: int, name: str, n_points: Optional[int] = None):
        array = np.asarray(array, dtype=float)
        if array.ndim != 2:
            raise ValueError(
                f"'{name}' must be a two-dimensional array with one point per "
                f"column, got an array of shape {array.shape}."
            )
        if array.shape[0] != rows:
            raise ValueError(
                f"'{name}' must have {rows} rows, got {array.shape[0]}."
            )
        if n_points is not None and array.shape[1] != n_points:
            raise ValueError(
                f"'{name}' must have {n_points} columns to match the points, "
                f"got {array.shape[1]}."
            )
        return array

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def evaluate(self, pts) -> np.ndarray:
        """Evaluate the function at the columns of ``pts``."""
        pts = self._check_batch(pts, self.input_dim, "pts")
        self._check_coefficients("evaluate")

        output = np.zeros((self.output_dim, pts.shape[1]))
        self.evaluate_impl(pts, output)
        return output

    def gradient(self, pts, sens) -> np.ndarray:
        """
        Adjoint of the input Jacobian: for every point, J(x)^T sens.

        Returns an array of shape (input_dim, n_points).
        """
        pts = self._check_batch(pts, self.input_dim, "pts")
        sens = self._check_batch(sens, self.output_dim, "sens", pts.shape[1])
        self._check_coefficients("gradient")

        output = np.zeros((self.input_dim, pts.shape[1]))
        self.gradient_impl(pts, sens, output)
        return output

    def coeff_grad(self, pts, sens) -> np.ndarray:
        """
        Adjoint of the coefficient Jacobian: for every point, J_c(x)^T sens.

        Returns an array of shape (num_coeffs, n_points).
        """
        pts = self._check_batch(pts, self.input_dim, "pts")
        sens = self._check_batch(sens, self.output_dim, "sens", pts.shape[1])
        self._check_coefficients("coeff_grad")

        output = np.zeros((self.num_coeffs, pts.shape[1]))
        self.coeff_grad_impl(pts, sens, output)
        return output

    @abstractmethod
    def evaluate_impl(self, pts: np.ndarray, output: np.ndarray):
        pass

    @abstractmethod
    def gradient_impl(self, pts: np.ndarray, sens: np.ndarray, output: np.ndarray):
        pass

    @abstractmethod
    def coeff_grad_impl(
        self, pts: np.ndarray, sens: np.ndarray, output: np.ndarray
    ):
        pass


class ConditionalMapBase(ParameterizedFunctionBase):
    """
    A map T: R^N -> R^M that is invertible in its last M inputs.

    Splitting the input as x = [x1, x2] with x2 of dimension M, the map can be
    inverted to find x2 such that T(x1, x2) = r for given x1 and r. The
    Jacobian block dT/dx2 is assumed to have a positive determinant, so its
    logarithm is well defined.

    Attributes
    ----------
    last_inverse_failures : ndarray
        Indices of the points for which the most recent inversion did not
        reach the requested tolerance. Empty if all points converged.
    """

    def __init__(self, input_dim: int, output_dim: int, num_coeffs: int):
        if output_dim > input_dim:
            raise ValueError(
                f"The output dimension ({output_dim}) of a conditional map "
                f"cannot exceed its input dimension ({input_dim})."
            )
        super().__init__(input_dim, output_dim, num_coeffs)
        self.last_inverse_failures = np.zeros(0, dtype=int)

    def log_determinant(self, pts) -> np.ndarray:
        """Log determinant of dT/dx2 at each column of ``pts``, shape (n,)."""
        pts = self._check_batch(pts, self.input_dim, "pts")
        self._check_coefficients("log_determinant")

        output = np.zeros(pts.shape[1])
        self.log_determinant_impl(pts, output)
        return output

    def inverse(self, x1, r) -> np.ndarray:
        """
        Solve T(x1, x2) = r for x2.

        Parameters
        ----------
        x1 : ndarray
            Fixed leading inputs, shape (input_dim - output_dim, n).
        r : ndarray
            Target outputs, shape (output_dim, n).

        Returns
        -------
        ndarray
            The trailing inputs x2, shape (output_dim, n).

        Warns
        -----
        ConvergenceWarning
            If the root search failed for some points. Their indices are kept
            in ``last_inverse_failures`` and the best iterates are returned.
        """
        r = self._check_batch(r, self.output_dim, "r")

        # A square map has nothing to condition on; accept any empty x1
        if self.input_dim == self.output_dim and np.size(x1) == 0:
            x1 = np.zeros((0, r.shape[1]))

        x1 = self._check_batch(
            x1, self.input_dim - self.output_dim, "x1", r.shape[1]
        )
        self._check_coefficients("inverse")

        output = np.zeros((self.output_dim, r.shape[1]))
        self.inverse_impl(x1, r, output)
        self._warn_inverse_failures()
        return output

    def _warn_inverse_failures(self):
        """Report the points of the last inversion that did not converge."""
        if self.last_inverse_failures.size > 0:
            warnings.warn(
                "Root search did not converge for points "
                f"{self.last_inverse_failures.tolist()}; returning the iterates "
                "with the smallest residual.",
                ConvergenceWarning,
                stacklevel=3,
            )

    def log_determinant_coeff_grad(self, pts) -> np.ndarray:
        """Gradient of the log determinant wrt the coefficients, (num_coeffs, n)."""
        pts = self._check_batch(pts, self.input_dim, "pts")
        self._check_coefficients("log_determinant_coeff_grad")

        output = np.zeros((self.num_coeffs, pts.shape[1]))
        self.log_determinant_coeff_grad_impl(pts, output)
        return output

    def log_determinant_input_grad(self, pts) -> np.ndarray:
        """Gradient of the log determinant wrt the inputs, (input_dim, n)."""
        pts = self._check_batch(pts, self.input_dim, "pts")
        self._check_coefficients("log_determinant_input_grad")

        output = np.zeros((self.input_dim, pts.shape[1]))
        self.log_determinant_input_grad_impl(pts, output)
        return output

    def diagonal_coeff_indices(self) -> list[int]:
        """Indices of the coefficients controlling the diagonal terms."""
        return []

    @abstractmethod
    def log_determinant_impl(self, pts: np.ndarray, output: np.ndarray):
        pass

    @abstractmethod
    def inverse_impl(self, x1: np.ndarray, r: np.ndarray, output: np.ndarray):
        pass

    @abstractmethod
    def log_determinant_coeff_grad_impl(self, pts: np.ndarray, output: np.ndarray):
        pass

    @abstractmethod
    def log_determinant_input_grad_impl(self, pts: np.ndarray, output: np.ndarray):
        pass
