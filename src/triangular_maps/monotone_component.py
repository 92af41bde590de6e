"""
Monotone map component built from an integrated rectifier.

The component is a scalar function of x = [x_1, ..., x_d]

    T(x) = f(x_1, ..., x_{d-1}, 0) + int_0^{x_d} g(df/dx_d(x_1, ..., x_{d-1}, t)) + delta dt

where f(x) = sum_j c_j Psi_j(x) is a multivariate polynomial expansion, g is
a strictly positive rectifier and delta >= 0 is a nugget. Since the integrand
is positive, T increases strictly in x_d whatever the coefficients, so T can
be inverted in its last input.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .basis_functions import MultivariateExpansion
from .map_base import ConditionalMapBase
from .map_options import MapOptions
from .quadrature import GaussLegendre

MAX_BRACKET_EXPANSIONS = 50


class MonotoneComponent(ConditionalMapBase):
    """
    Scalar map component that is monotone in its last input.

    Parameters
    ----------
    expansion : MultivariateExpansion
        The expansion f. Its dimension is the input dimension of the
        component and its number of terms is the number of coefficients.
    options : MapOptions, optional
        Rectifier, quadrature and root finding settings.
    """

    def __init__(
        self, expansion: MultivariateExpansion, options: Optional[MapOptions] = None
    ):
        if expansion.dim < 1:
            raise ValueError("A MonotoneComponent needs at least one input.")

        super().__init__(expansion.dim, 1, expansion.num_terms)

        self.expansion = expansion
        self.options = options if options is not None else MapOptions()
        self.rect = self.options.create_rectifier()
        self.quadrature = GaussLegendre(self.options.quad_pts)
        self.nugget = self.options.nugget

    @property
    def _last(self) -> int:
        return self.input_dim - 1

    # -------------------------------------------------------------------------
    # Building blocks
    # -------------------------------------------------------------------------

    def _quadrature_points(self, pts):
        """
        Points (x_1, ..., x_{d-1}, t_q) for every quadrature node t_q in
        [0, x_d]. Column q * n + i belongs to node q of point i.
        """
        nodes, weights = self.quadrature.nodes_and_weights(pts[self._last, :])
        xq = np.tile(pts, (1, nodes.shape[0]))
        xq[self._last, :] = nodes.ravel()
        return xq, weights

    def _offset_points(self, pts):
        x0 = pts.copy()
        x0[self._last, :] = 0.0
        return x0

    def _diagonal_derivative(self, pts):
        """dT/dx_d = g(df/dx_d) + delta at the columns of pts."""
        h = self.coeffs @ self.expansion.derivative_terms(pts, self._last)
        return self.rect.evaluate(h) + self.nugget

    def _evaluate_points(self, pts):
        c = self.coeffs

        # Part independent of x_d
        offset = c @ self.expansion.evaluate_terms(self._offset_points(pts))

        # Integrate the rectified diagonal derivative from 0 to x_d
        xq, weights = self._quadrature_points(pts)
        h = (c @ self.expansion.derivative_terms(xq, self._last)).reshape(
            weights.shape
        )
        integral = np.sum(weights * (self.rect.evaluate(h) + self.nugget), axis=0)

        return offset + integral

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def evaluate_impl(self, pts, output):
        output[0, :] = self._evaluate_points(pts)

    def log_determinant_impl(self, pts, output):
        output[:] = np.log(self._diagonal_derivative(pts))

    def gradient_impl(self, pts, sens, output):
        c = self.coeffs
        evals0 = self.expansion.evaluations(self._offset_points(pts))
        xq, weights = self._quadrature_points(pts)
        evals_q = self.expansion.evaluations(xq)

        h = (c @ evals_q.derivative(self._last)).reshape(weights.shape)
        weighted_dg = weights * self.rect.evaluate_dx(h)

        # Leading inputs enter both the offset and the integrand
        for i in range(self._last):
            mixed = (c @ evals_q.second_derivative(i, self._last)).reshape(
                weights.shape
            )
            output[i, :] = sens[0, :] * (
                c @ evals0.derivative(i) + np.sum(weighted_dg * mixed, axis=0)
            )

        output[self._last, :] = sens[0, :] * self._diagonal_derivative(pts)

    def coeff_grad_impl(self, pts, sens, output):
        c = self.coeffs
        terms0 = self.expansion.evaluate_terms(self._offset_points(pts))
        xq, weights = self._quadrature_points(pts)

        dpsi = self.expansion.derivative_terms(xq, self._last)
        h = (c @ dpsi).reshape(weights.shape)
        weighted_dg = weights * self.rect.evaluate_dx(h)

        dpsi = dpsi.reshape(self.num_coeffs, *weights.shape)
        integral = np.sum(dpsi * weighted_dg[np.newaxis, :, :], axis=1)

        output[:] = sens[0, :] * (terms0 + integral)

    def log_determinant_coeff_grad_impl(self, pts, output):
        dpsi = self.expansion.derivative_terms(pts, self._last)
        h = self.coeffs @ dpsi
        ratio = self.rect.evaluate_dx(h) / (self.rect.evaluate(h) + self.nugget)
        output[:] = dpsi * ratio

    def log_determinant_input_grad_impl(self, pts, output):
        c = self.coeffs
        evals = self.expansion.evaluations(pts)
        h = c @ evals.derivative(self._last)
        ratio = self.rect.evaluate_dx(h) / (self.rect.evaluate(h) + self.nugget)

        for i in range(self.input_dim):
            output[i, :] = ratio * (c @ evals.second_derivative(i, self._last))

    def diagonal_coeff_indices(self) -> list[int]:
        """
        Index of the term linear in x_d alone. If the expansion has no such
        term, the first term that depends on x_d is used instead.
        """
        multis = self.expansion.multis
        linear = np.zeros(self.input_dim, dtype=int)
        linear[self._last] = 1

        rows = np.where(np.all(multis == linear, axis=1))[0]
        if rows.size == 0:
            rows = np.where(multis[:, self._last] > 0)[0]
        return [int(rows[0])] if rows.size > 0 else []

    # -------------------------------------------------------------------------
    # Inversion
    # -------------------------------------------------------------------------

    def inverse_impl(self, x1, r, output):
        """
        Solve T(x1, y) = r for y with a safeguarded Newton iteration.

        The root is first bracketed: starting from [-s, s], the window is
        shifted and widened until the residual changes sign. Newton steps are
        then taken from the bracket midpoint; a step that leaves the bracket is
        replaced by bisection. Points that do not converge, including points
        whose root lies beyond the reachable window, keep the iterate with the
        smallest residual and are listed in ``last_inverse_failures``.
        """
        opts = self.options
        n = r.shape[1]
        target = r[0, :]
        pts = np.vstack((x1, np.zeros((1, n))))

        def at(y, idx):
            pts_loc = pts[:, idx]
            pts_loc[self._last, :] = y
            return pts_loc

        def residual(y, idx):
            return self._evaluate_points(at(y, idx)) - target[idx]

        # ---------------------------------------------------------------------
        # Bracket the roots
        # ---------------------------------------------------------------------

        everything = np.arange(n)
        lower = -np.ones(n) * opts.inverse_start_distance
        upper = +np.ones(n) * opts.inverse_start_distance
        f_lower = residual(lower, everything)
        f_upper = residual(upper, everything)

        for _ in range(MAX_BRACKET_EXPANSIONS):
            shift_left = np.where(f_lower > 0)[0]
            shift_right = np.where(f_upper < 0)[0]
            if shift_left.size == 0 and shift_right.size == 0:
                break

            width = upper - lower

            # Root lies left of the window: move the window to the left bound
            upper[shift_left] = lower[shift_left]
            f_upper[shift_left] = f_lower[shift_left]
            lower[shift_left] -= 2 * width[shift_left]
            f_lower[shift_left] = residual(lower[shift_left], shift_left)

            # Root lies right of the window: move the window to the right bound
            lower[shift_right] = upper[shift_right]
            f_lower[shift_right] = f_upper[shift_right]
            upper[shift_right] += 2 * width[shift_right]
            f_upper[shift_right] = residual(upper[shift_right], shift_right)

        # ---------------------------------------------------------------------
        # Newton iterations
        # ---------------------------------------------------------------------

        # Points whose root lies outside the reachable window cannot converge
        bracketed = (f_lower <= 0) & (f_upper >= 0)

        y = (lower + upper) / 2
        f = residual(y, everything)

        best_y = y.copy()
        best_f = np.where(np.isfinite(f), np.abs(f), np.inf)

        # Without a bracket, keep the end of the window closest to the target
        for y_end, f_end in ((lower, f_lower), (upper, f_upper)):
            abs_end = np.where(np.isfinite(f_end), np.abs(f_end), np.inf)
            closer = ~bracketed & (abs_end < best_f)
            best_y[closer] = y_end[closer]
            best_f[closer] = abs_end[closer]

        converged = best_f <= opts.inverse_ftol
        active = np.where(~converged & bracketed)[0]

        itr_counter = 0
        while active.size > 0 and itr_counter < opts.inverse_max_iterations:
            itr_counter += 1

            # Shrink the bracket with the current iterate
            f_act = f[active]
            below = f_act < 0
            lower[active[below]] = y[active[below]]
            upper[active[~below]] = y[active[~below]]

            # Propose a Newton step, fall back to bisection outside the bracket
            deriv = self._diagonal_derivative(at(y[active], active))
            with np.errstate(divide="ignore", invalid="ignore"):
                y_new = y[active] - f_act / deriv
                outside = ~((y_new > lower[active]) & (y_new < upper[active]))
            y_new[outside] = (lower[active][outside] + upper[active][outside]) / 2

            y[active] = y_new
            f[active] = residual(y_new, active)

            abs_f = np.where(np.isfinite(f[active]), np.abs(f[active]), np.inf)
            improved = abs_f < best_f[active]
            best_y[active[improved]] = y_new[improved]
            best_f[active[improved]] = abs_f[improved]

            done = (abs_f <= opts.inverse_ftol) | (
                upper[active] - lower[active] <= opts.inverse_xtol
            )
            converged[active[done]] = True
            active = active[~done]

        output[0, :] = best_y

        self.last_inverse_failures = np.where(~converged)[0]

    def __repr__(self):
        return (
            f"MonotoneComponent(input_dim={self.input_dim}, "
            f"num_coeffs={self.num_coeffs}, rectifier='{self.rect.mode}')"
        )
