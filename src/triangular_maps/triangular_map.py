"""
Block lower triangular transport maps.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .coefficients import CoeffView
from .map_base import ConditionalMapBase


class TriangularMap(ConditionalMapBase):
    """
    Block lower triangular map built from a list of conditional maps.

    The map T: R^N -> R^M has the structure

        T(x) = [ T_1(x_{1:N_1}),
                 T_2(x_{1:N_2}),
                 ...
                 T_K(x_{1:N}) ]

    where each component T_k: R^{N_k} -> R^{M_k} depends on the first N_k
    inputs and is invertible in its last M_k inputs. This is analogous to a
    block triangular matrix whose M_k-by-M_k diagonal blocks are positive
    definite.

    Parameters
    ----------
    components : sequence of ConditionalMapBase
        The components T_1, ..., T_K. The dimensions must satisfy
        N_k = N_{k-1} + M_k.
    move_coeffs : bool, default=False
        If True, the new map takes ownership of the coefficients held by the
        components: their values are gathered into one buffer of the map and
        every component is re-pointed to its slice of that buffer, so changing
        the map's coefficients changes the components' coefficients too. Every
        component with coefficients must have them set. If False, no
        coefficients are copied or created; the map's coefficients stay unset
        until ``set_coeffs`` is called, and the components evaluate with their
        own coefficients in the meantime.

    Examples
    --------
    >>> from triangular_maps import IdentityMap, TriangularMap
    >>> tmap = TriangularMap([IdentityMap(1, 1), IdentityMap(3, 2)])
    >>> tmap.input_dim, tmap.output_dim
    (3, 3)
    """

    def __init__(
        self, components: Sequence[ConditionalMapBase], move_coeffs: bool = False
    ):
        components = list(components)
        if len(components) == 0:
            raise ValueError("A TriangularMap needs at least one component.")

        for k in range(1, len(components)):
            expected = components[k - 1].input_dim + components[k].output_dim
            if components[k].input_dim != expected:
                raise ValueError(
                    f"Component {k} has input dimension "
                    f"{components[k].input_dim}, but the block triangular "
                    f"structure requires {expected} (input dimension of "
                    f"component {k - 1} plus output dimension of component {k})."
                )

        super().__init__(
            input_dim=components[-1].input_dim,
            output_dim=sum(comp.output_dim for comp in components),
            num_coeffs=sum(comp.num_coeffs for comp in components),
        )
        self.components = components

        # Row offsets into the output and coefficient vectors
        self._output_starts = np.cumsum(
            [0] + [comp.output_dim for comp in components[:-1]]
        ).tolist()
        self._coeff_starts = np.cumsum(
            [0] + [comp.num_coeffs for comp in components[:-1]]
        ).tolist()

        if move_coeffs:
            missing = [
                k for k, comp in enumerate(components) if not comp.is_coeffs_set()
            ]
            if missing:
                raise ValueError(
                    "Cannot move coefficients into the TriangularMap: the "
                    f"coefficients of components {missing} have not been set."
                )
            self.set_coeffs(
                np.concatenate([np.asarray(comp.coeffs) for comp in components])
            )

    # -------------------------------------------------------------------------
    # Coefficients
    # -------------------------------------------------------------------------

    def set_coeffs(self, coeffs):
        """
        Copy ``coeffs`` into the map and point every component at its slice.

        Component k receives the coefficients starting at index
        sum_{j<k} C_j, where C_j is the number of coefficients of component j.
        """
        super().set_coeffs(coeffs)
        self._wrap_components()

    def wrap_coeffs(self, view: CoeffView):
        super().wrap_coeffs(view)
        self._wrap_components()

    def _wrap_components(self):
        view = self._coeff_view
        for comp, (start, stop) in zip(self.components, self.coeff_slices()):
            comp.wrap_coeffs(
                CoeffView(view.buffer, view.start + start, view.start + stop)
            )

    def is_coeffs_set(self) -> bool:
        if self._coeff_view is not None:
            return True
        return all(comp.is_coeffs_set() for comp in self.components)

    def coeff_slices(self) -> list[tuple[int, int]]:
        """The [start, stop) range of each component in the coefficient vector."""
        return [
            (start, start + comp.num_coeffs)
            for comp, start in zip(self.components, self._coeff_starts)
        ]

    def get_component(self, k: int) -> ConditionalMapBase:
        return self.components[k]

    def diagonal_coeff_indices(self) -> list[int]:
        """
        Positions in the coefficient vector of the terms that control each
        component's diagonal, in component order.
        """
        indices = []
        for comp, start in zip(self.components, self._coeff_starts):
            indices.extend(start + ind for ind in comp.diagonal_coeff_indices())
        return indices

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _blocks(self):
        """Yield (component, output rows, coefficient rows) for every block."""
        for comp, out_start, coeff_start in zip(
            self.components, self._output_starts, self._coeff_starts
        ):
            yield (
                comp,
                slice(out_start, out_start + comp.output_dim),
                slice(coeff_start, coeff_start + comp.num_coeffs),
            )

    def evaluate_impl(self, pts, output):
        for comp, out_rows, _ in self._blocks():
            comp.evaluate_impl(pts[: comp.input_dim, :], output[out_rows, :])

    def log_determinant_impl(self, pts, output):
        # The determinant of a block triangular Jacobian is the product of the
        # determinants of its diagonal blocks
        output[:] = 0.0
        comp_output = np.zeros(pts.shape[1])
        for comp, _, _ in self._blocks():
            comp.log_determinant_impl(pts[: comp.input_dim, :], comp_output)
            output += comp_output

    def gradient_impl(self, pts, sens, output):
        # Later components depend on the inputs of earlier components, so the
        # input gradients are summed over the overlapping prefixes
        output[:] = 0.0
        for comp, out_rows, _ in self._blocks():
            comp_output = np.zeros((comp.input_dim, pts.shape[1]))
            comp.gradient_impl(pts[: comp.input_dim, :], sens[out_rows, :], comp_output)
            output[: comp.input_dim, :] += comp_output

    def coeff_grad_impl(self, pts, sens, output):
        output[:] = 0.0
        for comp, out_rows, coeff_rows in self._blocks():
            if comp.num_coeffs == 0:
                continue
            comp.coeff_grad_impl(
                pts[: comp.input_dim, :], sens[out_rows, :], output[coeff_rows, :]
            )

    def log_determinant_coeff_grad_impl(self, pts, output):
        output[:] = 0.0
        for comp, _, coeff_rows in self._blocks():
            if comp.num_coeffs == 0:
                continue
            comp.log_determinant_coeff_grad_impl(
                pts[: comp.input_dim, :], output[coeff_rows, :]
            )

    def log_determinant_input_grad_impl(self, pts, output):
        output[:] = 0.0
        for comp, _, _ in self._blocks():
            comp_output = np.zeros((comp.input_dim, pts.shape[1]))
            comp.log_determinant_input_grad_impl(pts[: comp.input_dim, :], comp_output)
            output[: comp.input_dim, :] += comp_output

    # -------------------------------------------------------------------------
    # Inversion
    # -------------------------------------------------------------------------

    def inverse_impl(self, x1, r, output):
        """
        Solve T(x1, x2) = r for x2.

        The input is split as x = [x_{1:N-M}, x_{N-M+1:N}], where the second
        part has the dimension of the map output. Given x1 = x_{1:N-M} and r,
        the components are solved in order: the trailing inputs of component k
        are found with the inputs of components 1, ..., k-1 already known.
        """
        full = np.zeros((self.input_dim, r.shape[1]))
        full[: self.input_dim - self.output_dim, :] = x1
        self._solve_blocks(full, r)
        output[:] = full[self.input_dim - self.output_dim :, :]

    def inverse_inplace(self, x: np.ndarray, r):
        """
        Solve T(x_{1:N-M}, x_{N-M+1:N}) = r, overwriting the last M rows of x.

        Parameters
        ----------
        x : ndarray
            Float array of shape (input_dim, n). The first input_dim -
            output_dim rows are the fixed inputs; the remaining rows are
            overwritten with the solution.
        r : ndarray
            Target outputs of shape (output_dim, n).
        """
        if not isinstance(x, np.ndarray) or x.dtype != np.float64:
            raise TypeError(
                "inverse_inplace needs a float64 numpy array to write into, got "
                f"{type(x).__name__}."
            )
        self._check_batch(x, self.input_dim, "x")
        r = self._check_batch(r, self.output_dim, "r", x.shape[1])
        self._check_coefficients("inverse_inplace")

        self._solve_blocks(x, r)
        self._warn_inverse_failures()

    def _solve_blocks(self, x, r):
        failures = []
        for comp, out_rows, _ in self._blocks():
            lead = comp.input_dim - comp.output_dim
            comp.inverse_impl(x[:lead, :], r[out_rows, :], x[lead : comp.input_dim, :])
            failures.append(comp.last_inverse_failures)

        # A point fails if any block failed to invert it
        self.last_inverse_failures = np.unique(np.concatenate(failures)).astype(int)

    def __len__(self) -> int:
        return len(self.components)

    def __repr__(self) -> str:
        return (
            f"TriangularMap(input_dim={self.input_dim}, "
            f"output_dim={self.output_dim}, num_coeffs={self.num_coeffs}, "
            f"components={len(self.components)})"
        )
