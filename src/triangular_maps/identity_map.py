"""
Identity map component.
"""

from .map_base import ConditionalMapBase


class IdentityMap(ConditionalMapBase):
    """
    Map returning its last ``output_dim`` inputs unchanged.

    T(x_{1:N}) = x_{N-M+1:N}. The map has no coefficients, so the coefficient
    gradients are not defined and raise ``NotImplementedError``.

    Parameters
    ----------
    input_dim : int
        Input dimension N.
    output_dim : int
        Output dimension M <= N.
    """

    def __init__(self, input_dim: int, output_dim: int):
        super().__init__(input_dim, output_dim, 0)

    def evaluate_impl(self, pts, output):
        # Copy x_{N-M+1:N}
        output[:] = pts[self.input_dim - self.output_dim :, :]

    def log_determinant_impl(self, pts, output):
        output[:] = 0.0

    def inverse_impl(self, x1, r, output):
        output[:] = r

    def gradient_impl(self, pts, sens, output):
        output[: self.input_dim - self.output_dim, :] = 0.0
        output[self.input_dim - self.output_dim :, :] = sens

    def coeff_grad_impl(self, pts, sens, output):
        raise NotImplementedError(
            "IdentityMap has no coefficients; coeff_grad is not defined."
        )

    def log_determinant_coeff_grad_impl(self, pts, output):
        raise NotImplementedError(
            "IdentityMap has no coefficients; log_determinant_coeff_grad is "
            "not defined."
        )

    def log_determinant_input_grad_impl(self, pts, output):
        output[:] = 0.0

    def __repr__(self):
        return f"IdentityMap(input_dim={self.input_dim}, output_dim={self.output_dim})"
