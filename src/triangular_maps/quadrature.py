"""
Gauss-Legendre quadrature for the integrals inside monotone components.
"""

import numpy as np


class GaussLegendre:
    """
    Gauss-Legendre rule of a fixed order.

    Parameters
    ----------
    order : int
        Number of integration points. The rule integrates polynomials of
        degree up to 2 * order - 1 exactly.
    """

    def __init__(self, order: int):
        if order < 1:
            raise ValueError(f"Quadrature order must be >= 1, got {order}")
        self.order = order

        # Get coefficients for the order-th Legendre polynomial
        coefs = [0] * order + [1]
        coefs_der = np.polynomial.legendre.legder(coefs)

        # Define the derivative of the Legendre polynomial
        LegendreDer = np.polynomial.legendre.Legendre(coefs_der)

        # Get integration points (roots of Legendre polynomial)
        self.xis = np.polynomial.legendre.legroots(coefs)

        # Calculate weights
        self.Ws = 2.0 / ((1.0 - self.xis**2) * (LegendreDer(self.xis) ** 2))

    def nodes_and_weights(self, upper: np.ndarray):
        """
        Map the rule onto the intervals [0, upper].

        Parameters
        ----------
        upper : ndarray
            Upper integration limits, shape (n,). Negative limits are allowed;
            the weights then carry the sign of the oriented interval.

        Returns
        -------
        tuple of ndarray
            Nodes and weights, each of shape (order, n).
        """
        upper = np.asarray(upper, dtype=float)
        nodes = (self.xis[:, np.newaxis] + 1) / 2 * upper[np.newaxis, :]
        weights = self.Ws[:, np.newaxis] / 2 * upper[np.newaxis, :]
        return nodes, weights

    def integrate(self, f, upper: np.ndarray) -> np.ndarray:
        """Integrate the vectorized function f from 0 to each entry of upper."""
        nodes, weights = self.nodes_and_weights(upper)
        return np.sum(weights * f(nodes), axis=0)
