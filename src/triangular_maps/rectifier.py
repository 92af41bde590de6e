"""
Rectifier functions for monotone map components.
"""

import numpy as np
from scipy.special import expit

RECTIFIER_MODES = ("exponential", "softplus", "explinearunit")


class Rectifier:
    def __init__(self, mode="softplus"):
        """
        This object specifies what function is used to rectify the diagonal
        derivative of a monotone map component, before the rectifier's output
        is integrated to yield a component that increases in its last input.

        Variables:

            mode - [default = 'softplus']
                [string] : keyword string defining which function is used
                to rectify the map component functions. Must be one of
                'exponential', 'softplus' or 'explinearunit'.
        """

        if mode not in RECTIFIER_MODES:
            raise ValueError(
                f"Rectifier mode '{mode}' not understood. Must be one of "
                f"{', '.join(RECTIFIER_MODES)}."
            )

        self.mode = mode

    def evaluate(self, X):
        """
        This function evaluates the specified rectifier.

        Variables:

            X
                [array] : an array of function evaluates to be rectified.
        """

        X = np.asarray(X, dtype=float)

        if self.mode == "exponential":
            res = np.exp(X)

        elif self.mode == "softplus":
            # log(1 + 2^X) / log(2), written to avoid overflow for large X
            a = np.log(2)
            aX = a * X
            res = (np.log1p(np.exp(-np.abs(aX))) + np.maximum(aX, 0)) / a

        elif self.mode == "explinearunit":
            res = np.zeros(X.shape)
            below = X < 0
            res[below] = np.exp(X[below])
            res[~below] = X[~below] + 1

        return res

    def evaluate_dx(self, X):
        """
        This function evaluates the derivative of the specified rectifier.

        Variables:

            X
                [array] : an array of function evaluates to be rectified.
        """

        X = np.asarray(X, dtype=float)

        if self.mode == "exponential":
            res = np.exp(X)

        elif self.mode == "softplus":
            a = np.log(2)
            res = expit(a * X)

        elif self.mode == "explinearunit":
            res = np.ones(X.shape)
            below = X < 0
            res[below] = np.exp(X[below])

        return res
