"""
Warning and exception types raised by the toolbox.
"""


class ConvergenceWarning(RuntimeWarning):
    """A root search stopped before reaching its tolerance for some points."""


class OptimizationWarning(UserWarning):
    """Coefficient optimization ended with a failure code."""


class ForcedStop(Exception):
    """Raised by an objective function to end the optimization early."""
