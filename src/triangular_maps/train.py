"""
Coefficient optimization for transport maps.

``train_map`` fits the flat coefficient vector of a map by minimizing an
objective with a gradient-based optimizer from ``scipy.optimize``. Stopping
criteria that scipy does not offer directly (stop value, relative/absolute
tolerances on f, relative tolerance on x, evaluation and wall time budgets)
are enforced by a monitor wrapped around the objective.
"""

from __future__ import annotations

import time
import warnings
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

import numpy as np
from scipy.optimize import minimize

from .errors import ForcedStop, OptimizationWarning
from .map_base import ConditionalMapBase

# scipy.optimize.minimize methods that use the objective gradient
GRADIENT_METHODS = ("L-BFGS-B", "BFGS", "CG", "TNC", "SLSQP", "Newton-CG")


class OptimizationResult(IntEnum):
    """Outcome of an optimization; negative values are failures."""

    FAILURE = -1
    INVALID_ARGS = -2
    OUT_OF_MEMORY = -3
    ROUNDOFF_LIMITED = -4
    FORCED_STOP = -5
    SUCCESS = 1
    STOPVAL_REACHED = 2
    FTOL_REACHED = 3
    XTOL_REACHED = 4
    MAXEVAL_REACHED = 5
    MAXTIME_REACHED = 6


_RESULT_MESSAGES = {
    OptimizationResult.FAILURE: "generic failure",
    OptimizationResult.INVALID_ARGS: "invalid arguments",
    OptimizationResult.OUT_OF_MEMORY: "out of memory",
    OptimizationResult.ROUNDOFF_LIMITED: "roundoff error limited progress",
    OptimizationResult.FORCED_STOP: "forced termination",
    OptimizationResult.SUCCESS: "Generic success",
    OptimizationResult.STOPVAL_REACHED: "stopval reached",
    OptimizationResult.FTOL_REACHED: "ftol reached",
    OptimizationResult.XTOL_REACHED: "xtol reached",
    OptimizationResult.MAXEVAL_REACHED: "maxeval reached",
    OptimizationResult.MAXTIME_REACHED: "maxtime reached",
}


def result_message(code: int) -> str:
    """Human-readable description of an optimization result code."""
    try:
        return _RESULT_MESSAGES[OptimizationResult(code)]
    except ValueError:
        return "UNDEFINED OPTIMIZATION RESULT"


@dataclass
class TrainOptions:
    """
    Settings for ``train_map``.

    Parameters
    ----------
    opt_alg : str, default="L-BFGS-B"
        Gradient-based ``scipy.optimize.minimize`` method.
    opt_stopval : float, default=-inf
        Stop as soon as the objective is at or below this value.
    opt_xtol_rel : float, default=1e-4
        Stop when an iteration changes the coefficients by less than
        opt_xtol_rel times their norm. Non-positive values disable the test.
    opt_ftol_rel : float, default=1e-3
        Stop when an iteration changes the objective by less than
        opt_ftol_rel times its magnitude. Non-positive values disable the test.
    opt_ftol_abs : float, default=1e-3
        Stop when an iteration changes the objective by less than this value.
        Non-positive values disable the test.
    opt_maxeval : int, default=1000
        Maximum number of objective evaluations. Non-positive means no limit.
    opt_maxtime : float, default=inf
        Maximum wall time in seconds.
    verbose : bool, default=False
        Print the settings and the outcome of the optimization.
    """

    opt_alg: str = "L-BFGS-B"
    opt_stopval: float = -np.inf
    opt_xtol_rel: float = 1e-4
    opt_ftol_rel: float = 1e-3
    opt_ftol_abs: float = 1e-3
    opt_maxeval: int = 1000
    opt_maxtime: float = np.inf
    verbose: bool = False


class _StopOptimization(Exception):
    def __init__(self, result: OptimizationResult):
        super().__init__(result_message(result))
        self.result = result


class _OptimizationMonitor:
    """
    Wraps an objective for scipy and tracks the evaluations.

    Raises ``_StopOptimization`` when one of the stopping criteria of the
    ``TrainOptions`` is met. The best coefficients seen so far are kept in
    ``best_x``.
    """

    def __init__(self, objective, tmap, options: TrainOptions):
        self.objective = objective
        self.tmap = tmap
        self.options = options

        self.num_evals = 0
        self.start_time = time.perf_counter()
        self.best_x = None
        self.best_f = np.inf

        self._evaluated = {}
        self._prev_x = None
        self._prev_f = None

    def fun(self, x):
        opts = self.options
        if opts.opt_maxeval > 0 and self.num_evals >= opts.opt_maxeval:
            raise _StopOptimization(OptimizationResult.MAXEVAL_REACHED)
        if time.perf_counter() - self.start_time >= opts.opt_maxtime:
            raise _StopOptimization(OptimizationResult.MAXTIME_REACHED)

        x = np.array(x, dtype=float)
        grad = np.zeros_like(x)
        f = float(self.objective(x, grad, self.tmap))
        self.num_evals += 1

        if f < self.best_f or self.best_x is None:
            self.best_x = x.copy()
            self.best_f = f
        self._evaluated[x.tobytes()] = f

        if f <= opts.opt_stopval:
            raise _StopOptimization(OptimizationResult.STOPVAL_REACHED)

        return f, grad

    def callback(self, xk):
        """Check the tolerances on f and x after every accepted iteration."""
        opts = self.options
        xk = np.asarray(xk, dtype=float)
        f = self._evaluated.get(xk.tobytes())
        self._evaluated = {}

        if self._prev_f is not None and f is not None:
            df = abs(f - self._prev_f)
            if opts.opt_ftol_abs > 0 and df < opts.opt_ftol_abs:
                raise _StopOptimization(OptimizationResult.FTOL_REACHED)
            if opts.opt_ftol_rel > 0 and df < opts.opt_ftol_rel * abs(f):
                raise _StopOptimization(OptimizationResult.FTOL_REACHED)

        if self._prev_x is not None and opts.opt_xtol_rel > 0:
            dx = np.linalg.norm(xk - self._prev_x)
            if dx <= opts.opt_xtol_rel * np.linalg.norm(xk):
                raise _StopOptimization(OptimizationResult.XTOL_REACHED)

        self._prev_x = xk.copy()
        if f is not None:
            self._prev_f = f


def _result_from_scipy(opt) -> OptimizationResult:
    if opt.success:
        return OptimizationResult.SUCCESS

    message = str(opt.message).lower()
    if "precision" in message or "abnormal" in message:
        return OptimizationResult.ROUNDOFF_LIMITED
    if "maximum number" in message or "limit" in message:
        return OptimizationResult.MAXEVAL_REACHED
    return OptimizationResult.FAILURE


def _print_settings(num_coeffs: int, options: TrainOptions):
    print("Optimization Settings:")
    print("Algorithm: " + options.opt_alg)
    print("Optimization dimension: " + str(num_coeffs))
    print("Optimization stopval: " + str(options.opt_stopval))
    print("Max f evaluations: " + str(options.opt_maxeval))
    print("Maximum time: " + str(options.opt_maxtime))
    print("Relative x Tolerance: " + str(options.opt_xtol_rel))
    print("Relative f Tolerance: " + str(options.opt_ftol_rel))
    print("Absolute f Tolerance: " + str(options.opt_ftol_abs))


def train_map(
    tmap: ConditionalMapBase,
    objective: Callable,
    options: Optional[TrainOptions] = None,
) -> OptimizationResult:
    """
    Optimize the coefficients of a map.

    Parameters
    ----------
    tmap : ConditionalMapBase
        The map to train. If its coefficients have not been set, they are
        initialized to 1 before the optimization starts.
    objective : callable
        Called as ``objective(coeffs, grad, tmap)``. Must return the objective
        value at ``coeffs`` and, when ``grad`` is not None, write the gradient
        into ``grad`` in place. May raise ``ForcedStop`` to end the
        optimization.
    options : TrainOptions, optional
        Optimizer and stopping criteria.

    Returns
    -------
    OptimizationResult
        The outcome. Negative codes are failures and are also reported with an
        ``OptimizationWarning``. In every case the final coefficients are
        written back into the map with ``set_coeffs``.
    """
    options = options if options is not None else TrainOptions()

    if tmap.coeffs is None:
        if options.verbose:
            print("train_map: Initializing map coeffs to 1.")
        tmap.set_coeffs(np.ones(tmap.num_coeffs))

    if options.verbose:
        _print_settings(tmap.num_coeffs, options)

    x0 = np.array(tmap.coeffs, dtype=float)
    monitor = _OptimizationMonitor(objective, tmap, options)
    coeffs = None

    if options.opt_alg not in GRADIENT_METHODS or tmap.num_coeffs == 0:
        result = OptimizationResult.INVALID_ARGS

    else:
        try:
            opt = minimize(
                fun=monitor.fun,
                x0=x0,
                jac=True,
                method=options.opt_alg,
                callback=monitor.callback,
            )
            coeffs = opt.x
            result = _result_from_scipy(opt)

        except _StopOptimization as stop:
            result = stop.result
        except ForcedStop:
            result = OptimizationResult.FORCED_STOP
        except MemoryError:
            result = OptimizationResult.OUT_OF_MEMORY

    # Keep the best iterate when the optimizer did not hand back its own
    if coeffs is None:
        coeffs = monitor.best_x if monitor.best_x is not None else x0

    tmap.set_coeffs(coeffs)

    if result < 0:
        warnings.warn(
            "Optimization failed: " + result_message(result),
            OptimizationWarning,
            stacklevel=2,
        )

    if options.verbose:
        if result >= 0:
            print("Optimization result: " + result_message(result))
        print("Optimization error: " + str(monitor.best_f))
        print("Optimization evaluations: " + str(monitor.num_evals))

    return result
