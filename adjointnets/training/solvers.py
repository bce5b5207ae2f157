"""Nonlinear least-squares solver adapters.

The training code only relies on the :class:`Solver` protocol; the default
implementation delegates to :func:`scipy.optimize.least_squares`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Protocol

import numpy as np
from scipy.optimize import least_squares

from ..core.errors import ConfigurationError
from ..core.types import Array

Objective = Callable[[Array], Array]

_DIFF_STEP = float(np.sqrt(np.finfo(np.float64).eps))


@dataclass(frozen=True)
class SolverResult:
    """Outcome of one solver call.

    ``resnorm`` is the squared 2-norm of ``residual`` at ``params``.
    """

    params: Array
    resnorm: float
    residual: Array
    status: int
    info: Mapping[str, Any] = field(default_factory=dict)


class Solver(Protocol):
    """Protocol implemented by least-squares back-ends."""

    def solve(
        self,
        objective: Objective,
        x0: Array,
        *,
        lower: Array | None = None,
        upper: Array | None = None,
        max_iterations: int | None = None,
    ) -> SolverResult:
        """Minimise ``sum(objective(x) ** 2)`` starting from ``x0``."""


class _FiniteDifference:
    """Residual function paired with a forward-difference Jacobian.

    The residual and the Jacobian of the most recent point are reused, so a
    solver asking for both at the same point pays for a single sweep.
    """

    def __init__(self, objective: Objective, step: float) -> None:
        self.objective = objective
        self.step = step
        self._x: Array | None = None
        self._f: Array | None = None
        self._jac_x: Array | None = None
        self._jac: Array | None = None

    def _evaluate(self, x: Array) -> Array:
        return np.asarray(self.objective(x), dtype=np.float64).reshape(-1)

    def fun(self, x: Array) -> Array:
        x = np.asarray(x, dtype=np.float64)
        if self._x is None or not np.array_equal(x, self._x):
            self._f = self._evaluate(x)
            self._x = x.copy()
        return self._f.copy()

    def jac(self, x: Array) -> Array:
        x = np.asarray(x, dtype=np.float64)
        if self._jac_x is not None and np.array_equal(x, self._jac_x):
            return self._jac.copy()
        f0 = self.fun(x)
        jac = np.empty((f0.size, x.size))
        for j in range(x.size):
            shifted = x.copy()
            shifted[j] += self.step * max(1.0, abs(x[j]))
            jac[:, j] = (self._evaluate(shifted) - f0) / (shifted[j] - x[j])
        self._jac_x = x.copy()
        self._jac = jac
        return jac.copy()


@dataclass
class LeastSquaresSolver:
    """Levenberg-Marquardt (or trust-region) fit via SciPy.

    The Jacobian is a forward-difference approximation computed here and
    handed to SciPy, so ``max_nfev`` counts residual evaluations only for every
    method. ``max_iterations=k`` allows the initial evaluation plus ``k`` trial
    steps, i.e. ``k`` Jacobian sweeps at most.
    """

    method: str = "lm"
    ftol: float = 1e-8
    xtol: float = 1e-8
    gtol: float = 1e-8
    diff_step: float = _DIFF_STEP
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.method not in {"lm", "trf", "dogbox"}:
            raise ConfigurationError(
                f"Unknown least-squares method {self.method!r}; expected lm, trf or dogbox"
            )

    def _budget(self, max_iterations: int | None) -> int | None:
        if max_iterations is None:
            return None
        if max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be >= 1, got {max_iterations}")
        return 1 + max_iterations

    def solve(
        self,
        objective: Objective,
        x0: Array,
        *,
        lower: Array | None = None,
        upper: Array | None = None,
        max_iterations: int | None = None,
    ) -> SolverResult:
        start = np.asarray(x0, dtype=np.float64).reshape(-1)
        bounds = (
            -np.inf if lower is None else np.asarray(lower, dtype=np.float64),
            np.inf if upper is None else np.asarray(upper, dtype=np.float64),
        )
        if self.method == "lm" and (lower is not None or upper is not None):
            raise ConfigurationError("Method 'lm' does not support parameter bounds")

        residuals = _FiniteDifference(objective, self.diff_step)
        result = least_squares(
            residuals.fun,
            start,
            jac=residuals.jac,
            method=self.method,
            bounds=bounds,
            ftol=self.ftol,
            xtol=self.xtol,
            gtol=self.gtol,
            max_nfev=self._budget(max_iterations),
            **self.options,
        )
        residual = np.asarray(result.fun, dtype=np.float64)
        return SolverResult(
            params=np.array(result.x, dtype=np.float64),
            resnorm=float(residual @ residual),
            residual=residual,
            status=int(result.status),
            info={
                "nfev": int(result.nfev),
                "njev": int(result.njev) if result.njev is not None else 0,
                "optimality": float(result.optimality),
                "message": str(result.message),
            },
        )


__all__ = ["Objective", "Solver", "SolverResult", "LeastSquaresSolver"]
