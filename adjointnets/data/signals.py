"""Discrete-time test signals and index helpers."""

from __future__ import annotations

import numpy as np

from ..core.errors import ConfigurationError
from ..core.recurrent import delay_shift
from ..core.types import Array


def _check_delay(n_samples: int, delay: int) -> None:
    if n_samples < 1:
        raise ConfigurationError(f"n_samples must be >= 1, got {n_samples}")
    if not 0 <= delay < n_samples:
        raise ConfigurationError(f"delay must lie in [0, {n_samples}), got {delay}")


def delta(n_samples: int, delay: int = 0) -> Array:
    """Discrete Dirac impulse ``delta[n - delay]`` as a column vector."""

    _check_delay(n_samples, delay)
    x = np.zeros((n_samples, 1))
    x[delay, 0] = 1.0
    return x


def step(n_samples: int, delay: int = 0) -> Array:
    """Discrete unit step ``u[n - delay]`` as a column vector."""

    _check_delay(n_samples, delay)
    x = np.zeros((n_samples, 1))
    x[delay:, 0] = 1.0
    return x


def pulse(n_samples: int, width: int, delay: int = 0) -> Array:
    """Rectangular pulse ``u[n - delay] - u[n - delay - width]``."""

    if width < 0:
        raise ConfigurationError(f"width must be non-negative, got {width}")
    x = step(n_samples, delay)
    end = delay + width
    if end < n_samples:
        x -= step(n_samples, end)
    return x


def input_taps(x: Array, nx: int) -> Array:
    """Delayed copies ``[x[n-1], ..., x[n-nx]]`` of every column of ``x``."""

    if nx < 0:
        raise ConfigurationError(f"nx must be non-negative, got {nx}")
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if nx == 0:
        return np.zeros((arr.shape[0], 0))
    return np.hstack([delay_shift(arr, k) for k in range(1, nx + 1)])


def extract_index(keys: Array, grid: Array) -> Array:
    """Indices of ``keys`` on the uniformly spaced ``grid``.

    Keys are assumed to lie on (or near) grid points; the nearest index is
    returned.
    """

    grid = np.asarray(grid, dtype=np.float64).reshape(-1)
    keys = np.asarray(keys, dtype=np.float64).reshape(-1)
    if grid.size == 1:
        return np.zeros(keys.shape, dtype=np.int64)
    span = grid[-1] - grid[0]
    index = np.rint((keys - grid[0]) / span * (grid.size - 1)).astype(np.int64)
    if np.any(index < 0) or np.any(index >= grid.size):
        raise ConfigurationError("keys fall outside the grid")
    return index


__all__ = ["delta", "step", "pulse", "input_taps", "extract_index", "delay_shift"]
