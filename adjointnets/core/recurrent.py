"""Autoregressive evaluation of a static network with output feedback."""

from __future__ import annotations

from typing import Callable

import numpy as np

from .errors import ConfigurationError, ShapeError
from .types import Array

ForwardFn = Callable[[Array, Array], Array]


def delay_shift(x: Array, k: int) -> Array:
    """Delay ``x`` by ``k`` samples along the first axis, zero-filling the start."""

    if k < 0:
        raise ConfigurationError(f"Delay must be non-negative, got {k}")
    arr = np.asarray(x, dtype=np.float64)
    out = np.zeros_like(arr)
    if k < arr.shape[0]:
        out[k:] = arr[: arr.shape[0] - k]
    return out


def lag_matrix(outputs: Array, ny: int) -> Array:
    """Lag buffer ``[y[n-1], ..., y[n-ny]]`` of a complete output sequence.

    Block ``k`` holds every output channel delayed by ``k`` samples.
    """

    seq = np.asarray(outputs, dtype=np.float64)
    if seq.ndim == 1:
        seq = seq.reshape(-1, 1)
    if ny == 0:
        return np.zeros((seq.shape[0], 0))
    return np.hstack([delay_shift(seq, k) for k in range(1, ny + 1)])


def recur(
    forward_fn: ForwardFn,
    params: Array,
    ny: int,
    exogenous: Array,
    n_outputs: int = 1,
) -> tuple[Array, Array]:
    """Run ``forward_fn`` sample by sample, feeding back its last ``ny`` outputs.

    The network input at step ``n`` is ``[exogenous[n], y[n-1], ..., y[n-ny]]``
    with zeros standing in for samples before time 0.

    Returns
    -------
    outputs, lags:
        ``outputs`` has shape ``(n_samples, n_outputs)``; ``lags`` has shape
        ``(n_samples, ny * n_outputs)`` and ``lags[n]`` depends only on
        ``outputs[:n]``.
    """

    if ny < 0:
        raise ConfigurationError(f"Feedback order must be non-negative, got {ny}")
    if n_outputs < 1:
        raise ConfigurationError(f"n_outputs must be >= 1, got {n_outputs}")
    x = np.asarray(exogenous, dtype=np.float64)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    if x.ndim != 2:
        raise ShapeError(f"Exogenous inputs must be 2-D, got shape {x.shape}")
    n_samples = x.shape[0]
    lags = np.zeros((n_samples, ny * n_outputs))

    if ny == 0:
        # no feedback, every sample is independent
        outputs = np.asarray(forward_fn(params, x), dtype=np.float64)
        if outputs.shape != (n_samples, n_outputs):
            raise ShapeError(
                f"Network returned shape {outputs.shape}, expected {(n_samples, n_outputs)}"
            )
        return outputs, lags

    outputs = np.zeros((n_samples, n_outputs))
    buffer = np.zeros((ny, n_outputs))
    for n in range(n_samples):
        lag_row = buffer.reshape(-1)
        lags[n] = lag_row
        y = np.asarray(forward_fn(params, np.concatenate([x[n], lag_row])[None, :]))
        if y.shape != (1, n_outputs):
            raise ShapeError(f"Network returned shape {y.shape}, expected {(1, n_outputs)}")
        outputs[n] = y[0]
        buffer = np.roll(buffer, 1, axis=0)
        buffer[0] = y[0]
    return outputs, lags


__all__ = ["recur", "delay_shift", "lag_matrix"]
