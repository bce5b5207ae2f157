"""Pure in-memory synthetic datasets for static and recurrent fits."""

from __future__ import annotations

import numpy as np
from scipy import signal

from .registry import DatasetSpec, register_dataset
from .signals import delta, input_taps


@register_dataset("iir_filter")
def iir_filter(
    order: int = 4,
    fs: float = 10e3,
    fc: float = 3e3,
    btype: str = "high",
    n_samples: int = 64,
    nx: int = 4,
    **_: object,
) -> DatasetSpec:
    """Impulse response of a digital Butterworth filter.

    Inputs are the impulse and its ``nx`` delayed copies; the feedback part of
    the regressor is left to the recurrent trainer.
    """

    b, a = signal.butter(order, 2.0 * fc / fs, btype=btype)
    x = delta(n_samples)
    h = signal.lfilter(b, a, x[:, 0]).reshape(-1, 1)
    inputs = np.hstack([x, input_taps(x, nx)])
    return DatasetSpec(
        name="iir_filter",
        kind="recurrent",
        inputs=inputs,
        targets=h,
        provenance={
            "type": "iir_filter",
            "order": order,
            "fs": fs,
            "fc": fc,
            "btype": btype,
            "n_samples": n_samples,
            "nx": nx,
        },
        extra={"nx": nx},
    )


@register_dataset("nonlinear_ar")
def nonlinear_ar(
    n_samples: int = 80,
    gain: float = 1.5,
    feedback: float = 0.3,
    seed: int = 0,
    **_: object,
) -> DatasetSpec:
    """Compressive amplifier with first-order output memory.

    ``y[n] = 0.6 * tanh(gain * x[n]) + feedback * y[n-1]`` driven by a
    slowly modulated tone with a little noise.
    """

    rng = np.random.default_rng(seed)
    t = np.arange(n_samples, dtype=np.float64)
    x = np.sin(2 * np.pi * t / 16.0) * (0.5 + 0.5 * np.sin(2 * np.pi * t / n_samples))
    x = x + 0.02 * rng.standard_normal(n_samples)
    y = np.zeros(n_samples)
    prev = 0.0
    for n in range(n_samples):
        prev = 0.6 * np.tanh(gain * x[n]) + feedback * prev
        y[n] = prev
    return DatasetSpec(
        name="nonlinear_ar",
        kind="recurrent",
        inputs=x.reshape(-1, 1),
        targets=y.reshape(-1, 1),
        provenance={
            "type": "nonlinear_ar",
            "n_samples": n_samples,
            "gain": gain,
            "feedback": feedback,
            "seed": seed,
        },
        extra={"nx": 0},
    )


@register_dataset("device_surface")
def device_surface(
    n_vgs: int = 9,
    n_vds: int = 21,
    derivatives: bool = True,
    **_: object,
) -> DatasetSpec:
    """Transistor-like DC surface ``ids(vgs, vds)`` with analytic partials.

    Targets are ``[ids]`` or, with ``derivatives``, ``[ids, dids/dvgs,
    dids/dvds]`` matching one-hot input probes in ``(vgs, vds)`` order.
    """

    vgs = np.linspace(-1.0, 1.0, n_vgs)
    vds = np.linspace(0.0, 2.0, n_vds)
    vgs_grid, vds_grid = np.meshgrid(vgs, vds)
    g = vgs_grid.reshape(-1)
    d = vds_grid.reshape(-1)

    gate = 0.5 * (1.0 + np.tanh(2.0 * g))
    channel = np.tanh(1.5 * d)
    ids = gate * channel
    columns = [ids]
    if derivatives:
        columns.append((1.0 - np.tanh(2.0 * g) ** 2) * channel)
        columns.append(gate * 1.5 * (1.0 - channel**2))

    extra = {"vgs": vgs.tolist(), "vds": vds.tolist()}
    if derivatives:
        extra["probes"] = np.eye(2).tolist()
    return DatasetSpec(
        name="device_surface",
        kind="static",
        inputs=np.column_stack([g, d]),
        targets=np.column_stack(columns),
        provenance={
            "type": "device_surface",
            "n_vgs": n_vgs,
            "n_vds": n_vds,
            "derivatives": derivatives,
        },
        extra=extra,
    )


__all__ = ["iir_filter", "nonlinear_ar", "device_surface"]
