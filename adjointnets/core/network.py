"""Forward and adjoint evaluation of multi-layer perceptrons.

The adjoint network shares its weights with the forward network and yields
exact derivatives of the outputs with respect to the inputs by reusing the
pre-activations cached during the forward pass (Xu, Yagoub, Ding and Zhang,
"Exact adjoint sensitivity analysis for neural-based microwave modeling and
design", IEEE T-MTT 51(1), 2003).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .activations import REGISTRY as ACTIVATIONS
from .activations import Activation
from .errors import ConfigurationError, ShapeError, StaleCacheError
from .packing import adjoint_layers, init_params, shape_of, unpack, weights_fingerprint
from .types import Array, ForwardState, LayerCache, NetworkConfig, NetworkShape

_MODES = ("input", "output")


def _as_batch(inputs: Array, width: int, name: str = "inputs") -> Array:
    batch = np.asarray(inputs, dtype=np.float64)
    if batch.ndim == 1:
        batch = batch.reshape(1, -1)
    if batch.ndim != 2 or batch.shape[1] != width:
        raise ShapeError(f"{name} must have {width} columns, got shape {batch.shape}")
    return batch


def forward(
    layers: Sequence[Array],
    activation: str | Activation,
    inputs: Array,
) -> tuple[Array, ForwardState]:
    """Evaluate the network for a batch of samples.

    Parameters
    ----------
    layers:
        Weight layers ordered from the input side, each of shape
        ``(neurons_out, neurons_in + 1)`` with the bias in the last column.
    activation:
        Registry name or :class:`Activation` applied to every hidden layer.
        The output layer is linear.
    inputs:
        Array of shape ``(n_samples, n_input)``.

    Returns
    -------
    outputs, state:
        ``outputs`` has shape ``(n_samples, n_output)``; ``state`` bundles the
        per-hidden-layer ``gamma``/``z`` cache with the weights it came from.
    """

    act = ACTIVATIONS.resolve(activation)
    weights = tuple(np.array(layer, dtype=np.float64, copy=True) for layer in layers)
    shape = shape_of(weights)
    batch = _as_batch(inputs, shape.n_input)
    n_samples = batch.shape[0]
    ones = np.ones((n_samples, 1))

    cache: List[LayerCache] = []
    a = batch
    outputs = batch
    last = len(weights) - 1
    for idx, W in enumerate(weights):
        gamma = np.hstack([a, ones]) @ W.T
        if idx < last:
            a = act.fn(gamma)
            cache.append(LayerCache(gamma=gamma, z=a))
        else:
            outputs = gamma

    state = ForwardState(
        weights=weights,
        cache=tuple(cache),
        activation=act,
        n_samples=n_samples,
    )
    return outputs, state


def _as_rows(values: Array | None, count: int, width: int, name: str) -> Array:
    if values is None:
        return np.ones((count, width))
    rows = np.asarray(values, dtype=np.float64)
    if rows.ndim == 1 or (rows.ndim == 2 and rows.shape[0] == 1):
        rows = np.tile(rows.reshape(1, -1), (count, 1))
    if rows.shape != (count, width):
        raise ConfigurationError(
            f"{name} must have {width} columns for each of the {count} probes, "
            f"got shape {rows.shape}"
        )
    return rows


def adjoint(
    layers: Sequence[Array],
    state: ForwardState,
    probes: Array,
    output_mask: Array | None = None,
    *,
    mode: str = "input",
) -> Array:
    """Exact output derivatives for every probe, concatenated column-wise.

    With ``mode="input"`` each probe is a direction in input space (length
    ``n_input``; one-hot selects a single input) and contributes ``n_output``
    columns ``dy/d(probe)``. With ``mode="output"`` each probe weights the
    outputs (length ``n_output``) and contributes ``n_input`` columns
    ``sum_k probe_k * dy_k/dx``, the reverse sweep through the adjoint layers.

    ``output_mask`` multiplies each probe's result columns; a single row applies
    to every probe. Masked columns are still computed.

    ``state`` must come from :func:`forward` with exactly ``layers``; otherwise
    :class:`StaleCacheError` is raised.
    """

    if mode not in _MODES:
        raise ConfigurationError(f"mode must be one of {_MODES}, got {mode!r}")
    weights = [np.asarray(layer, dtype=np.float64) for layer in layers]
    if weights_fingerprint(weights) != state.fingerprint:
        raise StaleCacheError(
            "Forward cache was computed with different weights; rerun forward() "
            "with the current layers before calling adjoint()"
        )
    shape = shape_of(weights)
    if mode == "input":
        probe_width, result_width = shape.n_input, shape.n_output
    else:
        probe_width, result_width = shape.n_output, shape.n_input

    probe_rows = np.asarray(probes, dtype=np.float64)
    if probe_rows.ndim == 1:
        probe_rows = probe_rows.reshape(1, -1)
    if probe_rows.ndim != 2 or probe_rows.shape[1] != probe_width:
        raise ConfigurationError(
            f"Derivative probes must have {probe_width} entries in {mode!r} mode, "
            f"got shape {probe_rows.shape}"
        )
    masks = _as_rows(output_mask, probe_rows.shape[0], result_width, "output_mask")

    adj = adjoint_layers(weights)
    deriv = state.activation.deriv
    # f'(gamma) is shared by every probe
    slopes = [deriv(entry.gamma) for entry in state.cache]
    num_hidden = len(slopes)

    blocks: List[Array] = []
    for probe, mask in zip(probe_rows, masks):
        t = probe.reshape(1, -1)
        if mode == "input":
            ordered = adj[::-1]
            for h in range(num_hidden):
                t = slopes[h] * (t @ ordered[h].T)
            result = t @ ordered[num_hidden].T
        else:
            for h in range(num_hidden):
                t = slopes[num_hidden - 1 - h] * (t @ adj[h])
            result = t @ adj[num_hidden]
        result = np.broadcast_to(result, (state.n_samples, result_width))
        blocks.append(result * mask)

    if not blocks:
        return np.empty((state.n_samples, 0))
    return np.hstack(blocks)


def evaluate(
    layers: Sequence[Array],
    activation: str | Activation,
    inputs: Array,
    probes: Array | None = None,
    *,
    output_mask: Array | None = None,
    derivative_mask: Array | None = None,
    mode: str = "input",
) -> Array:
    """Masked network outputs followed by masked adjoint columns.

    This is the combined model used to fit values and sensitivities at once,
    e.g. a DC current together with its derivatives.
    """

    outputs, state = forward(layers, activation, inputs)
    if output_mask is not None:
        mask = np.asarray(output_mask, dtype=np.float64).reshape(-1)
        if mask.size != outputs.shape[1]:
            raise ConfigurationError(
                f"output_mask must have {outputs.shape[1]} entries, got {mask.size}"
            )
        outputs = outputs * mask
    if probes is None:
        return outputs
    derivs = adjoint(layers, state, probes, derivative_mask, mode=mode)
    return np.hstack([outputs, derivs])


@dataclass(frozen=True)
class MLP:
    """Network bound to a :class:`NetworkConfig` and driven by flat parameters."""

    config: NetworkConfig

    @classmethod
    def from_sizes(cls, sizes: Sequence[int], activation: str = "tanh") -> "MLP":
        return cls(NetworkConfig.from_sizes(sizes, activation=activation))

    @property
    def shape(self) -> NetworkShape:
        return self.config.shape

    @property
    def activation(self) -> Activation:
        return ACTIVATIONS.get(self.config.activation)

    @property
    def param_count(self) -> int:
        return self.shape.param_count

    def init_params(self, seed: int = 0, scale: float = 1.0) -> Array:
        return init_params(self.shape, seed=seed, scale=scale)

    def layers(self, params: Array) -> List[Array]:
        return unpack(params, self.shape)

    def forward(self, params: Array, inputs: Array) -> tuple[Array, ForwardState]:
        return forward(self.layers(params), self.activation, inputs)

    def predict(self, params: Array, inputs: Array) -> Array:
        outputs, _ = self.forward(params, inputs)
        return outputs

    __call__ = predict

    def sensitivities(
        self,
        params: Array,
        inputs: Array,
        probes: Array,
        output_mask: Array | None = None,
        *,
        mode: str = "input",
    ) -> Array:
        layers = self.layers(params)
        _, state = forward(layers, self.activation, inputs)
        return adjoint(layers, state, probes, output_mask, mode=mode)


__all__ = ["forward", "adjoint", "evaluate", "MLP"]
