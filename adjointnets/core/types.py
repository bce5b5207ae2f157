"""Core typing contracts for adjointnets."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from functools import cached_property
from typing import TYPE_CHECKING, List, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from .activations import Activation

Array = np.ndarray


@dataclass(frozen=True)
class NetworkShape:
    """Neuron counts of a feed-forward network.

    Attributes
    ----------
    n_input:
        Number of input neurons (columns of an input batch).
    hidden:
        Neuron count of every hidden layer, input side first. At least one
        hidden layer is required.
    n_output:
        Number of linear output neurons.
    """

    n_input: int
    hidden: Tuple[int, ...]
    n_output: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "hidden", tuple(int(h) for h in self.hidden))
        if not self.hidden:
            raise ConfigurationError("At least one hidden layer is required")
        for count in self.layer_sizes:
            if int(count) < 1:
                raise ConfigurationError(
                    f"Neuron counts must be >= 1, got {self.layer_sizes}"
                )

    @classmethod
    def from_sizes(cls, sizes: Sequence[int]) -> "NetworkShape":
        """Build a shape from ``[n_input, hidden_1, ..., hidden_H, n_output]``."""

        sizes = [int(s) for s in sizes]
        if len(sizes) < 3:
            raise ConfigurationError(
                f"Expected at least 3 neuron layers (input, hidden, output), got {sizes}"
            )
        return cls(n_input=sizes[0], hidden=tuple(sizes[1:-1]), n_output=sizes[-1])

    @property
    def layer_sizes(self) -> List[int]:
        return [self.n_input, *self.hidden, self.n_output]

    @property
    def num_hidden(self) -> int:
        return len(self.hidden)

    @property
    def num_weight_layers(self) -> int:
        return len(self.hidden) + 1

    @property
    def layer_shapes(self) -> List[Tuple[int, int]]:
        """``(rows, cols)`` of every weight layer, input side first; ``cols`` includes the bias."""

        sizes = self.layer_sizes
        return [(n_out, n_in + 1) for n_in, n_out in zip(sizes[:-1], sizes[1:])]

    @property
    def param_count(self) -> int:
        return int(sum(rows * cols for rows, cols in self.layer_shapes))


@dataclass(frozen=True)
class NetworkConfig:
    """Architecture plus activation choice, passed explicitly to every evaluation."""

    shape: NetworkShape
    activation: str = "tanh"

    @classmethod
    def from_sizes(cls, sizes: Sequence[int], activation: str = "tanh") -> "NetworkConfig":
        return cls(shape=NetworkShape.from_sizes(sizes), activation=activation)


@dataclass(frozen=True)
class LayerCache:
    """Pre-activation ``gamma`` and activation ``z`` of one hidden layer."""

    gamma: Array
    z: Array


@dataclass(frozen=True)
class ForwardState:
    """Everything an adjoint evaluation needs from the forward pass.

    ``weights`` are private copies of the layers the pass was computed with and
    ``fingerprint`` identifies them, so a cache can be checked against the
    layers handed to :func:`adjointnets.core.network.adjoint`. The digest is
    only computed on first access.
    """

    weights: Tuple[Array, ...]
    cache: Tuple[LayerCache, ...]
    activation: "Activation"
    n_samples: int

    @cached_property
    def fingerprint(self) -> str:
        from .packing import weights_fingerprint

        return weights_fingerprint(self.weights)


class TrainingStatus(str, enum.Enum):
    """States of the recurrent training loop."""

    INIT = "init"
    STEPPING = "stepping"
    CONVERGED = "converged"
    MAX_EPOCHS_REACHED = "max_epochs_reached"

    @property
    def terminal(self) -> bool:
        return self in {TrainingStatus.CONVERGED, TrainingStatus.MAX_EPOCHS_REACHED}


@dataclass(frozen=True)
class EpochRecord:
    """Weights and residual norm after one training epoch."""

    epoch: int
    layers: Tuple[Array, ...]
    resnorm: float
    solver_status: int = 0


@dataclass(frozen=True)
class TrainingResult:
    """Outcome of :func:`adjointnets.training.trainer.train_recurrent`."""

    status: TrainingStatus
    params: Array
    best_params: Array
    best_resnorm: float
    trace: Tuple[EpochRecord, ...]
    outputs: Array
    lags: Array

    @property
    def epochs(self) -> int:
        return len(self.trace)

    @property
    def resnorms(self) -> Array:
        return np.array([record.resnorm for record in self.trace], dtype=np.float64)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`adjointnets.training.pipelines.run_pipeline`."""

    epochs: int
    status: str
    resnorm: float
    metrics_path: str
    manifest_path: str
    summary_path: str = ""


__all__ = [
    "Array",
    "NetworkShape",
    "NetworkConfig",
    "LayerCache",
    "ForwardState",
    "TrainingStatus",
    "EpochRecord",
    "TrainingResult",
    "RunResult",
]
