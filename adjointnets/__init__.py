"""adjointnets public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import AdjointNetsError, ConfigurationError, ShapeError, StaleCacheError
from .core.network import MLP, adjoint, evaluate, forward
from .core.packing import init_params, pack, unpack
from .core.recurrent import recur
from .core.types import NetworkConfig, NetworkShape, TrainingResult, TrainingStatus
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import RecurrentConfig, RecurrentTrainer, fit_static, train_recurrent

__all__ = [
    "activations",
    "types",
    "AdjointNetsError",
    "ConfigurationError",
    "ShapeError",
    "StaleCacheError",
    "MLP",
    "NetworkConfig",
    "NetworkShape",
    "TrainingResult",
    "TrainingStatus",
    "unpack",
    "pack",
    "init_params",
    "forward",
    "adjoint",
    "evaluate",
    "recur",
    "fit_static",
    "RecurrentConfig",
    "RecurrentTrainer",
    "train_recurrent",
    "load_preset",
    "presets",
    "run_pipeline",
]
