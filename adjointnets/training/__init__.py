"""Solvers, training loops and config-driven pipelines."""

from .pipelines import load_preset, presets, run_pipeline
from .solvers import LeastSquaresSolver, Solver, SolverResult
from .trainer import (
    RecurrentConfig,
    RecurrentTrainer,
    fit_static,
    static_objective,
    train_recurrent,
)

__all__ = [
    "LeastSquaresSolver",
    "Solver",
    "SolverResult",
    "RecurrentConfig",
    "RecurrentTrainer",
    "fit_static",
    "static_objective",
    "train_recurrent",
    "load_preset",
    "presets",
    "run_pipeline",
]
