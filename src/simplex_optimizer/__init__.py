"""Simplex, branch-and-bound and cutting-plane solvers for small LP/IP models."""

from .cancellation import CancellationToken
from .engine import ALGORITHMS, AlgorithmSpec, SimplexEngine, default_options, model_type
from .logging_config import configure_logging
from .schemas import (
    BranchAndBoundResult,
    BranchNode,
    Constraint,
    CuttingPlane,
    CuttingPlaneResult,
    IntegerSolution,
    LPModel,
    SimplexIteration,
    SolveOptions,
    SolverResult,
    ValidationResult,
    Variable,
)

__all__ = [
    "ALGORITHMS",
    "AlgorithmSpec",
    "BranchAndBoundResult",
    "BranchNode",
    "CancellationToken",
    "Constraint",
    "CuttingPlane",
    "CuttingPlaneResult",
    "IntegerSolution",
    "LPModel",
    "SimplexEngine",
    "SimplexIteration",
    "SolveOptions",
    "SolverResult",
    "ValidationResult",
    "Variable",
    "configure_logging",
    "default_options",
    "model_type",
]
