from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional

from .cancellation import CancellationToken
from .lp.revised import ALGORITHM_NAME as REVISED_NAME
from .lp.revised import revised_simplex_solve
from .lp.simplex import ALGORITHM_NAME as PRIMAL_NAME
from .lp.simplex import simplex_solve
from .lp.utils import validate_model
from .mip.branch_and_bound import ALGORITHM_NAME as BRANCH_AND_BOUND_NAME
from .mip.branch_and_bound import default_mip_options, solve_branch_and_bound
from .mip.cutting_plane import ALGORITHM_NAME as CUTTING_PLANE_NAME
from .mip.cutting_plane import default_cutting_plane_options, solve_cutting_plane
from .mip.knapsack import ALGORITHM_NAME as KNAPSACK_NAME
from .mip.knapsack import KnapsackInstance, solve_knapsack
from .schemas import LPModel, SolveOptions, SolverResult, ValidationResult
from .trace import IterationSink, NodeSink, Tracer

logger = logging.getLogger(__name__)

ModelType = Literal["linear", "integer", "knapsack"]
Solver = Callable[[LPModel, SolveOptions, Tracer, Optional[CancellationToken]], SolverResult]


@dataclass(frozen=True)
class AlgorithmSpec:
    name: str
    display_name: str
    description: str
    options: Callable[[], SolveOptions]
    supports: Callable[[LPModel], bool]
    solve: Solver
    continuous_only: bool = False


def _is_linear(model: LPModel) -> bool:
    return not model.has_integer_variables


def _is_integer(model: LPModel) -> bool:
    return model.has_integer_variables


ALGORITHMS: Dict[str, AlgorithmSpec] = {
    spec.name: spec
    for spec in (
        AlgorithmSpec(
            name="primal_simplex",
            display_name=PRIMAL_NAME,
            description="Two-phase tableau simplex for continuous linear programs.",
            options=SolveOptions,
            supports=_is_linear,
            solve=simplex_solve,
            continuous_only=True,
        ),
        AlgorithmSpec(
            name="revised_simplex",
            display_name=REVISED_NAME,
            description="Two-phase revised simplex with a product-form basis inverse update.",
            options=SolveOptions,
            supports=_is_linear,
            solve=revised_simplex_solve,
            continuous_only=True,
        ),
        AlgorithmSpec(
            name="branch_and_bound_simplex",
            display_name=BRANCH_AND_BOUND_NAME,
            description="Best-first branch-and-bound over primal simplex relaxations.",
            options=default_mip_options,
            supports=_is_integer,
            solve=solve_branch_and_bound,
        ),
        AlgorithmSpec(
            name="branch_and_bound_knapsack",
            display_name=KNAPSACK_NAME,
            description="Best-first 0/1 knapsack branch-and-bound with a fractional-knapsack bound.",
            options=default_mip_options,
            supports=KnapsackInstance.supports,
            solve=solve_knapsack,
        ),
        AlgorithmSpec(
            name="cutting_plane",
            display_name=CUTTING_PLANE_NAME,
            description="Relaxation loop that adds floor rounding cuts on fractional integer variables.",
            options=default_cutting_plane_options,
            supports=_is_integer,
            solve=solve_cutting_plane,
        ),
    )
}


def default_options(algorithm: str) -> SolveOptions:
    """Fresh default options for a registered algorithm."""
    if algorithm not in ALGORITHMS:
        raise KeyError(f"Unknown algorithm '{algorithm}'.")
    return ALGORITHMS[algorithm].options()


def model_type(model: LPModel) -> ModelType:
    if KnapsackInstance.supports(model):
        return "knapsack"
    if model.has_integer_variables:
        return "integer"
    return "linear"


class SimplexEngine:
    """Single entry point that validates a model and dispatches it to a named algorithm."""

    def __init__(self, algorithms: Optional[Dict[str, AlgorithmSpec]] = None) -> None:
        self._algorithms = dict(ALGORITHMS if algorithms is None else algorithms)

    @property
    def available_algorithms(self) -> List[str]:
        return list(self._algorithms)

    def algorithm_info(self, algorithm: str) -> Optional[Dict[str, Any]]:
        spec = self._algorithms.get(algorithm)
        if spec is None:
            return None
        return {
            "name": spec.name,
            "display_name": spec.display_name,
            "description": spec.description,
            "default_options": spec.options().model_dump(),
        }

    def validate_model(self, model: LPModel, algorithm: Optional[str] = None) -> ValidationResult:
        spec = self._algorithms.get(algorithm) if algorithm else None
        return validate_model(model, continuous_only=spec.continuous_only if spec else False)

    @staticmethod
    def model_type(model: LPModel) -> ModelType:
        return model_type(model)

    def solve(
        self,
        model: LPModel,
        algorithm: str,
        options: Optional[SolveOptions] = None,
        on_iteration: Optional[IterationSink] = None,
        on_node: Optional[NodeSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SolverResult:
        started = time.perf_counter()
        spec = self._algorithms.get(algorithm)
        if spec is None:
            return _failure(
                algorithm,
                f"Unknown algorithm '{algorithm}'. Available: {', '.join(self._algorithms)}.",
                started,
            )

        report = self.validate_model(model, algorithm)
        if not report.is_valid:
            return _failure(
                spec.display_name,
                f"Model validation failed: {'; '.join(report.errors)}",
                started,
                report.warnings,
            )
        if not spec.supports(model):
            return _failure(
                spec.display_name,
                f"{spec.display_name} does not support this model (type: {model_type(model)}).",
                started,
                report.warnings,
            )

        opts = options or spec.options()
        tracer = Tracer(on_iteration=on_iteration, on_node=on_node)
        logger.info("solving '%s' with %s", model.name, spec.display_name)
        try:
            result = spec.solve(model, opts, tracer, cancel_token)
        except Exception as exc:
            logger.exception("%s raised while solving '%s'", spec.display_name, model.name)
            return _failure(spec.display_name, f"Unexpected error during solving: {exc}", started, report.warnings)

        result.warnings = report.warnings + result.warnings
        logger.info(
            "%s finished '%s': %s (objective %s, %.1f ms)",
            spec.display_name,
            model.name,
            result.status,
            result.objective_value,
            result.execution_time_ms,
        )
        return result

    def solve_auto(
        self,
        model: LPModel,
        options: Optional[SolveOptions] = None,
        on_iteration: Optional[IterationSink] = None,
        on_node: Optional[NodeSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> SolverResult:
        """Knapsack B&B for knapsack models, generic B&B for other integer models, primal simplex otherwise."""
        algorithm = {
            "knapsack": "branch_and_bound_knapsack",
            "integer": "branch_and_bound_simplex",
            "linear": "primal_simplex",
        }[model_type(model)]
        return self.solve(model, algorithm, options, on_iteration, on_node, cancel_token)


def _failure(algorithm: str, message: str, started: float, warnings: Optional[List[str]] = None) -> SolverResult:
    logger.warning("solve rejected: %s", message)
    return SolverResult(
        algorithm=algorithm,
        status="error",
        message=message,
        warnings=list(warnings or []),
        execution_time_ms=(time.perf_counter() - started) * 1000,
    )
