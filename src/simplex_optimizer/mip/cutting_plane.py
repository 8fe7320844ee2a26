from __future__ import annotations

import logging
import math
import time
from typing import Optional

from ..cancellation import CancellationToken, is_cancelled
from ..lp.simplex import run_tableau_simplex
from ..lp.utils import build_standard_form
from ..schemas import (
    CUTTING_PLANE_MAX_ROUNDS,
    MIP_DEFAULT_TOL,
    CuttingPlane,
    CuttingPlaneResult,
    IntegerSolution,
    LPModel,
    SolveOptions,
)
from ..trace import NULL_TRACER, Tracer
from .utils import continuous_model, fractional_candidates, is_integer_feasible, snap_integers

ALGORITHM_NAME = "Cutting Plane"

CUTS_PER_ROUND = 2
STALL_TOLERANCE = 1e-6
STALL_ROUNDS = 5

logger = logging.getLogger(__name__)


def default_cutting_plane_options() -> SolveOptions:
    return SolveOptions(max_iters=CUTTING_PLANE_MAX_ROUNDS, tol=MIP_DEFAULT_TOL, record_snapshots=False)


def solve_cutting_plane(
    model: LPModel,
    opts: Optional[SolveOptions] = None,
    tracer: Optional[Tracer] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> CuttingPlaneResult:
    """
    Relaxation-and-cut loop: solve the continuous relaxation, stop when it is
    integer feasible, otherwise add ``x <= floor(x*)`` rounding cuts for up to
    two of the most fractional integer variables and re-solve.

    These are bound-tightening rounding cuts rather than Gomory cuts; they can
    cut off integer points, so the final answer is not guaranteed optimal for
    the original integer program. ``opts.max_iters`` caps the number of rounds.
    """

    opts = opts or default_cutting_plane_options()
    tracer = tracer or NULL_TRACER
    started = time.perf_counter()
    result = CuttingPlaneResult(algorithm=ALGORITHM_NAME, integer_variables=model.integer_variables())

    try:
        _run(model, opts, tracer, cancel_token, result)
    except Exception as exc:
        logger.exception("cutting plane failed on model '%s'", model.name)
        result.status = "error"
        result.message = f"Unexpected error during solving: {exc}"

    result.execution_time_ms = (time.perf_counter() - started) * 1000
    return result


def _run(
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
    result: CuttingPlaneResult,
) -> None:
    tol = opts.tol
    working = continuous_model(model)
    lp_opts = SolveOptions(pivot_rule=opts.pivot_rule, record_snapshots=opts.record_snapshots)
    previous: Optional[float] = None
    stalled_rounds = 0

    for round_number in range(1, opts.max_iters + 1):
        if is_cancelled(cancel_token):
            result.status = "unknown"
            result.message = "Solve cancelled."
            return

        tableau, artificial, objective = build_standard_form(working)
        run = run_tableau_simplex(tableau, artificial, objective, working, lp_opts, tracer, cancel_token)
        result.iterations.extend(run.iterations)
        result.iteration_count += run.pivots
        if run.status != "optimal":
            result.status = run.status
            result.message = f"LP relaxation in round {round_number} ended {run.status}: {run.message}"
            return

        values = tableau.variable_values(model)
        value = model.objective_at(values)
        logger.debug("round %d: relaxation objective %.6g", round_number, value)

        if is_integer_feasible(model, values, tol):
            snapped = snap_integers(model, values)
            result.x = snapped
            result.objective_value = model.objective_at(snapped)
            result.best_integer_solution = IntegerSolution(
                variables=snapped, objective_value=result.objective_value, algorithm=ALGORITHM_NAME
            )
            result.status = "optimal"
            result.message = f"Integer solution found after {round_number} rounds and {len(result.cuts)} cuts."
            return

        if previous is not None and abs(value - previous) < STALL_TOLERANCE:
            stalled_rounds += 1
        else:
            stalled_rounds = 0
        previous = value
        if stalled_rounds >= STALL_ROUNDS:
            result.status = "error"
            result.message = (
                f"Cutting plane stalled: objective changed by less than {STALL_TOLERANCE:g} "
                f"for {STALL_ROUNDS} consecutive rounds."
            )
            return

        candidates = fractional_candidates(model, values, tol)[:CUTS_PER_ROUND]
        if not candidates:
            result.status = "error"
            result.message = f"No cut could be generated in round {round_number}."
            return

        for var_name, current in candidates:
            cut = CuttingPlane(
                id=len(result.cuts) + 1,
                variable=var_name,
                coefficients={var_name: 1.0},
                cmp="<=",
                rhs=float(math.floor(current)),
                violation=current - math.floor(current),
                iteration=round_number,
            )
            result.cuts.append(cut)
            working.constraints.append(cut.to_constraint())
            logger.debug("round %d: added %s <= %g (violation %.4g)", round_number, var_name, cut.rhs, cut.violation)

    result.status = "iteration_limit"
    result.message = f"Cutting plane reached {opts.max_iters} rounds without an integer solution."
