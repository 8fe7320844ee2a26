from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..cancellation import CancellationToken, is_cancelled
from ..errors import PivotError
from ..schemas import LPModel, SimplexIteration, SolveOptions, SolverResult
from ..trace import NULL_TRACER, Tracer
from .canonical import generate_canonical_form
from .tableau import Tableau

ALGORITHM_NAME = "Primal Simplex"

logger = logging.getLogger(__name__)


@dataclass
class TableauRun:
    status: str = "unknown"
    tableau: Optional[Tableau] = None
    iterations: List[SimplexIteration] = field(default_factory=list)
    pivots: int = 0
    message: str = ""


def simplex_solve(
    model: LPModel,
    opts: Optional[SolveOptions] = None,
    tracer: Optional[Tracer] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> SolverResult:
    """
    Two-phase tableau primal simplex. Integer/binary markers are ignored, so
    calling this on an integer model solves its LP relaxation.
    """

    opts = opts or SolveOptions()
    tracer = tracer or NULL_TRACER
    started = time.perf_counter()
    result = SolverResult(algorithm=ALGORITHM_NAME)

    try:
        form = generate_canonical_form(model)
        if not form.is_valid:
            result.status = "error"
            result.message = f"Failed to generate canonical form: {form.error_message}"
        else:
            run = run_tableau_simplex(
                form.tableau,
                form.artificial_variables,
                form.objective,
                model,
                opts,
                tracer,
                cancel_token,
            )
            result.status = run.status
            result.message = run.message
            result.iterations = run.iterations
            result.iteration_count = run.pivots
            if run.status == "optimal":
                result.x = run.tableau.variable_values(model)
                result.objective_value = run.tableau.objective_value(model)
    except Exception as exc:
        logger.exception("primal simplex failed on model '%s'", model.name)
        result.status = "error"
        result.message = f"Unexpected error during solving: {exc}"

    result.execution_time_ms = (time.perf_counter() - started) * 1000
    return result


def run_tableau_simplex(
    tableau: Tableau,
    artificial: Sequence[str],
    objective: Dict[str, float],
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer = NULL_TRACER,
    cancel_token: Optional[CancellationToken] = None,
) -> TableauRun:
    """
    Drive an already-built tableau through Phase I (if artificials exist) and
    Phase II. ``objective`` maps column names to maximise-form costs and is
    used to restore row 0 after Phase I. The tableau is mutated in place.
    """

    run = TableauRun(tableau=tableau)

    if artificial:
        _phase_I(run, artificial, model, opts, tracer, cancel_token)
        if run.status != "feasible":
            return run
        logger.debug("phase I finished after %d pivots; starting phase II", run.pivots)

    _set_objective_row(tableau, objective)
    run.status = _iterate(run, 2, model, opts, tracer, cancel_token)
    if run.status == "iteration_limit":
        run.message = f"Maximum iterations ({opts.max_iters}) reached in Phase II."
    elif run.status == "unbounded":
        run.message = "Problem has an unbounded objective."
    elif run.status == "unknown":
        run.message = "Solve cancelled."
    return run


def _phase_I(
    run: TableauRun,
    artificial: Sequence[str],
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
) -> None:
    tableau = run.tableau
    # minimise the artificial sum, written as maximise -sum in row-0 form
    tableau.matrix[0, :] = 0.0
    for name in artificial:
        tableau.matrix[0, tableau.column_index(name)] = 1.0
    tableau.price_out()

    status = _iterate(run, 1, model, opts, tracer, cancel_token)
    if status == "iteration_limit":
        run.status = status
        run.message = f"Maximum iterations ({opts.max_iters}) reached in Phase I."
        return
    if status == "unknown":
        run.status = status
        run.message = "Solve cancelled."
        return
    if status != "optimal":
        raise PivotError("Phase I auxiliary problem reported unbounded.")

    values = tableau.basic_solution()
    artificial_sum = float(sum(values[name] for name in artificial))
    if artificial_sum > opts.tol:
        run.status = "infeasible"
        run.message = (
            f"Phase I ended with artificial sum {artificial_sum:.6g}; the model is infeasible."
        )
        return

    _drive_out_artificials(tableau, set(artificial), opts.tol)
    tableau.drop_columns(artificial)
    run.status = "feasible"


def _drive_out_artificials(tableau: Tableau, artificial: set, tol: float) -> None:
    redundant: List[int] = []
    for row in range(1, tableau.rows):
        if tableau.basic_variables[row - 1] not in artificial:
            continue
        replacement = None
        for col, name in enumerate(tableau.variable_names):
            if name not in artificial and abs(tableau.matrix[row, col]) > tol:
                replacement = col
                break
        if replacement is None:
            redundant.append(row)
        else:
            # the row's RHS is zero, so any non-zero element keeps feasibility
            tableau.pivot(row, replacement)
    for row in reversed(redundant):
        logger.debug("dropping redundant row %d", row)
        tableau.drop_row(row)


def _set_objective_row(tableau: Tableau, objective: Dict[str, float]) -> None:
    tableau.matrix[0, :] = 0.0
    for col, name in enumerate(tableau.variable_names):
        tableau.matrix[0, col] = -objective.get(name, 0.0)
    tableau.price_out()


def _iterate(
    run: TableauRun,
    phase: int,
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
) -> str:
    tableau = run.tableau
    tol = opts.tol

    while True:
        if is_cancelled(cancel_token):
            return "unknown"

        before = tableau.snapshot() if opts.record_snapshots else None
        step = SimplexIteration(
            number=len(run.iterations),
            phase=phase,
            objective_value=tableau.objective_value(model),
            tableau_before=before,
        )

        if tableau.is_optimal(tol):
            step.is_optimal = True
            step.description = "Optimal solution found" if phase == 2 else "Phase I optimum reached"
            step.tableau_after = before
            _record(run, step, tracer)
            return "optimal"

        if run.pivots >= opts.max_iters:
            return "iteration_limit"

        col = tableau.entering_column(tol, opts.pivot_rule)
        if col is None:
            raise PivotError("No entering column although the tableau is not optimal.")
        step.entering = tableau.variable_names[col]
        step.ratio_tests = tableau.ratio_test(col, tol)

        if tableau.is_unbounded(col, tol):
            step.is_unbounded = True
            step.description = f"Column {step.entering} has no positive entry; objective is unbounded"
            step.tableau_after = before
            _record(run, step, tracer)
            return "unbounded"

        row = tableau.leaving_row(col, tol, opts.pivot_rule)
        if row is None:
            raise PivotError(f"Ratio test found no leaving row for column {step.entering}.")

        entering, leaving, element = tableau.pivot(row, col)
        tableau.enforce_feasibility(tol)
        run.pivots += 1

        step.leaving = leaving
        step.pivot_row = row
        step.pivot_column = col
        step.pivot_element = element
        step.objective_value = tableau.objective_value(model)
        step.description = f"{entering} enters, {leaving} leaves"
        step.tableau_after = tableau.snapshot() if opts.record_snapshots else None
        _record(run, step, tracer)


def _record(run: TableauRun, step: SimplexIteration, tracer: Tracer) -> None:
    run.iterations.append(step)
    tracer.iteration(step)
