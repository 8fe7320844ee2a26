from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import numpy as np

from ..cancellation import CancellationToken, is_cancelled
from ..errors import NumericalError, PivotError
from ..schemas import (
    LPModel,
    RatioTestEntry,
    SimplexIteration,
    SolveOptions,
    SolverResult,
    TableauSnapshot,
)
from ..trace import NULL_TRACER, Tracer
from .canonical import CanonicalForm, generate_canonical_form
from .tableau import PIVOT_EPS

ALGORITHM_NAME = "Revised Simplex"

logger = logging.getLogger(__name__)


@dataclass
class RevisedState:
    """
    Matrix form of a canonical LP: ``A x = b`` with the current basis held as
    column indices, its explicit inverse, and the basic values ``x_B``.
    """

    A: np.ndarray
    b: np.ndarray
    c: np.ndarray
    names: List[str]
    basis: List[int]
    B_inv: np.ndarray
    x_B: np.ndarray
    components: Dict[str, list] = field(default_factory=dict)

    @classmethod
    def from_canonical(cls, form: CanonicalForm) -> "RevisedState":
        tableau = form.tableau
        names = list(tableau.variable_names)
        m = tableau.rows - 1
        return cls(
            A=tableau.matrix[1:, :-1].copy(),
            b=tableau.matrix[1:, -1].copy(),
            c=np.array([form.objective.get(name, 0.0) for name in names], dtype=float),
            names=names,
            basis=[names.index(name) for name in tableau.basic_variables],
            B_inv=np.eye(m),
            x_B=tableau.matrix[1:, -1].copy(),
            components=form.components,
        )

    def duals(self, costs: np.ndarray) -> np.ndarray:
        return costs[self.basis] @ self.B_inv

    def reduced_costs(self, costs: np.ndarray) -> np.ndarray:
        """d_j = c_j - (c_B B^-1) A_j; zero on basic columns."""
        d = costs - self.duals(costs) @ self.A
        d[self.basis] = 0.0
        return d

    def column(self, j: int) -> np.ndarray:
        return self.B_inv @ self.A[:, j]

    def pivot(self, row: int, j: int, u: np.ndarray) -> None:
        """Product-form update of B^-1 and x_B for column ``j`` entering at ``row``."""
        element = float(u[row])
        if abs(element) <= PIVOT_EPS:
            raise PivotError(f"Cannot pivot on zero element at row {row}, column {self.names[j]}.")
        eta = -u / element
        eta[row] = 1.0 / element
        pivot_inv = self.B_inv[row, :].copy()
        pivot_x = float(self.x_B[row])
        self.B_inv += np.outer(eta, pivot_inv)
        self.B_inv[row, :] = pivot_inv / element
        self.x_B += eta * pivot_x
        self.x_B[row] = pivot_x / element
        self.basis[row] = j

    def column_values(self) -> Dict[str, float]:
        values = {name: 0.0 for name in self.names}
        for row, j in enumerate(self.basis):
            values[self.names[j]] = float(self.x_B[row])
        return values

    def variable_values(self, model: LPModel) -> Dict[str, float]:
        columns = self.column_values()
        result: Dict[str, float] = {}
        for var in model.ordered_variables():
            parts = self.components.get(var.name, [(var.name, 1.0)])
            value = sum(coef * columns.get(col, 0.0) for col, coef in parts)
            result[var.name] = 0.0 if abs(value) < 1e-12 else float(value)
        return result

    def snapshot(self, costs: np.ndarray) -> TableauSnapshot:
        """Equivalent full tableau rebuilt from B^-1."""
        body = self.B_inv @ np.column_stack([self.A, self.b])
        body[:, -1] = self.x_B
        y = self.duals(costs)
        top = np.append(-self.reduced_costs(costs), float(y @ self.b))
        return TableauSnapshot(
            variable_names=list(self.names),
            basic_variables=[self.names[j] for j in self.basis],
            matrix=np.vstack([top, body]).tolist(),
        )


def revised_simplex_solve(
    model: LPModel,
    opts: Optional[SolveOptions] = None,
    tracer: Optional[Tracer] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> SolverResult:
    """Two-phase revised simplex with an explicit, eta-updated basis inverse."""

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
            _solve(form, model, opts, tracer, cancel_token, result)
    except Exception as exc:
        logger.exception("revised simplex failed on model '%s'", model.name)
        result.status = "error"
        result.message = f"Unexpected error during solving: {exc}"
        result.x = None
        result.objective_value = None

    result.execution_time_ms = (time.perf_counter() - started) * 1000
    return result


def _solve(
    form: CanonicalForm,
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
    result: SolverResult,
) -> None:
    state = RevisedState.from_canonical(form)
    artificial = {state.names.index(name) for name in form.artificial_variables}
    budget = {"pivots": 0}

    if artificial:
        phase_costs = np.zeros(len(state.names))
        phase_costs[list(artificial)] = -1.0
        status = _iterate(state, phase_costs, set(), 1, model, opts, tracer, cancel_token, result, budget)
        if status != "optimal":
            _finish(result, status, opts, phase=1)
            result.iteration_count = budget["pivots"]
            return

        artificial_sum = float(sum(state.x_B[row] for row, j in enumerate(state.basis) if j in artificial))
        if artificial_sum > opts.tol:
            result.status = "infeasible"
            result.message = (
                f"Phase I ended with artificial sum {artificial_sum:.6g}; the model is infeasible."
            )
            result.iteration_count = budget["pivots"]
            return
        _drive_out_artificials(state, artificial, opts.tol)

    status = _iterate(state, state.c, artificial, 2, model, opts, tracer, cancel_token, result, budget)
    result.iteration_count = budget["pivots"]
    _finish(result, status, opts, phase=2)
    if status == "optimal":
        result.x = state.variable_values(model)
        result.objective_value = model.objective_at(result.x)


def _finish(result: SolverResult, status: str, opts: SolveOptions, phase: int) -> None:
    if status == "unbounded" and phase == 1:
        raise PivotError("Phase I auxiliary problem reported unbounded.")
    result.status = status
    if status == "iteration_limit":
        result.message = f"Maximum iterations ({opts.max_iters}) reached in Phase {'I' * phase}."
    elif status == "unbounded":
        result.message = "Problem has an unbounded objective."
    elif status == "unknown":
        result.message = "Solve cancelled."


def _drive_out_artificials(state: RevisedState, artificial: Set[int], tol: float) -> None:
    for row, j in enumerate(list(state.basis)):
        if j not in artificial:
            continue
        row_values = state.B_inv[row, :] @ state.A
        for col in range(len(state.names)):
            if col in artificial or col in state.basis:
                continue
            if abs(row_values[col]) > tol:
                state.pivot(row, col, state.column(col))
                break
        else:
            # redundant row: the artificial stays basic at zero and can never leave
            logger.debug("row %d is redundant; keeping %s basic at zero", row + 1, state.names[j])


def _iterate(
    state: RevisedState,
    costs: np.ndarray,
    forbidden: Set[int],
    phase: int,
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
    result: SolverResult,
    budget: Dict[str, int],
) -> str:
    tol = opts.tol

    while True:
        if is_cancelled(cancel_token):
            return "unknown"

        before = state.snapshot(costs) if opts.record_snapshots else None
        step = SimplexIteration(
            number=len(result.iterations),
            phase=phase,
            objective_value=model.objective_at(state.variable_values(model)),
            tableau_before=before,
        )

        d = state.reduced_costs(costs)
        if forbidden:
            d[list(forbidden)] = 0.0
        j = _entering(d, tol, opts.pivot_rule)
        if j is None:
            step.is_optimal = True
            step.description = "Optimal solution found" if phase == 2 else "Phase I optimum reached"
            step.tableau_after = before
            _record(result, step, tracer)
            return "optimal"

        if budget["pivots"] >= opts.max_iters:
            return "iteration_limit"

        u = state.column(j)
        step.entering = state.names[j]
        step.ratio_tests = _ratio_tests(state, u, tol)

        if np.all(u <= tol):
            step.is_unbounded = True
            step.description = f"Column {step.entering} has no positive entry; objective is unbounded"
            step.tableau_after = before
            _record(result, step, tracer)
            return "unbounded"

        row = _leaving(state, step.ratio_tests, tol, opts.pivot_rule)
        leaving = state.names[state.basis[row]]
        element = float(u[row])
        state.pivot(row, j, u)
        _clamp(state.x_B, tol)
        budget["pivots"] += 1

        step.leaving = leaving
        step.pivot_row = row + 1
        step.pivot_column = j
        step.pivot_element = element
        step.objective_value = model.objective_at(state.variable_values(model))
        step.description = f"{step.entering} enters, {leaving} leaves"
        step.tableau_after = state.snapshot(costs) if opts.record_snapshots else None
        _record(result, step, tracer)


def _entering(d: np.ndarray, tol: float, rule: str) -> Optional[int]:
    if rule == "bland":
        for j, value in enumerate(d):
            if value > tol:
                return j
        return None
    j = int(np.argmax(d)) if d.size else -1
    if j < 0 or d[j] <= tol:
        return None
    return j


def _ratio_tests(state: RevisedState, u: np.ndarray, tol: float) -> List[RatioTestEntry]:
    entries: List[RatioTestEntry] = []
    for row, value in enumerate(u):
        entry = RatioTestEntry(
            row=row + 1,
            basic_variable=state.names[state.basis[row]],
            rhs=float(state.x_B[row]),
            column_value=float(value),
        )
        if value > tol:
            entry.ratio = float(state.x_B[row] / value)
            entry.eligible = True
        elif value < -tol:
            entry.note = "negative coefficient"
        else:
            entry.note = "zero coefficient"
        entries.append(entry)
    return entries


def _leaving(state: RevisedState, entries: List[RatioTestEntry], tol: float, rule: str) -> int:
    eligible = [entry for entry in entries if entry.eligible]
    best = min(entry.ratio for entry in eligible)
    tied = [entry.row - 1 for entry in eligible if entry.ratio <= best + tol]
    if rule == "bland":
        return min(tied, key=lambda row: state.basis[row])
    return min(tied)


def _clamp(x_B: np.ndarray, tol: float) -> None:
    if np.any(x_B < -tol):
        raise NumericalError(f"Basic solution became infeasible (x_B {float(x_B.min()):.3e}).")
    x_B[np.abs(x_B) <= tol] = 0.0


def _record(result: SolverResult, step: SimplexIteration, tracer: Tracer) -> None:
    result.iterations.append(step)
    tracer.iteration(step)
