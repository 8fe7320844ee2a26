from __future__ import annotations

import heapq
import logging
import time
from typing import List, Optional, Tuple

from ..cancellation import CancellationToken, is_cancelled
from ..lp.simplex import simplex_solve
from ..schemas import (
    MIP_DEFAULT_MAX_NODES,
    MIP_DEFAULT_TOL,
    BranchAndBoundResult,
    BranchConstraint,
    BranchNode,
    IntegerSolution,
    LPModel,
    SolveOptions,
    SolverResult,
)
from ..trace import NULL_TRACER, Tracer
from .utils import (
    branch_bounds,
    is_integer_feasible,
    relaxation_model,
    select_fractional_variable,
    snap_integers,
)

ALGORITHM_NAME = "Branch and Bound (Simplex)"

logger = logging.getLogger(__name__)


def default_mip_options() -> SolveOptions:
    return SolveOptions(max_iters=MIP_DEFAULT_MAX_NODES, tol=MIP_DEFAULT_TOL, record_snapshots=False)


def optimality_gap(root_bound: Optional[float], incumbent: Optional[float], tol: float) -> Optional[float]:
    if root_bound is None or incumbent is None:
        return None
    if abs(root_bound) <= tol:
        return 0.0
    return abs(root_bound - incumbent) / abs(root_bound) * 100.0


def improves(bound: float, incumbent: Optional[IntegerSolution], sense_factor: float, tol: float) -> bool:
    """True when ``bound`` can still beat the incumbent for the model's sense."""
    if incumbent is None:
        return True
    return sense_factor * bound > sense_factor * incumbent.objective_value + tol


def solve_branch_and_bound(
    model: LPModel,
    opts: Optional[SolveOptions] = None,
    tracer: Optional[Tracer] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> BranchAndBoundResult:
    """
    Best-first branch-and-bound over primal simplex relaxations.

    ``opts.max_iters`` caps the number of nodes created. Each node's relaxation
    is the original model plus every inherited branch row and an explicit
    ``x <= 1`` row per binary, solved from scratch.
    """

    opts = opts or default_mip_options()
    tracer = tracer or NULL_TRACER
    started = time.perf_counter()
    result = BranchAndBoundResult(algorithm=ALGORITHM_NAME, integer_variables=model.integer_variables())

    try:
        _search(model, opts, tracer, cancel_token, result)
    except Exception as exc:
        logger.exception("branch and bound failed on model '%s'", model.name)
        result.status = "error"
        result.message = f"Unexpected error during solving: {exc}"

    result.execution_time_ms = (time.perf_counter() - started) * 1000
    return result


def _search(
    model: LPModel,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
    result: BranchAndBoundResult,
) -> None:
    tol = opts.tol
    sense_factor = 1.0 if model.sense == "max" else -1.0
    lp_opts = SolveOptions(pivot_rule=opts.pivot_rule, record_snapshots=False)
    nodes: List[BranchNode] = result.nodes

    root = BranchNode(id=0, notes="root relaxation")
    nodes.append(root)
    relaxation = _solve_node(model, root, lp_opts, cancel_token, result)
    if relaxation.status != "optimal":
        if relaxation.status == "infeasible":
            root.status = "fathomed_by_infeasibility"
        tracer.node(root)
        result.status = relaxation.status
        result.message = {
            "infeasible": "LP relaxation is infeasible; the integer program has no solution.",
            "unbounded": "LP relaxation is unbounded; the integer program appears unbounded.",
            "unknown": "Solve cancelled.",
        }.get(relaxation.status, f"Root relaxation failed: {relaxation.message}")
        return

    result.root_bound = root.bound
    tracer.node(root)
    frontier: List[Tuple[float, int]] = [(-sense_factor * root.bound, root.id)]
    incumbent: Optional[IntegerSolution] = None
    capped = False

    while frontier:
        if is_cancelled(cancel_token):
            result.status = "unknown"
            result.message = "Solve cancelled."
            attach_incumbent(result, incumbent, tol)
            return

        _, node_id = heapq.heappop(frontier)
        node = nodes[node_id]

        if not improves(node.bound, incumbent, sense_factor, tol):
            node.status = "fathomed_by_bound"
            node.notes = "bound cannot beat incumbent"
            tracer.node(node)
            continue

        if is_integer_feasible(model, node.solution, tol):
            values = snap_integers(model, node.solution)
            objective = model.objective_at(values)
            if incumbent is None or sense_factor * objective > sense_factor * incumbent.objective_value + tol:
                incumbent = IntegerSolution(
                    variables=values,
                    objective_value=objective,
                    node_id=node.id,
                    algorithm=ALGORITHM_NAME,
                )
                node.notes = f"new incumbent {objective:.6g}"
                logger.info("node %d: new incumbent %.6g", node.id, objective)
            node.status = "fathomed_by_integrality"
            tracer.node(node)
            continue

        if len(nodes) + 2 > opts.max_iters:
            capped = True
            heapq.heappush(frontier, (-sense_factor * node.bound, node.id))
            break

        var_name, value = select_fractional_variable(model, node.solution, tol)
        node.branching_variable = var_name
        node.branching_value = value
        left_rhs, right_rhs = branch_bounds(value, model.variable_map()[var_name].is_binary)

        for direction, cmp, rhs in (("left", "<=", left_rhs), ("right", ">=", right_rhs)):
            child = BranchNode(
                id=len(nodes),
                parent_id=node.id,
                level=node.level + 1,
                branching_variable=var_name,
                branching_value=value,
                direction=direction,
                branch_constraints=node.branch_constraints
                + [BranchConstraint(variable=var_name, cmp=cmp, value=rhs)],
            )
            nodes.append(child)
            node.children.append(child.id)
            _expand_child(model, child, lp_opts, cancel_token, result, incumbent, sense_factor, tol, frontier)
            tracer.node(child)

        node.status = "completed"
        node.notes = f"branched on {var_name} = {value:.6g}"
        tracer.node(node)

    result.frontier_exhausted = not frontier and not capped
    attach_incumbent(result, incumbent, tol)
    if incumbent is not None:
        result.status = "optimal"
        result.message = (
            f"Optimal integer solution found after {len(nodes)} nodes."
            if result.frontier_exhausted
            else f"Node limit ({opts.max_iters}) reached; returning the best incumbent, optimality not proven."
        )
    elif capped:
        result.status = "iteration_limit"
        result.message = f"Node limit ({opts.max_iters}) reached before finding an integer solution."
    else:
        result.status = "infeasible"
        result.message = "No integer-feasible solution exists."
    logger.info("branch and bound finished: %s after %d nodes", result.status, len(nodes))


def _expand_child(
    model: LPModel,
    child: BranchNode,
    lp_opts: SolveOptions,
    cancel_token: Optional[CancellationToken],
    result: BranchAndBoundResult,
    incumbent: Optional[IntegerSolution],
    sense_factor: float,
    tol: float,
    frontier: List[Tuple[float, int]],
) -> None:
    relaxation = _solve_node(model, child, lp_opts, cancel_token, result)
    if relaxation.status == "infeasible":
        child.status = "fathomed_by_infeasibility"
        child.notes = "relaxation infeasible"
    elif relaxation.status == "unknown":
        child.notes = "cancelled before the relaxation finished"
    elif relaxation.status != "optimal":
        child.status = "fathomed_by_infeasibility"
        child.notes = f"relaxation {relaxation.status}: {relaxation.message}"
        result.warnings.append(f"Node {child.id}: {child.notes}")
    elif not improves(child.bound, incumbent, sense_factor, tol):
        child.status = "fathomed_by_bound"
        child.notes = "bound cannot beat incumbent"
    else:
        heapq.heappush(frontier, (-sense_factor * child.bound, child.id))


def _solve_node(
    model: LPModel,
    node: BranchNode,
    lp_opts: SolveOptions,
    cancel_token: Optional[CancellationToken],
    result: BranchAndBoundResult,
) -> SolverResult:
    started = time.perf_counter()
    relaxation = simplex_solve(relaxation_model(model, node.branch_constraints), lp_opts, cancel_token=cancel_token)
    node.solve_time_ms = (time.perf_counter() - started) * 1000
    result.iteration_count += relaxation.iteration_count
    if relaxation.status == "optimal":
        node.bound = relaxation.objective_value
        node.solution = dict(relaxation.x or {})
    return relaxation


def attach_incumbent(result: BranchAndBoundResult, incumbent: Optional[IntegerSolution], tol: float) -> None:
    result.best_integer_solution = incumbent
    if incumbent is None:
        return
    result.x = dict(incumbent.variables)
    result.objective_value = incumbent.objective_value
    result.optimality_gap = optimality_gap(result.root_bound, incumbent.objective_value, tol)
