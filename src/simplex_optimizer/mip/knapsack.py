from __future__ import annotations

import heapq
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ..cancellation import CancellationToken, is_cancelled
from ..schemas import (
    BranchAndBoundResult,
    BranchConstraint,
    BranchNode,
    IntegerSolution,
    KnapsackItem,
    LPModel,
    SolveOptions,
)
from ..trace import NULL_TRACER, Tracer
from .branch_and_bound import attach_incumbent, default_mip_options, improves

ALGORITHM_NAME = "Branch and Bound (Knapsack)"

logger = logging.getLogger(__name__)


def knapsack_support_error(model: LPModel) -> Optional[str]:
    """Reason ``model`` is not a 0/1 knapsack, or None when it is one."""
    if not model.variables:
        return "Model has no variables."
    if model.sense != "max":
        return "Knapsack requires a maximisation objective."
    if any(not var.is_binary for var in model.variables):
        return "Knapsack requires every variable to be binary."
    if len(model.constraints) != 1:
        return "Knapsack requires exactly one constraint."
    cons = model.constraints[0]
    if cons.cmp != "<=":
        return "Knapsack constraint must be a '<=' row."
    if cons.rhs < 0:
        return "Knapsack capacity must be non-negative."
    known = model.variable_map()
    for name, coef in cons.coefficients.items():
        if name not in known:
            return f"Knapsack constraint references unknown variable '{name}'."
        if coef <= 0:
            return f"Knapsack weight of '{name}' must be strictly positive."
    return None


class KnapsackInstance(BaseModel):
    capacity: float
    items: List[KnapsackItem] = Field(default_factory=list)

    @classmethod
    def from_model(cls, model: LPModel) -> "KnapsackInstance":
        error = knapsack_support_error(model)
        if error:
            raise ValueError(error)
        weights = model.constraints[0].coefficients
        items = [
            KnapsackItem(name=var.name, index=var.index, value=var.coef, weight=weights.get(var.name, 0.0))
            for var in model.ordered_variables()
        ]
        return cls(capacity=model.constraints[0].rhs, items=items)

    @staticmethod
    def supports(model: LPModel) -> bool:
        return knapsack_support_error(model) is None

    def efficiency_order(self) -> List[int]:
        """Item positions by value/weight descending; stable, so ties keep index order."""
        return sorted(range(len(self.items)), key=lambda pos: -self.items[pos].efficiency)

    def fractional_bound(self, level: int, remaining: float, value: float, order: Optional[List[int]] = None) -> float:
        """
        ``value`` plus the fractional-knapsack completion over the undecided
        items (positions >= ``level``). Items with non-positive value are
        never taken.
        """

        bound = value
        for pos in order if order is not None else self.efficiency_order():
            if pos < level:
                continue
            item = self.items[pos]
            if item.value <= 0:
                continue
            if item.weight <= remaining:
                bound += item.value
                remaining -= item.weight
            else:
                bound += item.value * remaining / item.weight
                break
        return bound


@dataclass
class _KnapsackState:
    level: int
    mask: int
    remaining: float
    value: float


def solve_knapsack(
    model: LPModel,
    opts: Optional[SolveOptions] = None,
    tracer: Optional[Tracer] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> BranchAndBoundResult:
    """
    Best-first 0/1 knapsack branch-and-bound. Items are decided in index
    order; each node is bounded by the greedy fractional relaxation instead
    of an LP solve.
    """

    opts = opts or default_mip_options()
    tracer = tracer or NULL_TRACER
    started = time.perf_counter()
    result = BranchAndBoundResult(algorithm=ALGORITHM_NAME, integer_variables=model.integer_variables())

    try:
        error = knapsack_support_error(model)
        if error:
            result.status = "error"
            result.message = f"Model is not a 0/1 knapsack: {error}"
        else:
            _search(model, KnapsackInstance.from_model(model), opts, tracer, cancel_token, result)
    except Exception as exc:
        logger.exception("knapsack branch and bound failed on model '%s'", model.name)
        result.status = "error"
        result.message = f"Unexpected error during solving: {exc}"

    result.execution_time_ms = (time.perf_counter() - started) * 1000
    return result


def _search(
    model: LPModel,
    instance: KnapsackInstance,
    opts: SolveOptions,
    tracer: Tracer,
    cancel_token: Optional[CancellationToken],
    result: BranchAndBoundResult,
) -> None:
    tol = opts.tol
    n = len(instance.items)
    order = instance.efficiency_order()
    nodes: List[BranchNode] = result.nodes
    states: Dict[int, _KnapsackState] = {}

    def add_node(state: _KnapsackState, **fields) -> BranchNode:
        node = BranchNode(
            id=len(nodes),
            bound=instance.fractional_bound(state.level, state.remaining, state.value, order),
            solution=_selection(instance, state.mask),
            **fields,
        )
        nodes.append(node)
        states[node.id] = state
        return node

    root = add_node(_KnapsackState(level=0, mask=0, remaining=instance.capacity, value=0.0), notes="root")
    result.root_bound = root.bound
    tracer.node(root)
    frontier: List[Tuple[float, int]] = [(-root.bound, root.id)]
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
        state = states[node_id]

        if not improves(node.bound, incumbent, 1.0, tol):
            node.status = "fathomed_by_bound"
            node.notes = "bound cannot beat incumbent"
            tracer.node(node)
            continue

        if state.level == n:
            values = _selection(instance, state.mask)
            objective = model.objective_at(values)
            if incumbent is None or objective > incumbent.objective_value + tol:
                incumbent = IntegerSolution(
                    variables=values, objective_value=objective, node_id=node.id, algorithm=ALGORITHM_NAME
                )
                node.notes = f"new incumbent {objective:.6g}"
                logger.debug("node %d: new incumbent %.6g", node.id, objective)
            node.status = "fathomed_by_integrality"
            tracer.node(node)
            continue

        if len(nodes) + 2 > opts.max_iters:
            capped = True
            heapq.heappush(frontier, (-node.bound, node.id))
            break

        item = instance.items[state.level]
        node.branching_variable = item.name
        children = []
        if item.weight <= state.remaining + tol:
            children.append(
                (
                    "right",
                    _KnapsackState(
                        level=state.level + 1,
                        mask=state.mask | (1 << state.level),
                        remaining=max(state.remaining - item.weight, 0.0),
                        value=state.value + item.value,
                    ),
                )
            )
        children.append(
            ("left", _KnapsackState(level=state.level + 1, mask=state.mask, remaining=state.remaining, value=state.value))
        )

        for direction, child_state in children:
            include = direction == "right"
            branch = BranchConstraint(variable=item.name, cmp=">=" if include else "<=", value=1.0 if include else 0.0)
            child = add_node(
                child_state,
                parent_id=node.id,
                level=child_state.level,
                branching_variable=item.name,
                direction=direction,
                branch_constraints=node.branch_constraints + [branch],
                notes="include" if include else "exclude",
            )
            node.children.append(child.id)
            if improves(child.bound, incumbent, 1.0, tol):
                heapq.heappush(frontier, (-child.bound, child.id))
            else:
                child.status = "fathomed_by_bound"
            tracer.node(child)

        node.status = "completed"
        tracer.node(node)

    result.frontier_exhausted = not frontier and not capped
    attach_incumbent(result, incumbent, tol)
    if incumbent is not None:
        result.status = "optimal"
        result.message = (
            f"Optimal selection found after {len(nodes)} nodes."
            if result.frontier_exhausted
            else f"Node limit ({opts.max_iters}) reached; returning the best selection, optimality not proven."
        )
    else:
        result.status = "iteration_limit"
        result.message = f"Node limit ({opts.max_iters}) reached before any selection was completed."
    logger.info("knapsack branch and bound finished: %s after %d nodes", result.status, len(nodes))


def _selection(instance: KnapsackInstance, mask: int) -> Dict[str, float]:
    return {item.name: 1.0 if mask >> pos & 1 else 0.0 for pos, item in enumerate(instance.items)}
