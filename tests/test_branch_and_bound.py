import json
import math
from pathlib import Path

import pytest

from simplex_optimizer.cancellation import CancellationToken
from simplex_optimizer.mip.branch_and_bound import solve_branch_and_bound
from simplex_optimizer.schemas import Constraint, LPModel, SolveOptions, Variable
from simplex_optimizer.trace import Tracer


def load_example(name: str) -> LPModel:
    data = json.loads(Path(__file__).parent.parent.joinpath("examples", name).read_text())
    return LPModel.model_validate(data)


def make_integer_model() -> LPModel:
    variables = [
        Variable(name="x1", index=0, coef=5.0, sign="int"),
        Variable(name="x2", index=1, coef=4.0, sign="int"),
    ]
    constraints = [
        Constraint(name="c1", coefficients={"x1": 6.0, "x2": 4.0}, cmp="<=", rhs=24.0),
        Constraint(name="c2", coefficients={"x1": 1.0, "x2": 2.0}, cmp="<=", rhs=6.0),
    ]
    return LPModel(name="classic-ip", sense="max", variables=variables, constraints=constraints)


def make_min_model() -> LPModel:
    variables = [
        Variable(name="x1", index=0, coef=1.0, sign="int"),
        Variable(name="x2", index=1, coef=1.0, sign="int"),
    ]
    constraints = [Constraint(name="cover", coefficients={"x1": 2.0, "x2": 2.0}, cmp=">=", rhs=3.0)]
    return LPModel(name="min-ip", sense="min", variables=variables, constraints=constraints)


def test_binary_scenario_solved_at_root():
    result = solve_branch_and_bound(load_example("scenario2_binary.json"))

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(5.0)
    assert result.x == {"x1": 1.0, "x2": 1.0}
    assert len(result.nodes) == 1
    assert result.nodes[0].status == "fathomed_by_integrality"
    assert result.frontier_exhausted
    assert result.optimality_gap == pytest.approx(0.0)


def test_branching_tree_for_classic_ip():
    result = solve_branch_and_bound(make_integer_model())

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(20.0)
    assert result.x == {"x1": 4.0, "x2": 0.0}
    assert result.root_bound == pytest.approx(21.0)
    assert result.optimality_gap == pytest.approx(100.0 / 21.0)
    assert result.frontier_exhausted

    statuses = [node.status for node in result.nodes]
    assert statuses == [
        "completed",
        "completed",
        "fathomed_by_bound",
        "fathomed_by_bound",
        "fathomed_by_integrality",
    ]
    root = result.nodes[0]
    assert root.branching_variable == "x2"
    assert root.children == [1, 2]
    left, right = result.nodes[1], result.nodes[2]
    assert left.direction == "left" and str(left.branch_constraints[0]) == "x2 <= 1"
    assert right.direction == "right" and str(right.branch_constraints[0]) == "x2 >= 2"
    assert result.nodes[3].branch_constraints[-1].variable == "x1"
    assert len(result.nodes[3].branch_constraints) == 2
    assert result.best_integer_solution.node_id == 4


def test_child_bounds_never_beat_parent():
    result = solve_branch_and_bound(make_integer_model())

    by_id = {node.id: node for node in result.nodes}
    for node in result.nodes:
        if node.parent_id is None or node.bound is None:
            continue
        assert node.bound <= by_id[node.parent_id].bound + 1e-6
        assert node.level == by_id[node.parent_id].level + 1


def test_minimisation_integer_program():
    result = solve_branch_and_bound(make_min_model())

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(2.0)
    for value in result.x.values():
        assert math.isclose(value, round(value), abs_tol=1e-6)
    assert any(node.status == "fathomed_by_infeasibility" for node in result.nodes)


def test_node_cap_without_incumbent_reports_iteration_limit():
    result = solve_branch_and_bound(make_integer_model(), SolveOptions(max_iters=3, tol=1e-6))

    assert result.status == "iteration_limit"
    assert not result.frontier_exhausted
    assert result.best_integer_solution is None
    assert len(result.nodes) == 3


def test_infeasible_and_unbounded_roots():
    infeasible = load_example("scenario4_infeasible.json")
    infeasible.variables[0].sign = "int"
    result = solve_branch_and_bound(infeasible)
    assert result.status == "infeasible"
    assert result.nodes[0].status == "fathomed_by_infeasibility"

    unbounded = load_example("scenario5_unbounded.json")
    unbounded.variables[0].sign = "int"
    assert solve_branch_and_bound(unbounded).status == "unbounded"


def test_knapsack_instance_through_generic_search():
    result = solve_branch_and_bound(load_example("scenario3_knapsack.json"))

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(13.0)
    assert result.x == {"x1": 1.0, "x2": 1.0, "x3": 0.0, "x4": 1.0}


def test_node_events_reach_the_tracer():
    events = []
    solve_branch_and_bound(make_integer_model(), tracer=Tracer(on_node=events.append))

    assert {event.id for event in events} == {0, 1, 2, 3, 4}


def test_cancelled_token_stops_search():
    token = CancellationToken()
    token.cancel()
    result = solve_branch_and_bound(make_integer_model(), cancel_token=token)

    assert result.status == "unknown"
    assert result.message == "Solve cancelled."


def test_caller_model_is_not_mutated():
    model = make_integer_model()
    before = model.model_dump()
    solve_branch_and_bound(model)

    assert model.model_dump() == before
