import json
from pathlib import Path

import pytest

from simplex_optimizer.cancellation import CancellationToken
from simplex_optimizer.mip.cutting_plane import solve_cutting_plane
from simplex_optimizer.schemas import Constraint, LPModel, SolveOptions, Variable


def load_example(name: str) -> LPModel:
    data = json.loads(Path(__file__).parent.parent.joinpath("examples", name).read_text())
    return LPModel.model_validate(data)


def make_sum_model(num_vars: int, rhs: float) -> LPModel:
    variables = [Variable(name=f"x{i + 1}", index=i, coef=1.0, sign="int") for i in range(num_vars)]
    constraints = [
        Constraint(name="budget", coefficients={f"x{i + 1}": 2.0 for i in range(num_vars)}, cmp="<=", rhs=rhs)
    ]
    return LPModel(name="sum", sense="max", variables=variables, constraints=constraints)


def test_rounding_cuts_reach_integer_solution():
    result = solve_cutting_plane(make_sum_model(2, 3.0))

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(1.0)
    assert result.x == {"x1": 1.0, "x2": 0.0}
    assert [(cut.variable, cut.rhs, cut.iteration) for cut in result.cuts] == [("x1", 1.0, 1), ("x2", 0.0, 2)]
    assert result.cuts[0].violation == pytest.approx(0.5)
    assert [cut.id for cut in result.cuts] == [1, 2]
    assert result.best_integer_solution.objective_value == pytest.approx(1.0)


def test_binary_scenario_is_integral_without_cuts():
    result = solve_cutting_plane(load_example("scenario2_binary.json"))

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(5.0)
    assert result.cuts == []


def test_stalled_objective_is_an_error_not_a_limit():
    result = solve_cutting_plane(make_sum_model(8, 13.0))

    assert result.status == "error"
    assert "stalled" in result.message
    assert len(result.cuts) == 5
    assert not result.is_successful


def test_round_cap_reports_iteration_limit():
    result = solve_cutting_plane(make_sum_model(2, 3.0), SolveOptions(max_iters=1, tol=1e-6))

    assert result.status == "iteration_limit"
    assert len(result.cuts) == 1
    assert "1 rounds" in result.message


def test_infeasible_relaxation_is_reported():
    model = load_example("scenario4_infeasible.json")
    model.variables[0].sign = "int"
    result = solve_cutting_plane(model)

    assert result.status == "infeasible"
    assert "round 1" in result.message


def test_cut_converts_to_constraint():
    result = solve_cutting_plane(make_sum_model(2, 3.0))
    constraint = result.cuts[0].to_constraint()

    assert constraint.name == "cut_1"
    assert constraint.coefficients == {"x1": 1.0}
    assert (constraint.cmp, constraint.rhs) == ("<=", 1.0)


def test_cancelled_token_returns_unknown():
    token = CancellationToken()
    token.cancel()
    result = solve_cutting_plane(make_sum_model(2, 3.0), cancel_token=token)

    assert result.status == "unknown"
    assert result.cuts == []
