import json
from pathlib import Path

import pytest

from simplex_optimizer.cancellation import CancellationToken
from simplex_optimizer.lp.simplex import simplex_solve
from simplex_optimizer.schemas import Constraint, LPModel, SolveOptions, Variable
from simplex_optimizer.trace import Tracer


def load_example(name: str) -> LPModel:
    data = json.loads(Path(__file__).parent.parent.joinpath("examples", name).read_text())
    return LPModel.model_validate(data)


def make_mixed_model() -> LPModel:
    variables = [
        Variable(name="x1", index=0, coef=2.0, sign="urs"),
        Variable(name="x2", index=1, coef=-1.0, sign="-"),
        Variable(name="x3", index=2, coef=1.0),
    ]
    constraints = [
        Constraint(name="balance", coefficients={"x1": 1.0, "x3": 1.0}, cmp="==", rhs=4.0),
        Constraint(name="spread", coefficients={"x1": 1.0, "x2": -1.0}, cmp="<=", rhs=6.0),
        Constraint(name="floor_x1", coefficients={"x1": 1.0}, cmp=">=", rhs=-3.0),
    ]
    return LPModel(name="mixed", sense="min", variables=variables, constraints=constraints)


def test_simplex_solves_scenario_one():
    solution = simplex_solve(load_example("scenario1_lp.json"), SolveOptions())

    assert solution.status == "optimal"
    assert solution.is_successful
    assert solution.objective_value == pytest.approx(10.0)
    assert solution.x == {"x1": pytest.approx(2.0), "x2": pytest.approx(2.0)}
    assert solution.iteration_count == 2


def test_iteration_trace_records_pivots_and_ratio_tests():
    solution = simplex_solve(load_example("scenario1_lp.json"))

    first = solution.iterations[0]
    assert first.phase == 2
    assert (first.entering, first.leaving) == ("x1", "slack_2")
    assert [entry.ratio for entry in first.ratio_tests] == [pytest.approx(4.0), pytest.approx(3.0)]
    assert first.pivot_row == 2 and first.pivot_column == 0
    assert first.objective_value == pytest.approx(9.0)
    assert first.tableau_before is not None and first.tableau_after is not None
    assert first.tableau_before.basic_variables == ["slack_1", "slack_2"]
    assert first.tableau_after.basic_variables == ["slack_1", "x1"]

    last = solution.iterations[-1]
    assert last.is_optimal
    assert last.objective_value == pytest.approx(10.0)
    assert len(solution.iterations) == 3


def test_snapshots_can_be_disabled():
    solution = simplex_solve(load_example("scenario1_lp.json"), SolveOptions(record_snapshots=False))

    assert solution.status == "optimal"
    assert all(step.tableau_before is None and step.tableau_after is None for step in solution.iterations)


def test_infeasible_model_detected_in_phase_one():
    solution = simplex_solve(load_example("scenario4_infeasible.json"))

    assert solution.status == "infeasible"
    assert solution.is_successful
    assert solution.x is None
    assert all(step.phase == 1 for step in solution.iterations)
    assert "artificial sum" in solution.message


def test_unbounded_model_detected():
    solution = simplex_solve(load_example("scenario5_unbounded.json"))

    assert solution.status == "unbounded"
    assert solution.is_successful
    assert solution.iterations[-1].is_unbounded
    assert solution.iterations[-1].entering == "surplus_1"


def test_two_phase_handles_equality_negative_and_free_variables():
    solution = simplex_solve(make_mixed_model())

    assert solution.status == "optimal"
    assert solution.objective_value == pytest.approx(1.0)
    assert solution.x["x1"] == pytest.approx(-3.0)
    assert solution.x["x2"] == pytest.approx(0.0)
    assert solution.x["x3"] == pytest.approx(7.0)


def test_minimisation_diet_model():
    solution = simplex_solve(load_example("diet_min.json"))

    assert solution.status == "optimal"
    model = load_example("diet_min.json")
    assert solution.objective_value == pytest.approx(model.objective_at(solution.x))
    calories = 65 * solution.x["bread"] + 110 * solution.x["milk"] + 90 * solution.x["beans"]
    assert calories >= 2000 - 1e-6


def test_bland_rule_matches_dantzig():
    model = load_example("diet_min.json")
    dantzig = simplex_solve(model, SolveOptions(pivot_rule="dantzig"))
    bland = simplex_solve(model, SolveOptions(pivot_rule="bland"))

    assert dantzig.status == bland.status == "optimal"
    assert bland.objective_value == pytest.approx(dantzig.objective_value, abs=1e-6)


def test_iteration_limit_is_reported():
    solution = simplex_solve(load_example("scenario1_lp.json"), SolveOptions(max_iters=1))

    assert solution.status == "iteration_limit"
    assert not solution.is_successful
    assert "Maximum iterations (1)" in solution.message
    assert solution.iteration_count == 1


def test_redundant_equality_row_is_dropped():
    model = LPModel(
        sense="max",
        variables=[Variable(name="x", index=0, coef=1.0), Variable(name="y", index=1, coef=1.0)],
        constraints=[
            Constraint(name="e1", coefficients={"x": 1.0, "y": 1.0}, cmp="==", rhs=2.0),
            Constraint(name="e2", coefficients={"x": 2.0, "y": 2.0}, cmp="==", rhs=4.0),
            Constraint(name="cap", coefficients={"x": 1.0}, cmp="<=", rhs=1.5),
        ],
    )
    solution = simplex_solve(model)

    assert solution.status == "optimal"
    assert solution.objective_value == pytest.approx(2.0)
    assert solution.x["x"] + solution.x["y"] == pytest.approx(2.0)


def test_integer_markers_are_relaxed():
    model = LPModel(
        sense="max",
        variables=[Variable(name="x", index=0, coef=1.0, sign="int")],
        constraints=[Constraint(name="c", coefficients={"x": 2.0}, cmp="<=", rhs=3.0)],
    )
    solution = simplex_solve(model)

    assert solution.status == "optimal"
    assert solution.objective_value == pytest.approx(1.5)


def test_invalid_model_returns_error_result():
    model = LPModel(sense="max", variables=[Variable(name="x", index=0, coef=1.0)], constraints=[])
    solution = simplex_solve(model)

    assert solution.status == "error"
    assert "canonical form" in solution.message


def test_cancellation_stops_the_solve():
    token = CancellationToken()
    seen = []

    def on_iteration(step):
        seen.append(step)
        token.cancel()

    solution = simplex_solve(load_example("scenario1_lp.json"), tracer=Tracer(on_iteration=on_iteration), cancel_token=token)

    assert solution.status == "unknown"
    assert solution.message == "Solve cancelled."
    assert len(seen) == 1
