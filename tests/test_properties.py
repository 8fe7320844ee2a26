import json
import math
from pathlib import Path

import numpy as np
import pytest
from scipy.optimize import linprog

from scripts.generate_instances import generate_random_knapsack, generate_random_lp
from simplex_optimizer.lp.revised import revised_simplex_solve
from simplex_optimizer.lp.simplex import simplex_solve
from simplex_optimizer.mip.branch_and_bound import solve_branch_and_bound
from simplex_optimizer.mip.knapsack import solve_knapsack
from simplex_optimizer.schemas import Constraint, LPModel, SolveOptions, Variable

BOUNDS = {"+": (0, None), "-": (None, 0), "urs": (None, None)}


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


def scipy_objective(model: LPModel) -> float:
    ordered = model.ordered_variables()
    factor = -1.0 if model.sense == "max" else 1.0
    c = [factor * var.coef for var in ordered]
    A_ub, b_ub, A_eq, b_eq = [], [], [], []
    for cons in model.constraints:
        row = [cons.coefficients.get(var.name, 0.0) for var in ordered]
        if cons.cmp == "<=":
            A_ub.append(row)
            b_ub.append(cons.rhs)
        elif cons.cmp == ">=":
            A_ub.append([-value for value in row])
            b_ub.append(-cons.rhs)
        else:
            A_eq.append(row)
            b_eq.append(cons.rhs)
    res = linprog(
        c,
        A_ub=A_ub or None,
        b_ub=b_ub or None,
        A_eq=A_eq or None,
        b_eq=b_eq or None,
        bounds=[BOUNDS[var.sign] for var in ordered],
        method="highs",
    )
    assert res.status == 0
    return factor * res.fun


def random_lps():
    for seed in range(8):
        yield generate_random_lp(3, 3, seed, with_cover_row=True)
        yield generate_random_lp(5, 2, seed)


@pytest.mark.parametrize("model", [load_example("diet_min.json"), load_example("scenario1_lp.json"), make_mixed_model()])
def test_matches_scipy_linprog(model):
    expected = scipy_objective(model)

    for solve in (simplex_solve, revised_simplex_solve):
        result = solve(model)
        assert result.status == "optimal"
        assert result.objective_value == pytest.approx(expected, abs=1e-6)


def test_primal_and_revised_agree_on_random_models():
    for model in random_lps():
        primal = simplex_solve(model)
        revised = revised_simplex_solve(model)
        assert primal.status == revised.status == "optimal"
        assert primal.objective_value == pytest.approx(revised.objective_value, abs=1e-6)
        assert primal.objective_value == pytest.approx(scipy_objective(model), abs=1e-6)


def test_bland_rule_agrees_with_dantzig_on_random_models():
    for model in random_lps():
        dantzig = simplex_solve(model, SolveOptions(pivot_rule="dantzig"))
        bland = revised_simplex_solve(model, SolveOptions(pivot_rule="bland"))
        assert bland.objective_value == pytest.approx(dantzig.objective_value, abs=1e-6)


def test_reported_objective_is_recomputed_from_solution():
    for model in random_lps():
        for solve in (simplex_solve, revised_simplex_solve):
            result = solve(model)
            recomputed = sum(var.coef * result.x[var.name] for var in model.variables)
            assert result.objective_value == pytest.approx(recomputed, abs=1e-9)


def test_solutions_satisfy_every_constraint():
    for model in random_lps():
        x = simplex_solve(model).x
        for cons in model.constraints:
            lhs = sum(coef * x[name] for name, coef in cons.coefficients.items())
            if cons.cmp == "<=":
                assert lhs <= cons.rhs + 1e-7
            elif cons.cmp == ">=":
                assert lhs >= cons.rhs - 1e-7
            else:
                assert lhs == pytest.approx(cons.rhs, abs=1e-7)
        assert all(value >= -1e-9 for value in x.values())


def test_branch_and_bound_incumbents_are_integral_and_bounds_monotone():
    for seed in range(5):
        model = generate_random_lp(3, 3, seed, sign="int")
        result = solve_branch_and_bound(model)
        assert result.status == "optimal"
        for value in result.x.values():
            assert math.isclose(value, round(value), abs_tol=1e-6)
        by_id = {node.id: node for node in result.nodes}
        for node in result.nodes:
            if node.parent_id is not None and node.bound is not None:
                assert node.bound <= by_id[node.parent_id].bound + 1e-6
        assert result.objective_value <= result.root_bound + 1e-6


def test_generic_and_knapsack_search_agree():
    for seed in range(6):
        model = generate_random_knapsack(8, seed)
        generic = solve_branch_and_bound(model)
        specialised = solve_knapsack(model)
        assert generic.status == specialised.status == "optimal"
        assert generic.objective_value == pytest.approx(specialised.objective_value, abs=1e-6)
        for value in specialised.x.values():
            assert value in (0.0, 1.0)
        weights = model.constraints[0].coefficients
        used = sum(weights[name] * value for name, value in specialised.x.items())
        assert used <= model.constraints[0].rhs + 1e-9
        assert np.isclose(specialised.objective_value, model.objective_at(specialised.x))
