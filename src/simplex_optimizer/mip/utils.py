import math
from typing import Dict, Iterable, List, Optional, Tuple

from ..schemas import BranchConstraint, Constraint, LPModel


def relaxation_model(model: LPModel, branch_constraints: Iterable[BranchConstraint] = ()) -> LPModel:
    """
    Deep copy of ``model`` with an explicit ``x <= 1`` row per binary variable
    and one row per branch constraint. Integer markers are kept; the LP
    solvers treat them as plain non-negative columns.
    """

    relaxed = model.model_copy(deep=True)
    for var in relaxed.ordered_variables():
        if var.is_binary:
            relaxed.constraints.append(
                Constraint(name=f"binary_{var.name}", coefficients={var.name: 1.0}, cmp="<=", rhs=1.0)
            )
    for k, branch in enumerate(branch_constraints, start=1):
        relaxed.constraints.append(
            Constraint(name=f"branch_{k}", coefficients={branch.variable: 1.0}, cmp=branch.cmp, rhs=branch.value)
        )
    return relaxed


def continuous_model(model: LPModel) -> LPModel:
    """Relaxation with integer/binary variables turned into non-negative continuous ones."""
    relaxed = relaxation_model(model)
    for var in relaxed.variables:
        if var.is_integer:
            var.sign = "+"
    return relaxed


def fractionality(value: float) -> float:
    return abs(value - round(value))


def is_integer_feasible(model: LPModel, values: Dict[str, float], tol: float) -> bool:
    for var in model.variables:
        if not var.is_integer:
            continue
        value = values.get(var.name, 0.0)
        if fractionality(value) > tol:
            return False
        if var.is_binary and not (-tol <= value <= 1.0 + tol):
            return False
    return True


def select_fractional_variable(model: LPModel, values: Dict[str, float], tol: float) -> Optional[Tuple[str, float]]:
    """Integer variable farthest from an integer; first in index order on ties."""
    best_var: Optional[str] = None
    best_gap = tol
    best_value = 0.0
    for var in model.ordered_variables():
        if not var.is_integer:
            continue
        value = values.get(var.name, 0.0)
        gap = fractionality(value)
        if gap > best_gap:
            best_gap = gap
            best_var = var.name
            best_value = value
    if best_var is None:
        return None
    return best_var, best_value


def fractional_candidates(model: LPModel, values: Dict[str, float], tol: float) -> List[Tuple[str, float]]:
    """All fractional integer variables, most fractional first, index order on ties."""
    candidates = [
        (var.name, values.get(var.name, 0.0))
        for var in model.ordered_variables()
        if var.is_integer and fractionality(values.get(var.name, 0.0)) > tol
    ]
    # sorted() is stable, so equal gaps keep index order
    return sorted(candidates, key=lambda item: -fractionality(item[1]))


def snap_integers(model: LPModel, values: Dict[str, float]) -> Dict[str, float]:
    snapped = dict(values)
    for var in model.variables:
        if var.is_integer and var.name in snapped:
            snapped[var.name] = float(round(snapped[var.name])) + 0.0
    return snapped


def branch_bounds(value: float, is_binary: bool) -> Tuple[float, float]:
    """Right-hand sides of the left (<=) and right (>=) children."""
    if is_binary:
        return 0.0, 1.0
    return float(math.floor(value)), float(math.ceil(value))
