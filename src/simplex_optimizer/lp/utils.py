from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from ..schemas import LPModel, ValidationResult
from .canonical import FLIPPED
from .tableau import Components, Tableau


def validate_model(model: LPModel, continuous_only: bool = False) -> ValidationResult:
    """
    Structural checks run before any solve. ``continuous_only`` adds a warning
    when integer/binary variables reach a pure LP solver.
    """

    report = ValidationResult()
    if not model.variables:
        report.errors.append("Model has no variables.")
    if not model.constraints:
        report.errors.append("Model has no constraints.")

    names: Set[str] = set()
    for var in model.variables:
        if not var.name.strip():
            report.errors.append(f"Variable at index {var.index} has an empty name.")
        elif var.name in names:
            report.errors.append(f"Duplicate variable name '{var.name}'.")
        names.add(var.name)
        if var.sign == "urs":
            report.warnings.append(f"Variable '{var.name}' is unrestricted and will be split into two columns.")

    indices = sorted(var.index for var in model.variables)
    if indices != list(range(len(model.variables))):
        report.errors.append("Variable indices must be a permutation of 0..n-1.")

    for cons in model.constraints:
        if not cons.coefficients:
            report.errors.append(f"Constraint '{cons.name}' has no coefficients.")
        for var_name in cons.coefficients:
            if var_name not in names:
                report.errors.append(f"Constraint '{cons.name}' references unknown variable '{var_name}'.")
        if cons.rhs < 0:
            report.warnings.append(f"Constraint '{cons.name}' has a negative RHS and will be multiplied by -1.")

    if continuous_only and model.has_integer_variables:
        report.warnings.append(
            "Integer/binary variables are treated as continuous by the LP solvers (relaxation)."
        )
    return report


def build_standard_form(model: LPModel) -> Tuple[Tableau, List[str], Dict[str, float]]:
    """
    Convert ``model`` to equality standard form Ax = b, x >= 0 and wrap it in
    a tableau. Each row gets its slack (+1 for <=) or surplus (-1 for >=)
    column as it is read; only rows left without a +1 slack get an artificial.
    Returns the tableau, the artificial column names and the maximise-form
    cost of every column.
    """

    col_names: List[str] = []
    costs: List[float] = []
    rows: List[List[float]] = []
    rhs_values: List[float] = []
    basis: List[str] = []
    artificial: List[str] = []
    components: Components = {}
    sense_factor = 1.0 if model.sense == "max" else -1.0

    def add_column(name: str, cost: float = 0.0) -> int:
        col_names.append(name)
        costs.append(cost)
        for row in rows:
            row.append(0.0)
        return len(col_names) - 1

    for var in model.ordered_variables():
        if var.sign == "urs":
            add_column(f"{var.name}__pos", sense_factor * var.coef)
            add_column(f"{var.name}__neg", -sense_factor * var.coef)
            components[var.name] = [(f"{var.name}__pos", 1.0), (f"{var.name}__neg", -1.0)]
        elif var.sign == "-":
            add_column(f"{var.name}__neg", -sense_factor * var.coef)
            components[var.name] = [(f"{var.name}__neg", -1.0)]
        else:
            add_column(var.name, sense_factor * var.coef)
            components[var.name] = [(var.name, 1.0)]

    for i, cons in enumerate(model.constraints, start=1):
        entries: Dict[int, float] = {}
        for var_name, coef in cons.coefficients.items():
            if var_name not in components:
                raise ValueError(f"Constraint '{cons.name}' references unknown variable '{var_name}'.")
            for col, comp_coef in components[var_name]:
                idx = col_names.index(col)
                entries[idx] = entries.get(idx, 0.0) + coef * comp_coef

        cmp = cons.cmp
        rhs = float(cons.rhs)
        if rhs < 0:
            entries = {idx: -value for idx, value in entries.items()}
            rhs = -rhs
            cmp = FLIPPED[cmp]

        basic: Optional[int] = None
        if cmp == "<=":
            basic = add_column(f"slack_{i}")
            entries[basic] = 1.0
        elif cmp == ">=":
            entries[add_column(f"surplus_{i}")] = -1.0

        row = [0.0] * len(col_names)
        for idx, value in entries.items():
            row[idx] = value
        rows.append(row)
        rhs_values.append(rhs)

        if basic is None:
            # no +1 slack to seed the basis with
            basic = add_column(f"artificial_{i}")
            rows[-1][basic] = 1.0
            artificial.append(col_names[basic])
        basis.append(col_names[basic])

    matrix = np.zeros((len(rows) + 1, len(col_names) + 1), dtype=float)
    matrix[0, :-1] = -np.array(costs, dtype=float)
    if rows:
        matrix[1:, :-1] = np.array(rows, dtype=float)
        matrix[1:, -1] = np.array(rhs_values, dtype=float)

    tableau = Tableau(matrix=matrix, variable_names=col_names, basic_variables=basis, components=components)
    return tableau, artificial, dict(zip(col_names, costs))
