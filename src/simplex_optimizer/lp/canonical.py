from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..schemas import LPModel
from .tableau import Components, Tableau

logger = logging.getLogger(__name__)

FLIPPED = {"<=": ">=", ">=": "<=", "==": "=="}


@dataclass
class CanonicalForm:
    tableau: Optional[Tableau] = None
    slack_variables: List[str] = field(default_factory=list)
    surplus_variables: List[str] = field(default_factory=list)
    artificial_variables: List[str] = field(default_factory=list)
    objective: Dict[str, float] = field(default_factory=dict)
    components: Components = field(default_factory=dict)
    constraint_names: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    is_valid: bool = False
    error_message: str = ""


def generate_canonical_form(model: LPModel) -> CanonicalForm:
    """
    Build the starting tableau: slack for <= rows, surplus + artificial for
    >= rows, artificial for == rows. The objective row stores the negated
    maximise-equivalent costs so "row 0 >= 0" is the single optimality test.
    Never raises; failures come back as an invalid form with a message.
    """

    form = CanonicalForm()
    if not model.variables:
        form.error_message = "Model has no variables"
        return form
    if not model.constraints:
        form.error_message = "Model has no constraints"
        return form

    try:
        _populate(form, model)
    except ValueError as exc:
        form.error_message = str(exc)
        return form

    errors = form.tableau.validate()
    if errors:
        form.error_message = f"Validation failed: {', '.join(errors)}"
        return form

    form.is_valid = True
    form.steps.append("Canonical form generation completed")
    return form


def _populate(form: CanonicalForm, model: LPModel) -> None:
    steps = form.steps
    sense_factor = 1.0 if model.sense == "max" else -1.0
    if model.sense == "min":
        steps.append("Converting minimisation to maximisation (objective multiplied by -1)")

    col_names: List[str] = []
    costs: List[float] = []

    def add_column(name: str, cost: float = 0.0) -> int:
        col_names.append(name)
        costs.append(cost)
        return len(col_names) - 1

    # Structural columns in variable-index order
    components: Components = {}
    for var in model.ordered_variables():
        if var.sign == "urs":
            add_column(f"{var.name}__pos", sense_factor * var.coef)
            add_column(f"{var.name}__neg", -sense_factor * var.coef)
            components[var.name] = [(f"{var.name}__pos", 1.0), (f"{var.name}__neg", -1.0)]
            steps.append(f"Splitting unrestricted {var.name} = {var.name}__pos - {var.name}__neg")
        elif var.sign == "-":
            add_column(f"{var.name}__neg", -sense_factor * var.coef)
            components[var.name] = [(f"{var.name}__neg", -1.0)]
            steps.append(f"Substituting {var.name} = -{var.name}__neg for non-positive variable")
        else:
            add_column(var.name, sense_factor * var.coef)
            components[var.name] = [(var.name, 1.0)]
    structural = len(col_names)
    col_index = {name: idx for idx, name in enumerate(col_names)}

    # Row specs after sign normalisation of the right-hand side
    row_specs: List[Tuple[str, Dict[int, float], str, float]] = []
    for cons in model.constraints:
        entries: Dict[int, float] = {}
        for var_name, coef in cons.coefficients.items():
            if var_name not in components:
                raise ValueError(f"Constraint '{cons.name}' references unknown variable '{var_name}'.")
            for col, comp_coef in components[var_name]:
                idx = col_index[col]
                entries[idx] = entries.get(idx, 0.0) + coef * comp_coef
        cmp = cons.cmp
        rhs = float(cons.rhs)
        if rhs < 0:
            entries = {idx: -value for idx, value in entries.items()}
            rhs = -rhs
            cmp = FLIPPED[cmp]
            steps.append(f"Row '{cons.name}' multiplied by -1 to make its RHS non-negative")
        row_specs.append((cons.name, entries, cmp, rhs))

    # Auxiliary columns: all slacks, then surpluses, then artificials
    row_slack: Dict[int, int] = {}
    row_surplus: Dict[int, int] = {}
    row_artificial: Dict[int, int] = {}
    for i, (_, _, cmp, _) in enumerate(row_specs):
        if cmp == "<=":
            name = f"slack_{i + 1}"
            row_slack[i] = add_column(name)
            form.slack_variables.append(name)
    for i, (_, _, cmp, _) in enumerate(row_specs):
        if cmp == ">=":
            name = f"surplus_{i + 1}"
            row_surplus[i] = add_column(name)
            form.surplus_variables.append(name)
    for i, (_, _, cmp, _) in enumerate(row_specs):
        if cmp in (">=", "=="):
            name = f"artificial_{i + 1}"
            row_artificial[i] = add_column(name)
            form.artificial_variables.append(name)

    steps.append(f"Adding {len(form.slack_variables)} slack variables")
    steps.append(f"Adding {len(form.surplus_variables)} surplus variables")
    steps.append(f"Adding {len(form.artificial_variables)} artificial variables")

    m = len(row_specs)
    n = len(col_names)
    matrix = np.zeros((m + 1, n + 1), dtype=float)
    matrix[0, :n] = -np.array(costs, dtype=float)

    basis: List[str] = []
    for i, (name, entries, cmp, rhs) in enumerate(row_specs):
        for idx, value in entries.items():
            matrix[i + 1, idx] = value
        matrix[i + 1, n] = rhs
        if cmp == "<=":
            matrix[i + 1, row_slack[i]] = 1.0
            basis.append(col_names[row_slack[i]])
        else:
            if cmp == ">=":
                matrix[i + 1, row_surplus[i]] = -1.0
            matrix[i + 1, row_artificial[i]] = 1.0
            basis.append(col_names[row_artificial[i]])
        form.constraint_names.append(name)

    form.objective = {col_names[j]: costs[j] for j in range(n)}
    form.components = components
    form.tableau = Tableau(
        matrix=matrix,
        variable_names=col_names,
        basic_variables=basis,
        components=components,
    )
    logger.debug(
        "canonical form: %d rows, %d structural + %d auxiliary columns",
        m,
        structural,
        n - structural,
    )
