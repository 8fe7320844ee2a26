from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..errors import NumericalError, PivotError
from ..schemas import LPModel, PivotRule, RatioTestEntry, TableauSnapshot

PIVOT_EPS = 1e-12

Components = Dict[str, List[Tuple[str, float]]]


@dataclass
class Tableau:
    """
    Dense simplex tableau. Row 0 is the objective row (negated maximise-form
    costs), the last column is the RHS, and ``basic_variables[i]`` owns the
    unit column of row ``i + 1``.
    """

    matrix: np.ndarray
    variable_names: List[str]
    basic_variables: List[str]
    components: Components = field(default_factory=dict)
    iteration: int = 0

    @property
    def rows(self) -> int:
        return self.matrix.shape[0]

    @property
    def columns(self) -> int:
        return self.matrix.shape[1]

    @property
    def rhs_column(self) -> int:
        return self.columns - 1

    def column_index(self, name: str) -> int:
        return self.variable_names.index(name)

    def copy(self) -> "Tableau":
        return Tableau(
            matrix=self.matrix.copy(),
            variable_names=list(self.variable_names),
            basic_variables=list(self.basic_variables),
            components={k: list(v) for k, v in self.components.items()},
            iteration=self.iteration,
        )

    def validate(self) -> List[str]:
        errors: List[str] = []
        if self.matrix.ndim != 2:
            return ["Tableau matrix must be two-dimensional."]
        if self.rows != len(self.basic_variables) + 1:
            errors.append(
                f"Row count mismatch: {self.rows} rows for {len(self.basic_variables)} basic variables."
            )
        if self.columns != len(self.variable_names) + 1:
            errors.append(
                f"Column count mismatch: {self.columns} columns for {len(self.variable_names)} variables."
            )
        if len(set(self.variable_names)) != len(self.variable_names):
            errors.append("Duplicate column names in tableau.")
        if errors:
            return errors

        for row, name in enumerate(self.basic_variables, start=1):
            if name not in self.variable_names:
                errors.append(f"Basic variable '{name}' has no column.")
                continue
            column = self.matrix[1:, self.column_index(name)]
            expected = np.zeros(self.rows - 1)
            expected[row - 1] = 1.0
            if not np.allclose(column, expected, atol=1e-9):
                errors.append(f"Column of basic variable '{name}' is not a unit vector.")
        return errors

    def is_optimal(self, tol: float) -> bool:
        return bool(np.all(self.matrix[0, :-1] >= -tol))

    def entering_column(self, tol: float, rule: PivotRule = "dantzig") -> Optional[int]:
        costs = self.matrix[0, :-1]
        if rule == "bland":
            for j, value in enumerate(costs):
                if value < -tol:
                    return j
            return None
        # argmin returns the first occurrence, so exact ties go to the lowest column
        j = int(np.argmin(costs)) if costs.size else -1
        if j < 0 or costs[j] >= -tol:
            return None
        return j

    def is_unbounded(self, col: int, tol: float) -> bool:
        return bool(np.all(self.matrix[1:, col] <= tol))

    def ratio_test(self, col: int, tol: float) -> List[RatioTestEntry]:
        entries: List[RatioTestEntry] = []
        for row in range(1, self.rows):
            value = float(self.matrix[row, col])
            rhs = float(self.matrix[row, self.rhs_column])
            entry = RatioTestEntry(
                row=row,
                basic_variable=self.basic_variables[row - 1],
                rhs=rhs,
                column_value=value,
            )
            if value > tol:
                entry.ratio = rhs / value
                entry.eligible = True
            elif value < -tol:
                entry.note = "negative coefficient"
            else:
                entry.note = "zero coefficient"
            entries.append(entry)
        return entries

    def leaving_row(self, col: int, tol: float, rule: PivotRule = "dantzig") -> Optional[int]:
        candidates = [(entry.ratio, entry.row) for entry in self.ratio_test(col, tol) if entry.eligible]
        if not candidates:
            return None
        best = min(ratio for ratio, _ in candidates)
        tied = [row for ratio, row in candidates if ratio <= best + tol]
        if rule == "bland":
            return min(tied, key=lambda row: self.column_index(self.basic_variables[row - 1]))
        return min(tied)

    def pivot(self, row: int, col: int) -> Tuple[str, str, float]:
        """Gauss-Jordan step on (row, col); returns (entering, leaving, pivot element)."""
        if not 1 <= row < self.rows or not 0 <= col < self.rhs_column:
            raise PivotError(f"Invalid pivot position ({row}, {col}).")
        element = float(self.matrix[row, col])
        if abs(element) <= PIVOT_EPS:
            raise PivotError(f"Cannot pivot on zero element at ({row}, {col}).")

        self.matrix[row, :] /= element
        factors = self.matrix[:, col].copy()
        factors[row] = 0.0
        self.matrix -= np.outer(factors, self.matrix[row, :])
        self.matrix[:, col] = 0.0
        self.matrix[row, col] = 1.0

        entering = self.variable_names[col]
        leaving = self.basic_variables[row - 1]
        self.basic_variables[row - 1] = entering
        self.iteration += 1
        return entering, leaving, element

    def price_out(self) -> None:
        """Zero the objective-row entries of every basic column."""
        for row, name in enumerate(self.basic_variables, start=1):
            col = self.column_index(name)
            factor = self.matrix[0, col]
            if factor != 0.0:
                self.matrix[0, :] -= factor * self.matrix[row, :]
                self.matrix[0, col] = 0.0

    def is_feasible(self, tol: float) -> bool:
        return bool(np.all(self.matrix[1:, self.rhs_column] >= -tol))

    def enforce_feasibility(self, tol: float) -> None:
        rhs = self.matrix[1:, self.rhs_column]
        if np.any(rhs < -tol):
            worst = float(rhs.min())
            raise NumericalError(f"Basic solution became infeasible (rhs {worst:.3e}).")
        rhs[np.abs(rhs) <= tol] = 0.0

    def basic_solution(self) -> Dict[str, float]:
        values = {name: 0.0 for name in self.variable_names}
        for row, name in enumerate(self.basic_variables, start=1):
            values[name] = float(self.matrix[row, self.rhs_column])
        return values

    def variable_values(self, model: LPModel) -> Dict[str, float]:
        columns = self.basic_solution()
        result: Dict[str, float] = {}
        for var in model.ordered_variables():
            parts = self.components.get(var.name, [(var.name, 1.0)])
            value = sum(coef * columns.get(col, 0.0) for col, coef in parts)
            if abs(value) < 1e-12:
                value = 0.0
            result[var.name] = float(value)
        return result

    def objective_value(self, model: LPModel) -> float:
        # the RHS cell of row 0 is never trusted for the reported objective
        return model.objective_at(self.variable_values(model))

    def drop_columns(self, names: Iterable[str]) -> None:
        doomed = [self.column_index(name) for name in names if name in self.variable_names]
        if not doomed:
            return
        self.matrix = np.delete(self.matrix, doomed, axis=1)
        keep = set(doomed)
        self.variable_names = [name for idx, name in enumerate(self.variable_names) if idx not in keep]

    def drop_row(self, row: int) -> None:
        self.matrix = np.delete(self.matrix, row, axis=0)
        del self.basic_variables[row - 1]

    def snapshot(self) -> TableauSnapshot:
        return TableauSnapshot(
            variable_names=list(self.variable_names),
            basic_variables=list(self.basic_variables),
            matrix=self.matrix.tolist(),
        )
