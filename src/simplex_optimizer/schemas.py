from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field

Sense = Literal["max", "min"]
Cmp = Literal["<=", ">=", "=="]
SignRestriction = Literal["+", "-", "urs", "int", "bin"]
PivotRule = Literal["dantzig", "bland"]
SolveStatus = Literal["optimal", "infeasible", "unbounded", "iteration_limit", "error", "unknown"]
NodeStatus = Literal[
    "active",
    "completed",
    "fathomed_by_bound",
    "fathomed_by_infeasibility",
    "fathomed_by_integrality",
]
BranchDirection = Literal["left", "right"]

LP_DEFAULT_TOL = 1e-10
LP_DEFAULT_MAX_ITERS = 1000
MIP_DEFAULT_TOL = 1e-6
MIP_DEFAULT_MAX_NODES = 1000
CUTTING_PLANE_MAX_ROUNDS = 20

SUCCESSFUL_STATUSES = ("optimal", "infeasible", "unbounded")


class Variable(BaseModel):
    name: str
    index: int
    coef: float = 0.0
    sign: SignRestriction = "+"

    @property
    def is_integer(self) -> bool:
        return self.sign in ("int", "bin")

    @property
    def is_binary(self) -> bool:
        return self.sign == "bin"


class Constraint(BaseModel):
    name: str
    coefficients: Dict[str, float] = Field(default_factory=dict)
    cmp: Cmp
    rhs: float


class LPModel(BaseModel):
    name: str = "problem"
    sense: Sense
    variables: List[Variable]
    constraints: List[Constraint] = Field(default_factory=list)

    def ordered_variables(self) -> List[Variable]:
        return sorted(self.variables, key=lambda var: var.index)

    def variable_map(self) -> Dict[str, Variable]:
        return {var.name: var for var in self.variables}

    def integer_variables(self) -> List[str]:
        return [var.name for var in self.ordered_variables() if var.is_integer]

    @property
    def has_integer_variables(self) -> bool:
        return any(var.is_integer for var in self.variables)

    def objective_at(self, values: Dict[str, float]) -> float:
        """Objective recomputed from the model's own coefficients."""
        return float(sum(var.coef * values.get(var.name, 0.0) for var in self.variables))


class SolveOptions(BaseModel):
    max_iters: int = LP_DEFAULT_MAX_ITERS
    tol: float = LP_DEFAULT_TOL
    pivot_rule: PivotRule = "dantzig"
    record_snapshots: bool = True


class ValidationResult(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class TableauSnapshot(BaseModel):
    variable_names: List[str]
    basic_variables: List[str]
    matrix: List[List[float]]


class RatioTestEntry(BaseModel):
    row: int
    basic_variable: str
    rhs: float
    column_value: float
    ratio: Optional[float] = None
    eligible: bool = False
    note: str = ""


class SimplexIteration(BaseModel):
    number: int
    phase: int = 2
    entering: Optional[str] = None
    leaving: Optional[str] = None
    pivot_row: Optional[int] = None
    pivot_column: Optional[int] = None
    pivot_element: Optional[float] = None
    ratio_tests: List[RatioTestEntry] = Field(default_factory=list)
    objective_value: float = 0.0
    description: str = ""
    is_optimal: bool = False
    is_unbounded: bool = False
    tableau_before: Optional[TableauSnapshot] = None
    tableau_after: Optional[TableauSnapshot] = None


class BranchConstraint(BaseModel):
    variable: str
    cmp: Cmp
    value: float

    def __str__(self) -> str:
        return f"{self.variable} {self.cmp} {self.value:g}"


class BranchNode(BaseModel):
    id: int
    parent_id: Optional[int] = None
    level: int = 0
    bound: Optional[float] = None
    solution: Dict[str, float] = Field(default_factory=dict)
    status: NodeStatus = "active"
    branching_variable: Optional[str] = None
    branching_value: Optional[float] = None
    direction: Optional[BranchDirection] = None
    branch_constraints: List[BranchConstraint] = Field(default_factory=list)
    children: List[int] = Field(default_factory=list)
    notes: str = ""
    solve_time_ms: float = 0.0


class IntegerSolution(BaseModel):
    variables: Dict[str, float]
    objective_value: float
    node_id: Optional[int] = None
    algorithm: str = ""


class KnapsackItem(BaseModel):
    name: str
    index: int
    value: float
    weight: float

    @property
    def efficiency(self) -> float:
        return self.value / self.weight if self.weight > 0 else float("inf")


class CuttingPlane(BaseModel):
    id: int
    variable: str
    coefficients: Dict[str, float]
    cmp: Cmp = "<="
    rhs: float
    violation: float
    iteration: int

    def to_constraint(self) -> Constraint:
        return Constraint(
            name=f"cut_{self.id}",
            coefficients=dict(self.coefficients),
            cmp=self.cmp,
            rhs=self.rhs,
        )


class SolverResult(BaseModel):
    algorithm: str
    status: SolveStatus = "unknown"
    objective_value: Optional[float] = None
    x: Dict[str, float] | None = None
    iterations: List[SimplexIteration] = Field(default_factory=list)
    iteration_count: int = 0
    message: str = ""
    warnings: List[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0

    @computed_field
    @property
    def is_successful(self) -> bool:
        return self.status in SUCCESSFUL_STATUSES


class BranchAndBoundResult(SolverResult):
    nodes: List[BranchNode] = Field(default_factory=list)
    root_bound: Optional[float] = None
    optimality_gap: Optional[float] = None
    best_integer_solution: Optional[IntegerSolution] = None
    integer_variables: List[str] = Field(default_factory=list)
    frontier_exhausted: bool = False


class CuttingPlaneResult(SolverResult):
    cuts: List[CuttingPlane] = Field(default_factory=list)
    best_integer_solution: Optional[IntegerSolution] = None
    integer_variables: List[str] = Field(default_factory=list)
