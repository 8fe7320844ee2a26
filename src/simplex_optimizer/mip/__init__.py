"""Integer programming solvers for simplex-optimizer."""

from .branch_and_bound import solve_branch_and_bound
from .cutting_plane import solve_cutting_plane
from .knapsack import KnapsackInstance, knapsack_support_error, solve_knapsack

__all__ = [
    "KnapsackInstance",
    "knapsack_support_error",
    "solve_branch_and_bound",
    "solve_cutting_plane",
    "solve_knapsack",
]
