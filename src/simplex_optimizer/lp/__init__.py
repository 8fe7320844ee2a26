"""Linear programming solvers for simplex-optimizer."""

from .canonical import CanonicalForm, generate_canonical_form
from .revised import revised_simplex_solve
from .simplex import run_tableau_simplex, simplex_solve
from .tableau import Tableau
from .utils import build_standard_form, validate_model

__all__ = [
    "build_standard_form",
    "CanonicalForm",
    "Tableau",
    "generate_canonical_form",
    "revised_simplex_solve",
    "run_tableau_simplex",
    "simplex_solve",
    "validate_model",
]
