"""Internal fault types. Public solve functions never let these escape."""


class OptimizerError(Exception):
    """Base class for unexpected conditions inside an algorithm."""


class PivotError(OptimizerError):
    """Raised when a pivot position is illegal or its element is zero."""


class NumericalError(OptimizerError):
    """Raised when a basic solution loses feasibility beyond tolerance."""
