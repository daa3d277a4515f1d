"""
Exception types for the arrival order pipeline and model fitting.
"""


class ArrivalAnalysisError(Exception):
    """Base class for all errors raised by this package."""


class SchemaError(ArrivalAnalysisError, ValueError):
    """
    Malformed or inconsistent input table.

    Attributes
    ----------
    row : optional
        Index label of the offending row
    column : str, optional
        Name of the offending or missing column
    group : optional
        group_id whose rows are inconsistent
    """

    def __init__(self, message, row=None, column=None, group=None):
        context = []
        if column is not None:
            context.append(f"column={column!r}")
        if row is not None:
            context.append(f"row={row!r}")
        if group is not None:
            context.append(f"group={group!r}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
        self.row = row
        self.column = column
        self.group = group


class BucketingError(ArrivalAnalysisError, ValueError):
    """Non-positive bucket width or non-finite values to bucket."""


class ReshapeError(ArrivalAnalysisError, ValueError):
    """Prediction matrix shape does not match the supplied labels."""


class ModelFitError(ArrivalAnalysisError, RuntimeError):
    """Base class for failures of the model-fitting collaborator."""


class ConvergenceError(ModelFitError):
    """Optimizer or sampler did not converge."""


class SingularityError(ModelFitError):
    """Singular Hessian or covariance matrix."""
