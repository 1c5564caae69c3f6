"""
Exception hierarchy for warpclust.

All errors raised on purpose by the package derive from ``WarpclustError``.
Errors caused by bad input (shapes, configuration values, scratch buffers)
also derive from ``ValueError``.
"""

from typing import Any, Dict, Optional


class WarpclustError(Exception):
    """
    Base class for warpclust errors.

    Attributes
    ----------
    message : str
        Error message.
    context : Dict[str, Any]
        Extra details (indices, shapes, offending values).
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        context_str = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({context_str})"


class ValidationError(WarpclustError, ValueError):
    """Input failed a structural check before any computation started."""


class DimensionMismatch(ValidationError):
    """Two sequences (or collections) do not share the number of variables, or shapes are incompatible."""


class InvalidConfiguration(ValidationError):
    """A configuration value is out of range (negative window, k <= 0, unknown option, ...)."""


class InvalidStepPattern(InvalidConfiguration):
    """Only 'symmetric1' and 'symmetric2' are supported."""


class InvalidBuffer(ValidationError):
    """A caller-supplied scratch buffer is too small or has the wrong dtype."""


class AlignmentError(WarpclustError):
    """No admissible warping path exists, e.g. the window band does not connect both ends."""


class EmptyClusterError(WarpclustError):
    """A cluster lost all of its members and the configured policy is to fail."""

    def __init__(self, message: str, clusters, context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        context.setdefault("clusters", list(clusters))
        super().__init__(message, context)
        self.clusters = list(clusters)


class WorkerFailure(WarpclustError):
    """
    A unit of a parallel batch failed.

    Attributes
    ----------
    unit : Any
        The failing work unit (e.g. a ``(i, j)`` pair of series indices).
    index : int
        Position of the unit in the batch.
    """

    def __init__(self, message: str, unit: Any = None, index: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        if unit is not None:
            context.setdefault("unit", unit)
        if index is not None:
            context.setdefault("index", index)
        super().__init__(message, context)
        self.unit = unit
        self.index = index


class NonConvergenceWarning(UserWarning):
    """An iterative procedure stopped at its iteration budget before converging."""
