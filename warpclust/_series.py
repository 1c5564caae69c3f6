"""Coercion and checks for sequences and collections of sequences."""

from typing import List, Sequence, Tuple

import numpy as np

from .exceptions import DimensionMismatch, ValidationError


def as_series(x, name: str = "series") -> np.ndarray:
    """
    Return ``x`` as a C-contiguous float64 array of shape (length, n_variables).

    Univariate input of shape (length,) becomes (length, 1).
    """
    arr = np.asarray(x, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    elif arr.ndim != 2:
        raise ValidationError(f"{name} must be 1-D or 2-D (time x variables)", {"ndim": arr.ndim})
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValidationError(f"{name} is empty", {"shape": arr.shape})
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{name} contains NaN or infinite values")
    return np.ascontiguousarray(arr)


def as_collection(series: Sequence, name: str = "series") -> Tuple[List[np.ndarray], bool]:
    """
    Coerce a collection of sequences.

    Returns
    -------
    Tuple[List[np.ndarray], bool]
        The 2-D arrays and whether every input was univariate and 1-D.
    """
    if isinstance(series, np.ndarray) and series.ndim == 2:
        # a matrix is read as one series per row
        series = list(series)
    series = list(series)
    if not series:
        raise ValidationError(f"{name} must contain at least one series")
    univariate = all(np.ndim(s) == 1 for s in series)
    out = [as_series(s, f"{name}[{i}]") for i, s in enumerate(series)]
    check_nvar(out, name)
    return out, univariate


def check_nvar(series: List[np.ndarray], name: str = "series") -> int:
    nvar = series[0].shape[1]
    for i, s in enumerate(series):
        if s.shape[1] != nvar:
            raise DimensionMismatch(f"all of {name} must have the same number of variables",
                                    {"expected": nvar, "index": i, "got": s.shape[1]})
    return nvar


def restore_shape(x: np.ndarray, univariate: bool) -> np.ndarray:
    return x[:, 0].copy() if univariate else x
