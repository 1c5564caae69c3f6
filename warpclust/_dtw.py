"""
Dynamic Time Warping kernel.

The cumulative cost matrix is filled by a Numba-compiled loop. The loop
releases the GIL, so several threads can align different pairs at once as
long as each of them owns its scratch buffers.
"""

import math
import warnings
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from numba import njit

from ._series import as_series
from .config import DTWConfig
from .exceptions import DimensionMismatch, InvalidBuffer

# direction codes stored in the direction matrix
_DIAGONAL = 0
_VERTICAL = 1
_HORIZONTAL = 2

_NORM_CODES = {"L1": 1, "L2": 2}
_STEP_WEIGHTS = {"symmetric1": 1.0, "symmetric2": 2.0}

# passed to the kernel in place of the direction matrix when no path is requested
_NO_DIRECTIONS = np.zeros((1, 1), dtype=np.int8)


@dataclass(frozen=True)
class AlignmentResult:
    """
    Result of a DTW alignment.

    Attributes
    ----------
    distance : float
        Alignment cost, ``inf`` when no admissible path exists.
    index1, index2 : Optional[np.ndarray]
        0-based indices of ``x`` and ``y`` matched along the warping path,
        in ascending order. Only set when backtracking was requested and a
        path exists.
    """

    distance: float
    index1: Optional[np.ndarray] = None
    index2: Optional[np.ndarray] = None

    @property
    def path(self) -> Optional[List[Tuple[int, int]]]:
        if self.index1 is None:
            return None
        return list(zip(self.index1.tolist(), self.index2.tolist()))


class DTWBuffers:
    """
    Reusable scratch space for :func:`align`.

    Holds the global cost matrix (float64) and the direction matrix (int8).
    Both must have at least ``len(x) + 1`` rows and ``len(y) + 1`` columns
    for every pair they are used with. A buffer must not be shared by two
    concurrent calls.

    Parameters
    ----------
    gcm : np.ndarray
        2-D float64 array for the cumulative costs.
    dm : Optional[np.ndarray]
        2-D int8 array for the backtracking directions. Only needed when
        backtracking.
    """

    def __init__(self, gcm: np.ndarray, dm: Optional[np.ndarray] = None):
        self.gcm = gcm
        self.dm = dm

    @classmethod
    def allocate(cls, max_len_x: int, max_len_y: int, backtrack: bool = True) -> "DTWBuffers":
        gcm = np.empty((max_len_x + 1, max_len_y + 1), dtype=np.float64)
        dm = np.empty((max_len_x + 1, max_len_y + 1), dtype=np.int8) if backtrack else None
        return cls(gcm, dm)

    def check(self, len_x: int, len_y: int, backtrack: bool) -> None:
        """Raise ``InvalidBuffer`` unless the buffers fit an alignment of the given lengths."""
        _check_matrix(self.gcm, "gcm", np.float64, len_x, len_y)
        if backtrack:
            if self.dm is None:
                raise InvalidBuffer("backtracking requires a direction matrix ('dm')")
            _check_matrix(self.dm, "dm", np.int8, len_x, len_y)


def _check_matrix(arr, name: str, dtype, len_x: int, len_y: int) -> None:
    if not isinstance(arr, np.ndarray) or arr.ndim != 2:
        raise InvalidBuffer(f"'{name}' must be a 2-D numpy array")
    if arr.dtype != dtype:
        raise InvalidBuffer(f"'{name}' must have dtype {np.dtype(dtype).name}", {"dtype": arr.dtype.name})
    if arr.shape[0] < len_x + 1 or arr.shape[1] < len_y + 1:
        raise InvalidBuffer(f"Dimension inconsistency in '{name}'",
                            {"shape": arr.shape, "required": (len_x + 1, len_y + 1)})
    if not arr.flags.writeable:
        raise InvalidBuffer(f"'{name}' must be writeable")


def align(x, y, config: Optional[DTWConfig] = None, backtrack: bool = False,
          buffers: Optional[DTWBuffers] = None) -> AlignmentResult:
    """
    Align two sequences with DTW.

    Parameters
    ----------
    x, y : array-like
        Sequences of shape (length,) or (length, n_variables). Both must have
        the same number of variables; lengths may differ.
    config : Optional[DTWConfig]
        Window, norm, step pattern and normalization. Defaults to
        ``DTWConfig()``.
    backtrack : bool, default=False
        Also recover the warping path.
    buffers : Optional[DTWBuffers]
        Scratch space to reuse. Overwritten by the call.

    Returns
    -------
    AlignmentResult
        Distance and, if requested, the warping path.

    Notes
    -----
    When several paths have the same optimal cost the predecessor is chosen
    in the order diagonal, vertical (advance in ``x``), horizontal (advance
    in ``y``).
    """
    config = config or DTWConfig()
    x = as_series(x, "x")
    y = as_series(y, "y")
    if x.shape[1] != y.shape[1]:
        raise DimensionMismatch("Multivariate series must have the same number of variables.",
                                {"x_variables": x.shape[1], "y_variables": y.shape[1]})
    n, m = x.shape[0], y.shape[0]

    if buffers is None:
        buffers = DTWBuffers.allocate(n, m, backtrack)
    else:
        buffers.check(n, m, backtrack)

    window = -1 if config.window_size is None else config.window_size
    dm = buffers.dm if backtrack else _NO_DIRECTIONS
    index1 = np.empty(n + m if backtrack else 0, dtype=np.int64)
    index2 = np.empty(n + m if backtrack else 0, dtype=np.int64)

    distance, path_len = _dtw_kernel(x, y, window, _NORM_CODES[config.norm],
                                     _STEP_WEIGHTS[config.step_pattern], backtrack,
                                     buffers.gcm, dm, index1, index2)

    if config.normalize:
        if config.step_pattern == "symmetric2":
            distance = distance / (n + m)
        else:
            warnings.warn("Unable to normalize with the chosen step_pattern.", UserWarning, stacklevel=2)

    if backtrack and path_len > 0:
        return AlignmentResult(float(distance), index1[:path_len][::-1].copy(), index2[:path_len][::-1].copy())
    return AlignmentResult(float(distance))


@njit(nogil=True)
def _local_cost(x: np.ndarray, y: np.ndarray, i: int, j: int, norm: int) -> float:
    d = 0.0
    for k in range(x.shape[1]):
        diff = x[i, k] - y[j, k]
        if norm == 1:
            d += abs(diff)
        else:
            d += diff * diff
    if norm == 2:
        d = math.sqrt(d)
    return d


@njit(nogil=True)
def _dtw_kernel(x: np.ndarray, y: np.ndarray, window: int, norm: int, diagonal_weight: float,
                backtrack: bool, gcm: np.ndarray, dm: np.ndarray,
                index1: np.ndarray, index2: np.ndarray) -> Tuple[float, int]:
    """
    Fill the cumulative cost matrix and optionally backtrack.

    Cell (i, j) of ``gcm`` holds the cost of aligning ``x[:i]`` with ``y[:j]``.
    With ``window >= 0`` a cell is admissible only if its distance to the
    straight line from (0, 0) to (n, m), measured in steps of the longer
    series, is at most ``window``. Inadmissible cells stay at infinity.

    Returns
    -------
    Tuple[float, int]
        The distance and the number of path entries written (in reverse
        order) to ``index1`` and ``index2``.
    """
    n = x.shape[0]
    m = y.shape[0]
    longest = max(n, m)

    for i in range(n + 1):
        for j in range(m + 1):
            gcm[i, j] = np.inf
    gcm[0, 0] = 0.0

    for i in range(1, n + 1):
        for j in range(1, m + 1):
            if window >= 0 and abs(i * m - j * n) * longest > window * n * m:
                continue
            cost = _local_cost(x, y, i - 1, j - 1, norm)
            best = gcm[i - 1, j - 1] + diagonal_weight * cost
            direction = _DIAGONAL
            vertical = gcm[i - 1, j] + cost
            if vertical < best:
                best = vertical
                direction = _VERTICAL
            horizontal = gcm[i, j - 1] + cost
            if horizontal < best:
                best = horizontal
                direction = _HORIZONTAL
            gcm[i, j] = best
            if backtrack:
                dm[i, j] = direction

    distance = gcm[n, m]
    path_len = 0
    if backtrack and distance < np.inf:
        i = n
        j = m
        while i > 0 and j > 0:
            index1[path_len] = i - 1
            index2[path_len] = j - 1
            path_len += 1
            step = dm[i, j]
            if step == _DIAGONAL:
                i -= 1
                j -= 1
            elif step == _VERTICAL:
                i -= 1
            else:
                j -= 1

    return distance, path_len
