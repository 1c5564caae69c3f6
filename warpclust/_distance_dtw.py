"""
Distance matrices between collections of sequences.
"""

import logging
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.spatial.distance import squareform

from ._dtw import DTWBuffers, align
from ._parallel import UnitFailure, effective_n_jobs, failures, run_batch
from ._series import as_collection
from .config import DTWConfig
from .exceptions import DimensionMismatch, WorkerFailure

logger = logging.getLogger(__name__)

DistanceFn = Callable[[np.ndarray, np.ndarray], float]


def distance_matrix(x: Sequence, y: Optional[Sequence] = None, config: Optional[DTWConfig] = None,
                    pairwise: bool = False, distance: Optional[DistanceFn] = None,
                    symmetric: Optional[bool] = None, n_jobs: Optional[int] = None,
                    tolerant: bool = False, buffers: Optional[DTWBuffers] = None) -> np.ndarray:
    """
    Compute DTW distances between the series of ``x`` and ``y``.

    Parameters
    ----------
    x : Sequence
        Collection of series (1-D or time x variables). A 2-D array is read
        as one univariate series per row.
    y : Optional[Sequence]
        Second collection. If None or ``x`` itself, distances within ``x``
        are computed.
    config : Optional[DTWConfig]
        Kernel options, ignored when ``distance`` is given.
    pairwise : bool, default=False
        Return the 1-D vector ``d(x[i], y[i])`` instead of the full cross
        matrix. Requires ``len(x) == len(y)``.
    distance : Optional[Callable]
        Replacement for the DTW kernel, called as ``distance(x_i, y_j)``
        with 2-D (time x variables) arrays.
    symmetric : Optional[bool]
        Whether ``d(a, b) == d(b, a)`` and ``d(a, a) == 0``. Defaults to
        True for DTW and False for a custom ``distance``. When True and
        ``y`` is None or ``x``, only the upper triangle is computed.
    n_jobs : Optional[int]
        Number of worker threads. None uses every CPU.
    tolerant : bool, default=False
        Record failed pairs as NaN instead of aborting.
    buffers : Optional[DTWBuffers]
        Scratch space reused for every pair. Only used when the pairs run in
        a single chunk.

    Returns
    -------
    np.ndarray
        Matrix of shape (len(x), len(y)), or vector of length len(x) when
        ``pairwise``.
    """
    config = config or DTWConfig()
    X, _ = as_collection(x, "x")
    same = y is None or y is x
    Y = X if same else as_collection(y, "y")[0]
    if X[0].shape[1] != Y[0].shape[1]:
        raise DimensionMismatch("x and y must have the same number of variables",
                                {"x_variables": X[0].shape[1], "y_variables": Y[0].shape[1]})
    if symmetric is None:
        symmetric = distance is None

    if pairwise:
        if len(X) != len(Y):
            raise DimensionMismatch("Pairwise distances require both collections to have the same size",
                                    {"len_x": len(X), "len_y": len(Y)})
        units = [(i, i) for i in range(len(X))]
    elif same and symmetric:
        # condensed order, as expected by squareform
        units = [(i, j) for i in range(len(X)) for j in range(i + 1, len(X))]
    else:
        units = [(i, j) for i in range(len(X)) for j in range(len(Y))]

    max_x = max(s.shape[0] for s in X)
    max_y = max(s.shape[0] for s in Y)

    if buffers is not None:
        buffers.check(max_x, max_y, backtrack=False)
        if effective_n_jobs(n_jobs, len(units)) > 1:
            logger.debug("Pairs run in several chunks, caller buffers not used")
            buffers = None

    def scratch():
        if buffers is not None:
            return buffers
        return DTWBuffers.allocate(max_x, max_y, backtrack=False)

    def worker(pair, chunk_buffers):
        i, j = pair
        if distance is not None:
            return float(distance(X[i], Y[j]))
        return align(X[i], Y[j], config, buffers=chunk_buffers).distance

    results = run_batch(worker, units, n_jobs=n_jobs, tolerant=tolerant, scratch=scratch)
    values = np.array([np.nan if isinstance(r, UnitFailure) else r for r in results], dtype=float)

    failed = failures(results)
    if failed:
        logger.warning("%d of %d distance computations failed", len(failed), len(units))
        if len(failed) == len(units):
            raise WorkerFailure("Every distance computation failed", unit=failed[0].unit,
                                index=failed[0].index) from failed[0].error

    if pairwise:
        return values
    if same and symmetric:
        if len(X) == 1:
            return np.zeros((1, 1))
        return squareform(values, checks=False)
    return values.reshape(len(X), len(Y))
