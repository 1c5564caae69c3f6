"""
DTW Barycenter Averaging (DBA).

Iteratively refines a reference series so that its total DTW distance to a
collection of series decreases (Petitjean, Ketterlin and Gancarski, 2011,
"A global averaging method for dynamic time warping, with applications to
clustering", Pattern Recognition 44(3)).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ._dtw import DTWBuffers, align
from ._parallel import UnitFailure, effective_n_jobs, run_batch
from ._series import as_collection, as_series, restore_shape
from .config import DBAConfig, DTWConfig
from .exceptions import AlignmentError, DimensionMismatch, WorkerFailure

logger = logging.getLogger(__name__)

Seed = Union[None, int, np.random.Generator]


@dataclass(frozen=True)
class BarycenterResult:
    """
    Attributes
    ----------
    centroid : np.ndarray
        Refined series, 1-D if every input series was 1-D.
    iterations : int
        Number of refinement passes performed.
    converged : bool
        False if ``max_iter`` was reached before the change dropped below ``delta``.
    """

    centroid: np.ndarray
    iterations: int
    converged: bool


def refine_centroid(series: Sequence, centroid=None, config: Optional[DBAConfig] = None,
                    seed: Seed = None, n_jobs: Optional[int] = None,
                    tolerant: bool = False, buffers: Optional[DTWBuffers] = None) -> BarycenterResult:
    """
    Find an average of ``series`` in DTW space.

    Parameters
    ----------
    series : Sequence
        Collection of series (1-D, or time x variables). Lengths may differ.
    centroid : array-like, optional
        Reference series to start from. If None, one member of ``series``
        is drawn with ``seed``.
    config : Optional[DBAConfig]
        Window, norm, iteration budget, tolerance and multivariate version.
    seed : None, int or np.random.Generator
        Source of randomness for the initial choice.
    n_jobs : Optional[int]
        Worker threads used to align the members against the centroid.
    tolerant : bool, default=False
        Exclude members whose alignment fails instead of aborting.
    buffers : Optional[DTWBuffers]
        Scratch space with a direction matrix, reused across iterations.
        Only used when the alignments run in a single chunk.

    Returns
    -------
    BarycenterResult
        The centroid with its iteration count and convergence flag.

    Notes
    -----
    For a given starting centroid the result does not depend on the order of
    ``series``.
    """
    config = config or DBAConfig()
    X, univariate = as_collection(series)

    if centroid is None:
        rng = np.random.default_rng(seed)
        # drawn from a content-based order so the pick does not depend on the order of series
        candidates = sorted(range(len(X)), key=lambda i: (X[i].shape, X[i].tobytes()))
        centroid = X[candidates[int(rng.integers(len(X)))]]
        logger.debug("DBA: random initial centroid of length %d", centroid.shape[0])
    else:
        univariate = univariate and np.ndim(centroid) == 1
    centroid = as_series(centroid, "centroid")
    if centroid.shape[1] != X[0].shape[1]:
        raise DimensionMismatch("centroid must have the same number of variables as the series",
                                {"centroid_variables": centroid.shape[1], "series_variables": X[0].shape[1]})

    if buffers is not None:
        buffers.check(max(x.shape[0] for x in X), centroid.shape[0], backtrack=True)
        if effective_n_jobs(n_jobs, len(X)) > 1:
            logger.debug("DBA: alignments run in several chunks, caller buffers not used")
            buffers = None

    if centroid.shape[1] > 1 and config.mv_ver == "by-variable":
        columns = [
            _refine(
                [np.ascontiguousarray(x[:, [v]]) for x in X],
                np.ascontiguousarray(centroid[:, [v]]),
                config, n_jobs, tolerant, buffers,
            )
            for v in range(centroid.shape[1])
        ]
        new_centroid = np.hstack([c for c, _, _ in columns])
        iterations = max(it for _, it, _ in columns)
        converged = all(conv for _, _, conv in columns)
    else:
        new_centroid, iterations, converged = _refine(X, centroid, config, n_jobs, tolerant, buffers)

    return BarycenterResult(restore_shape(new_centroid, univariate), iterations, converged)


def dba(series: Sequence, centroid=None, config: Optional[DBAConfig] = None, seed: Seed = None,
        n_jobs: Optional[int] = None, tolerant: bool = False,
        buffers: Optional[DTWBuffers] = None) -> np.ndarray:
    """Same as :func:`refine_centroid` but only returns the centroid."""
    return refine_centroid(series, centroid, config, seed=seed, n_jobs=n_jobs, tolerant=tolerant,
                           buffers=buffers).centroid


def _refine(X: List[np.ndarray], centroid: np.ndarray, config: DBAConfig,
            n_jobs: Optional[int], tolerant: bool,
            buffers: Optional[DTWBuffers] = None) -> Tuple[np.ndarray, int, bool]:
    dtw_config = config.dtw_config()
    max_len = max(x.shape[0] for x in X)

    iteration = 0
    while iteration < config.max_iter:
        iteration += 1
        reference = centroid

        def scratch():
            if buffers is not None:
                return buffers
            return DTWBuffers.allocate(max_len, reference.shape[0], backtrack=True)

        def contribution(i, chunk_buffers):
            return _contribution(X[i], reference, dtw_config, chunk_buffers)

        results = run_batch(contribution, range(len(X)), n_jobs=n_jobs, tolerant=tolerant, scratch=scratch)
        centroid = _average([r for r in results if not isinstance(r, UnitFailure)], len(X))

        if np.all(np.abs(centroid - reference) < config.delta):
            logger.debug("DBA iteration %d - converged", iteration)
            return centroid, iteration, True
        logger.debug("DBA iteration %d", iteration)

    logger.debug("DBA did not converge after %d iterations", iteration)
    return centroid, iteration, False


def _contribution(x: np.ndarray, centroid: np.ndarray, config: DTWConfig,
                  buffers: DTWBuffers) -> Tuple[np.ndarray, np.ndarray]:
    """Sum and count of the observations of ``x`` matched to each centroid index."""
    result = align(x, centroid, config, backtrack=True, buffers=buffers)
    if result.index1 is None:
        raise AlignmentError("No admissible warping path between series and centroid",
                             {"series_length": x.shape[0], "centroid_length": centroid.shape[0],
                              "window_size": config.window_size})
    sums = np.zeros_like(centroid)
    counts = np.zeros(centroid.shape[0], dtype=np.int64)
    np.add.at(sums, result.index2, x[result.index1])
    np.add.at(counts, result.index2, 1)
    return sums, counts


def _average(contributions: List[Tuple[np.ndarray, np.ndarray]], n_members: int) -> np.ndarray:
    if not contributions:
        raise WorkerFailure("No series could be aligned against the centroid", context={"members": n_members})
    sums = np.stack([s for s, _ in contributions])
    # sorted over members so the sum only depends on the multiset of contributions
    total = np.sort(sums, axis=0).sum(axis=0)
    counts = np.sum([c for _, c in contributions], axis=0)
    return total / counts[:, np.newaxis]
