"""
Partitional clustering of time series.

This module provides the iterative assign/update loop, the ``Family`` object
that bundles the distance, centroid, allocation and preprocessing functions
the loop uses, and a reader for time series stored in .csv or .xlsx files.
"""

import logging
import os
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ._centroids import DBACentroid, MeanCentroid, PAMCentroid
from ._dba import Seed
from ._distance_dtw import DistanceFn, distance_matrix
from ._series import as_collection, as_series, restore_shape
from .config import DBAConfig, DTWConfig
from .exceptions import DimensionMismatch, EmptyClusterError, InvalidConfiguration, NonConvergenceWarning

logger = logging.getLogger(__name__)

CentroidFn = Callable[[List[np.ndarray], np.ndarray, List[np.ndarray]], List[np.ndarray]]
ConvergenceFn = Callable[[Optional[np.ndarray], np.ndarray, List[np.ndarray], List[np.ndarray]], bool]

EMPTY_CLUSTER_POLICIES = ("reseed", "error")


class ClusterState(Enum):
    """Phases of the clustering loop. A finished run is either CONVERGED or MAX_ITER_REACHED."""

    INITIALIZING = "initializing"
    ASSIGNING = "assigning"
    UPDATING = "updating"
    CONVERGED = "converged"
    MAX_ITER_REACHED = "max_iter_reached"


def nearest_centroid(distmat: np.ndarray) -> np.ndarray:
    """Index of the closest centroid for every row of ``distmat``; ties go to the lowest index."""
    return np.argmin(distmat, axis=1)


def assignment_unchanged(old_assignment: Optional[np.ndarray], new_assignment: np.ndarray,
                         old_centroids: List[np.ndarray], new_centroids: List[np.ndarray]) -> bool:
    """Converged when no series changed cluster."""
    return old_assignment is not None and np.array_equal(old_assignment, new_assignment)


class CentroidShift:
    """
    Converged when every element of every centroid moved less than ``tol``.

    Centroids whose length changed are never considered converged.
    """

    def __init__(self, tol: float = 1e-3):
        if not tol > 0:
            raise InvalidConfiguration("tol must be positive", {"tol": tol})
        self.tol = tol

    def __call__(self, old_assignment, new_assignment, old_centroids, new_centroids) -> bool:
        return all(
            old.shape == new.shape and bool(np.all(np.abs(new - old) < self.tol))
            for old, new in zip(old_centroids, new_centroids)
        )


@dataclass
class Family:
    """
    Functions used by :func:`cluster`.

    Attributes
    ----------
    dtw : DTWConfig
        Kernel options for the series-to-centroid distances.
    centroid : Callable
        Update strategy, called as ``centroid(series, assignment, centroids)``.
    distance : Optional[Callable]
        Custom distance ``(x, y) -> float`` used instead of DTW.
    allocate : Callable
        Maps the series-to-centroid distance matrix to an assignment.
    preproc : Optional[Callable]
        Applied to each series before clustering.
    """

    dtw: DTWConfig = field(default_factory=DTWConfig)
    centroid: CentroidFn = field(default_factory=DBACentroid)
    distance: Optional[DistanceFn] = None
    allocate: Callable[[np.ndarray], np.ndarray] = nearest_centroid
    preproc: Optional[Callable[[np.ndarray], np.ndarray]] = None

    def distmat(self, series, centroids, n_jobs: Optional[int] = None) -> np.ndarray:
        return distance_matrix(series, centroids, config=self.dtw, distance=self.distance, n_jobs=n_jobs)


def dtw_family(window_size: Optional[int] = None, norm: str = "L1", step_pattern: str = "symmetric2",
               centroid: Union[str, CentroidFn] = "dba", distance: Optional[DistanceFn] = None,
               preproc: Optional[Callable] = None, dba_max_iter: int = 20, dba_delta: float = 1e-3,
               mv_ver: str = "by-variable", n_jobs: Optional[int] = None) -> Family:
    """
    Build a ``Family`` whose distance and centroid functions share one set of DTW options.

    Parameters
    ----------
    window_size, norm, step_pattern
        DTW options, see :class:`DTWConfig`.
    centroid : str or Callable, default='dba'
        ``dba``, ``pam`` (medoids), ``mean`` or a custom strategy.
    distance : Optional[Callable]
        Custom distance replacing DTW.
    preproc : Optional[Callable]
        Per-series transformation, e.g. :func:`warpclust.preprocessing.zscore`.
    dba_max_iter, dba_delta, mv_ver
        Options of the ``dba`` strategy, see :class:`DBAConfig`.
    n_jobs : Optional[int]
        Worker threads used inside the centroid strategy.
    """
    dtw = DTWConfig(window_size=window_size, norm=norm, step_pattern=step_pattern)
    if centroid == "dba":
        strategy = DBACentroid(DBAConfig(window_size=window_size, norm=norm, max_iter=dba_max_iter,
                                         delta=dba_delta, mv_ver=mv_ver), n_jobs=n_jobs)
    elif centroid == "pam":
        strategy = PAMCentroid(dtw, distance=distance, n_jobs=n_jobs)
    elif centroid == "mean":
        strategy = MeanCentroid()
    elif callable(centroid):
        strategy = centroid
    else:
        raise InvalidConfiguration("centroid must be 'dba', 'pam', 'mean' or a callable", {"centroid": centroid})
    return Family(dtw=dtw, centroid=strategy, distance=distance, preproc=preproc)


@dataclass
class ClusterResult:
    """
    Outcome of :func:`cluster`.

    Attributes
    ----------
    assignment : np.ndarray
        Cluster id in [0, k) for every series.
    centroids : List[np.ndarray]
        One centroid per cluster.
    iterations : int
        Number of assign/update passes performed.
    converged : bool
        Whether the convergence test passed before the iteration budget ran out.
    state : ClusterState
        ``CONVERGED`` or ``MAX_ITER_REACHED``.
    distmat : np.ndarray
        Distances between every series and every returned centroid.
    cldist : np.ndarray
        Distance between every series and the centroid of its cluster.
    reseeded : List[Tuple[int, int, int]]
        ``(iteration, cluster_id, series_index)`` for every empty cluster
        that was reseeded.
    """

    assignment: np.ndarray
    centroids: List[np.ndarray]
    iterations: int
    converged: bool
    state: ClusterState
    distmat: np.ndarray
    cldist: np.ndarray
    reseeded: List[Tuple[int, int, int]] = field(default_factory=list)


def cluster(series: Sequence, k: int, family: Optional[Family] = None, centroids: Optional[Sequence] = None,
            max_iter: int = 100, convergence: Optional[ConvergenceFn] = None, empty_cluster: str = "reseed",
            seed: Seed = None, n_jobs: Optional[int] = None) -> ClusterResult:
    """
    Partition ``series`` into ``k`` clusters.

    Each iteration assigns every series to its nearest centroid and then
    recomputes the centroids from their members, until ``convergence``
    passes or ``max_iter`` iterations were run.

    Parameters
    ----------
    series : Sequence
        Collection of series (1-D, or time x variables). Not modified.
    k : int
        Number of clusters.
    family : Optional[Family]
        Distance, centroid, allocation and preprocessing functions. Defaults
        to ``dtw_family()`` (unconstrained DTW with DBA centroids).
    centroids : Optional[Sequence]
        Initial centroids. If None, ``k`` distinct series are drawn with ``seed``.
    max_iter : int, default=100
        Iteration budget.
    convergence : Optional[Callable]
        Test called as ``convergence(old_assignment, new_assignment,
        old_centroids, new_centroids)``. Defaults to :func:`assignment_unchanged`.
    empty_cluster : str, default='reseed'
        ``reseed`` moves the series farthest from its own centroid into an
        empty cluster; ``error`` raises ``EmptyClusterError``.
    seed : None, int or np.random.Generator
        Randomness for the initial centroids.
    n_jobs : Optional[int]
        Worker threads for the distance matrices.

    Returns
    -------
    ClusterResult
    """
    family = family or dtw_family()
    convergence = convergence or assignment_unchanged
    X, univariate = as_collection(series)

    if isinstance(k, bool) or int(k) != k or k < 1:
        raise InvalidConfiguration("k must be a positive integer", {"k": k})
    if k > len(X):
        raise InvalidConfiguration("k must be <= number of series", {"k": k, "n_series": len(X)})
    if isinstance(max_iter, bool) or int(max_iter) != max_iter or max_iter < 1:
        raise InvalidConfiguration("max_iter must be a positive integer", {"max_iter": max_iter})
    if empty_cluster not in EMPTY_CLUSTER_POLICIES:
        raise InvalidConfiguration(f"empty_cluster must be one of {EMPTY_CLUSTER_POLICIES}",
                                   {"empty_cluster": empty_cluster})
    k = int(k)

    if family.preproc is not None:
        X = [as_series(family.preproc(x.copy()), f"series[{i}]") for i, x in enumerate(X)]

    if centroids is None:
        rng = np.random.default_rng(seed)
        current = [X[i].copy() for i in rng.choice(len(X), size=k, replace=False)]
    else:
        current, _ = as_collection(centroids, "centroids")
        current = [c.copy() for c in current]
        if len(current) != k:
            raise InvalidConfiguration("Number of initial centroids must equal k",
                                       {"k": k, "centroids": len(current)})
        if current[0].shape[1] != X[0].shape[1]:
            raise DimensionMismatch("Centroids must have the same number of variables as the series",
                                    {"centroid_variables": current[0].shape[1], "series_variables": X[0].shape[1]})

    assignment = None
    reseeded: List[Tuple[int, int, int]] = []
    converged = False
    iteration = 0

    while iteration < max_iter:
        iteration += 1
        distmat = family.distmat(X, current, n_jobs=n_jobs)
        new_assignment = np.asarray(family.allocate(distmat), dtype=int).copy()

        empty = [c for c in range(k) if not np.any(new_assignment == c)]
        if empty:
            if empty_cluster == "error":
                raise EmptyClusterError(f"{len(empty)} cluster(s) have no members", empty,
                                        {"iteration": iteration})
            for c, i in _reseed_empty(new_assignment, distmat, empty, k):
                logger.warning("Iteration %d: cluster %d was empty, reseeded with series %d", iteration, c, i)
                current[c] = X[i].copy()
                reseeded.append((iteration, c, i))

        new_centroids = [np.asarray(c, dtype=float) for c in family.centroid(X, new_assignment, current)]
        converged = bool(convergence(assignment, new_assignment, current, new_centroids))

        if assignment is None:
            changes = len(X)
        else:
            changes = int(np.sum(assignment != new_assignment))
        logger.debug("Iteration %d: %d series changed cluster", iteration, changes)

        assignment, current = new_assignment, new_centroids
        if converged:
            break

    if converged:
        state = ClusterState.CONVERGED
        logger.info("Clustering converged after %d iteration(s)", iteration)
    else:
        state = ClusterState.MAX_ITER_REACHED
        logger.info("Clustering stopped after %d iteration(s) without converging", iteration)
        warnings.warn(f"Clustering did not converge within {max_iter} iterations.",
                      NonConvergenceWarning, stacklevel=2)

    distmat = family.distmat(X, current, n_jobs=n_jobs)
    cldist = distmat[np.arange(len(X)), assignment]

    return ClusterResult(
        assignment=assignment,
        centroids=[restore_shape(c, univariate) for c in current],
        iterations=iteration,
        converged=converged,
        state=state,
        distmat=distmat,
        cldist=cldist,
        reseeded=reseeded,
    )


def _reseed_empty(assignment: np.ndarray, distmat: np.ndarray, empty: List[int],
                  k: int) -> List[Tuple[int, int]]:
    """
    Move one series into every empty cluster, modifying ``assignment`` in place.

    The series farthest from its own centroid is taken first (ties go to the
    lowest index), skipping series that are alone in their cluster.
    """
    own = distmat[np.arange(len(assignment)), assignment]
    order = sorted(range(len(assignment)), key=lambda i: (-own[i], i))
    moves = []
    for c in empty:
        sizes = np.bincount(assignment, minlength=k)
        donor = next((i for i in order if sizes[assignment[i]] > 1), None)
        if donor is None:
            raise EmptyClusterError("Unable to reseed empty cluster", [c])
        assignment[donor] = c
        moves.append((c, donor))
    return moves


def read_time_series(file_path: str) -> Tuple[List[str], List[np.ndarray]]:
    """
    Import time series data from .xlsx or .csv files.

    **For Excel files (.xlsx):** sheet 'data'.

    **For both formats:**

    Column A: Labels/names for each time series (e.g., "Run 1", "Scenario A")

    Column B onwards: Time series data values. Rows may end early; trailing
    empty cells are dropped, so series can have different lengths.

    +---------+---------+---------+---------+-----+
    | Label   | Time 1  | Time 2  | Time 3  | ... |
    +=========+=========+=========+=========+=====+
    | Run 1   | 10.5    | 12.3    | 15.7    | ... |
    +---------+---------+---------+---------+-----+
    | Run 2   | 11.2    | 13.1    |         |     |
    +---------+---------+---------+---------+-----+

    Parameters
    ----------
    ``file_path`` : str
        Path to the .xlsx or .csv file (can be relative or absolute path).

    Returns
    -------
    Tuple[List[str], List[np.ndarray]]
        Labels and 1-D series, in file order.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Could not find file: {file_path}")

    file_extension = os.path.splitext(file_path)[1].lower()

    if file_extension not in ['.xlsx', '.csv']:
        raise ValueError("File must have .xlsx or .csv extension")

    if file_extension == '.xlsx':
        df_data = pd.read_excel(file_path, sheet_name='data')
    else:
        df_data = pd.read_csv(file_path)

    labels = [str(label) for label in df_data.iloc[:, 0]]
    values = df_data.iloc[:, 1:].to_numpy(dtype=float)

    data_arrays = []
    for label, row in zip(labels, values):
        observed = np.flatnonzero(~np.isnan(row))
        if observed.size == 0:
            raise ValueError(f"Series '{label}' has no values")
        data_arrays.append(row[:observed[-1] + 1])
    return labels, data_arrays
