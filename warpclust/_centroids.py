"""
Centroid update strategies for the clustering loop.

Every strategy is called as ``strategy(series, assignment, centroids)`` where
``series`` are 2-D (time x variables) arrays, ``assignment`` holds the
cluster id of each series and ``centroids`` are the current references. It
returns one new centroid per cluster. The loop guarantees that every cluster
has at least one member when a strategy is called.
"""

from typing import List, Optional

import numpy as np

from ._dba import refine_centroid
from ._distance_dtw import DistanceFn, distance_matrix
from .config import DBAConfig, DTWConfig
from .exceptions import ValidationError


def _members(series: List[np.ndarray], assignment: np.ndarray, cluster_id: int) -> List[np.ndarray]:
    return [series[i] for i in np.flatnonzero(assignment == cluster_id)]


class DBACentroid:
    """
    DTW Barycenter Averaging, started from each cluster's previous centroid.

    Parameters
    ----------
    config : Optional[DBAConfig]
        Options forwarded to :func:`refine_centroid`.
    n_jobs : Optional[int]
        Worker threads for the member alignments.
    tolerant : bool, default=False
        Exclude members that cannot be aligned instead of failing.
    """

    def __init__(self, config: Optional[DBAConfig] = None, n_jobs: Optional[int] = None,
                 tolerant: bool = False):
        self.config = config or DBAConfig()
        self.n_jobs = n_jobs
        self.tolerant = tolerant

    def __call__(self, series, assignment, centroids) -> List[np.ndarray]:
        return [
            refine_centroid(_members(series, assignment, c), centroid, self.config,
                            n_jobs=self.n_jobs, tolerant=self.tolerant).centroid
            for c, centroid in enumerate(centroids)
        ]


class PAMCentroid:
    """
    Medoid of each cluster: the member with the smallest sum of distances to
    the other members. Ties go to the member that comes first.

    Parameters
    ----------
    config : Optional[DTWConfig]
        DTW options for the within-cluster distances.
    distance : Optional[Callable]
        Custom distance replacing DTW.
    n_jobs : Optional[int]
        Worker threads for the distance matrices.
    """

    def __init__(self, config: Optional[DTWConfig] = None, distance: Optional[DistanceFn] = None,
                 n_jobs: Optional[int] = None):
        self.config = config or DTWConfig()
        self.distance = distance
        self.n_jobs = n_jobs

    def __call__(self, series, assignment, centroids) -> List[np.ndarray]:
        new_centroids = []
        for c in range(len(centroids)):
            members = _members(series, assignment, c)
            if len(members) == 1:
                new_centroids.append(members[0].copy())
                continue
            dist_matrix = distance_matrix(members, config=self.config, distance=self.distance,
                                          n_jobs=self.n_jobs)
            row_sum = dist_matrix.sum(axis=0)
            new_centroids.append(members[int(row_sum.argmin())].copy())
        return new_centroids


class MeanCentroid:
    """Element-wise arithmetic mean. All members of a cluster must have the same length."""

    def __call__(self, series, assignment, centroids) -> List[np.ndarray]:
        new_centroids = []
        for c in range(len(centroids)):
            members = _members(series, assignment, c)
            length = members[0].shape[0]
            if any(m.shape[0] != length for m in members):
                raise ValidationError("Mean centroids require series of equal length", {"cluster": c})
            new_centroids.append(np.mean(np.stack(members), axis=0))
        return new_centroids
