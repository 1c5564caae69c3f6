from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ._distance_dtw import distance_matrix
from .clusterer import ClusterResult, cluster, dtw_family
from .config import DTWConfig


@dataclass
class TimeSeriesKMeans:
    """K-Means style clustering for time series under DTW.

    Thin estimator wrapper around :func:`warpclust.cluster`. Series may be
    multivariate and may have different lengths.

    Parameters
    ----------
    n_clusters : int
        Number of clusters.
    max_iter : int, optional
        Maximum number of iterations. Default is 100.
    centroid : str, optional
        Centroid strategy: ``"dba"`` (default), ``"pam"`` or ``"mean"``.
    window_size : Optional[int], optional
        DTW window radius. None means unconstrained.
    norm : str, optional
        ``"L1"`` (default) or ``"L2"``.
    empty_cluster : str, optional
        ``"reseed"`` (default) or ``"error"``.
    random_state : Optional[int], optional
        Random seed for reproducibility.
    n_jobs : Optional[int], optional
        Worker threads. None uses every CPU.

    Notes
    -----
    - Input format `X` is a list of time series, each a sequence of floats
      or a (time x variables) array.
    - Convergence is reached when no series changes cluster.
    """

    n_clusters: int
    max_iter: int = 100
    centroid: str = "dba"
    window_size: Optional[int] = None
    norm: str = "L1"
    empty_cluster: str = "reseed"
    random_state: Optional[int] = None
    n_jobs: Optional[int] = None

    centroids_: Optional[list] = None
    labels_: Optional[list[int]] = None
    n_iter_: Optional[int] = None
    converged_: Optional[bool] = None

    def fit(self, X) -> "TimeSeriesKMeans":
        """Fit the model on a dataset of time series.

        Parameters
        ----------
        X : list
            Dataset of n_series time series.

        Returns
        -------
        TimeSeriesKMeans
            The fitted estimator.
        """
        family = dtw_family(window_size=self.window_size, norm=self.norm,
                            centroid=self.centroid, n_jobs=self.n_jobs)
        result: ClusterResult = cluster(X, self.n_clusters, family=family, max_iter=self.max_iter,
                                        empty_cluster=self.empty_cluster, seed=self.random_state,
                                        n_jobs=self.n_jobs)
        self.centroids_ = result.centroids
        self.labels_ = result.assignment.tolist()
        self.n_iter_ = result.iterations
        self.converged_ = result.converged
        return self

    def predict(self, X) -> list[int]:
        """Assign each series in `X` to the nearest learned centroid.

        Parameters
        ----------
        X : list
            Dataset of time series.

        Returns
        -------
        list[int]
            Cluster label for each input series.
        """
        if self.centroids_ is None:
            raise RuntimeError("Model is not fitted. Call fit(X) first.")
        config = DTWConfig(window_size=self.window_size, norm=self.norm)
        distances = distance_matrix(X, self.centroids_, config=config, n_jobs=self.n_jobs)
        return np.argmin(distances, axis=1).tolist()

    def fit_predict(self, X) -> list[int]:
        """Fit the model to `X` and return the cluster labels."""
        return self.fit(X).labels_  # type: ignore[return-value]
