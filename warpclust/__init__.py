"""
Top-level for the warpclust package.

This package clusters collections of time series under Dynamic Time Warping.
End users should use the main functions: align, distance_matrix,
refine_centroid / dba and cluster, or the TimeSeriesKMeans estimator.
"""

import logging

from ._dtw import AlignmentResult, DTWBuffers, align
from ._distance_dtw import distance_matrix
from ._dba import BarycenterResult, dba, refine_centroid
from ._centroids import DBACentroid, MeanCentroid, PAMCentroid
from ._parallel import UnitFailure
from .clusterer import (
    CentroidShift,
    ClusterResult,
    ClusterState,
    Family,
    assignment_unchanged,
    cluster,
    dtw_family,
    nearest_centroid,
    read_time_series,
)
from .config import DBAConfig, DTWConfig
from .exceptions import (
    AlignmentError,
    DimensionMismatch,
    EmptyClusterError,
    InvalidBuffer,
    InvalidConfiguration,
    InvalidStepPattern,
    NonConvergenceWarning,
    ValidationError,
    WarpclustError,
    WorkerFailure,
)
from .kmeans import TimeSeriesKMeans

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "align",
    "AlignmentResult",
    "DTWBuffers",
    "distance_matrix",
    "refine_centroid",
    "dba",
    "BarycenterResult",
    "DBACentroid",
    "PAMCentroid",
    "MeanCentroid",
    "UnitFailure",
    "cluster",
    "ClusterResult",
    "ClusterState",
    "Family",
    "dtw_family",
    "nearest_centroid",
    "assignment_unchanged",
    "CentroidShift",
    "read_time_series",
    "DTWConfig",
    "DBAConfig",
    "TimeSeriesKMeans",
    "WarpclustError",
    "ValidationError",
    "DimensionMismatch",
    "InvalidConfiguration",
    "InvalidStepPattern",
    "InvalidBuffer",
    "AlignmentError",
    "EmptyClusterError",
    "WorkerFailure",
    "NonConvergenceWarning",
]

__version__ = "0.1.0"
