from __future__ import annotations

import logging

import numpy as np

from warpclust import DBAConfig, DTWConfig, TimeSeriesKMeans, cluster, distance_matrix, dtw_family, refine_centroid


def _shifted_bumps(rng: np.random.Generator, n: int, peak: float) -> list[np.ndarray]:
    """Gaussian bumps whose peak position and length vary from series to series."""
    data = []
    for _ in range(n):
        size = int(rng.integers(40, 60))
        t = np.linspace(0.0, 1.0, size)
        centre = peak + rng.normal(0.0, 0.08)
        data.append(np.exp(-((t - centre) ** 2) / 0.005) + rng.normal(0.0, 0.03, size))
    return data


def demo() -> None:
    logging.basicConfig(level=logging.INFO)
    rng = np.random.default_rng(7)

    early = _shifted_bumps(rng, 8, peak=0.3)
    late = _shifted_bumps(rng, 8, peak=0.7)
    X = early + late

    # DBA keeps the bump sharp where a point-wise mean of shifted bumps would smear it
    barycenter = refine_centroid(early, config=DBAConfig(window_size=15), seed=0)
    print("DBA barycenter of the early group:")
    print("  length", barycenter.centroid.shape[0], "iterations", barycenter.iterations,
          "converged", barycenter.converged, "peak height %.2f" % barycenter.centroid.max())

    # medoids: every centroid is one of the input series
    result = cluster(X, 2, family=dtw_family(window_size=15, centroid="pam"), seed=0)
    medoids = [next(i for i, x in enumerate(X) if x.shape == c.shape and np.array_equal(x, c))
               for c in result.centroids]
    print("PAM clustering:", result.state.value, "after", result.iterations, "iteration(s)")
    print("  assignment", result.assignment.tolist())
    print("  medoid series", medoids)
    print("  mean distance to own medoid %.3f" % result.cldist.mean())

    model = TimeSeriesKMeans(n_clusters=2, window_size=15, random_state=0).fit(X)
    print("DBA k-means labels:", model.labels_)

    within = distance_matrix(early, config=DTWConfig(window_size=15))
    print("Largest DTW distance inside the early group: %.3f" % within.max())


if __name__ == "__main__":
    demo()
