"""Tests for DTW Barycenter Averaging."""
from collections import defaultdict

import numpy as np
import pytest

from warpclust import (
    DBAConfig,
    DimensionMismatch,
    DTWBuffers,
    InvalidBuffer,
    InvalidConfiguration,
    WorkerFailure,
    align,
    dba,
    refine_centroid,
)


class TestConvergence:
    """Stopping rules."""

    def test_identical_copies_converge_in_one_iteration(self, rng):
        reference = rng.standard_normal(10)
        result = refine_centroid([reference.copy() for _ in range(5)], seed=3)
        assert result.converged
        assert result.iterations == 1
        np.testing.assert_allclose(result.centroid, reference, atol=1e-3)

    def test_budget_exhausted_is_flagged(self, random_collection):
        far_away = np.full(10, 100.0)
        result = refine_centroid(random_collection, far_away, DBAConfig(max_iter=1))
        assert not result.converged
        assert result.iterations == 1
        assert result.centroid.shape == (10,)

    def test_dba_returns_array(self, random_collection):
        centroid = dba(random_collection, random_collection[0])
        np.testing.assert_array_equal(centroid, refine_centroid(random_collection, random_collection[0]).centroid)


class TestAveraging:
    """The refined value is the mean of the matched observations."""

    def test_one_iteration_is_exact_mean_of_matches(self, random_collection):
        centroid = random_collection[1]
        matched = defaultdict(list)
        for x in random_collection:
            result = align(x, centroid, backtrack=True)
            for i, j in result.path:
                matched[j].append(x[i])
        expected = np.array([np.mean(matched[j]) for j in range(len(centroid))])

        refined = refine_centroid(random_collection, centroid, DBAConfig(max_iter=1)).centroid
        np.testing.assert_allclose(refined, expected, rtol=1e-12, atol=1e-12)

    def test_order_invariance_with_fixed_centroid(self, random_collection, rng):
        centroid = random_collection[2]
        reference = refine_centroid(random_collection, centroid).centroid
        for _ in range(3):
            permuted = [random_collection[i] for i in rng.permutation(len(random_collection))]
            np.testing.assert_array_equal(refine_centroid(permuted, centroid).centroid, reference)

    def test_order_invariance_with_seed(self, random_collection):
        reference = refine_centroid(random_collection, seed=11).centroid
        reversed_result = refine_centroid(random_collection[::-1], seed=11).centroid
        np.testing.assert_array_equal(reversed_result, reference)

    def test_same_seed_same_result(self, random_collection):
        first = refine_centroid(random_collection, seed=5)
        second = refine_centroid(random_collection, seed=5)
        np.testing.assert_array_equal(first.centroid, second.centroid)

    def test_independent_of_n_jobs(self, random_collection):
        serial = refine_centroid(random_collection, random_collection[0], n_jobs=1).centroid
        threaded = refine_centroid(random_collection, random_collection[0], n_jobs=4).centroid
        np.testing.assert_array_equal(serial, threaded)

    def test_centroid_length_is_kept(self, random_collection):
        centroid = np.zeros(15)
        assert refine_centroid(random_collection, centroid).centroid.shape == (15,)


class TestMultivariate:
    """by-variable and by-series versions."""

    @pytest.fixture
    def collection(self, rng):
        return [rng.standard_normal((n, 2)) for n in (9, 11, 10, 8)]

    def test_by_variable_matches_univariate_per_column(self, collection):
        centroid = collection[0]
        result = refine_centroid(collection, centroid, DBAConfig(mv_ver="by-variable")).centroid
        assert result.shape == (9, 2)
        for v in range(2):
            column = refine_centroid([x[:, v] for x in collection], centroid[:, v]).centroid
            np.testing.assert_allclose(result[:, v], column)

    def test_by_series_copies(self, rng):
        reference = rng.standard_normal((12, 3))
        result = refine_centroid([reference] * 4, reference, DBAConfig(mv_ver="by-series"))
        assert result.converged
        np.testing.assert_allclose(result.centroid, reference)

    def test_by_series_shape(self, collection):
        result = refine_centroid(collection, collection[1], DBAConfig(mv_ver="by-series"))
        assert result.centroid.shape == (11, 2)

    def test_dimension_mismatch(self, collection):
        with pytest.raises(DimensionMismatch):
            refine_centroid(collection, np.zeros((9, 3)))

    def test_invalid_mv_ver(self):
        with pytest.raises(InvalidConfiguration):
            DBAConfig(mv_ver="joint")


class TestFailures:
    """Members that cannot be aligned."""

    @pytest.fixture
    def collection(self, rng):
        # the short series cannot reach the end of a length-10 centroid in a zero-width band
        return [rng.standard_normal(10), rng.standard_normal(10), rng.standard_normal(3)]

    def test_fail_fast(self, collection):
        with pytest.raises(WorkerFailure) as excinfo:
            refine_centroid(collection, collection[0], DBAConfig(window_size=0), n_jobs=1)
        assert excinfo.value.unit == 2

    def test_tolerant_excludes_failed_members(self, collection):
        config = DBAConfig(window_size=0)
        tolerant = refine_centroid(collection, collection[0], config, tolerant=True).centroid
        expected = refine_centroid(collection[:2], collection[0], config).centroid
        np.testing.assert_array_equal(tolerant, expected)

    def test_tolerant_nothing_aligned(self, rng):
        short = [rng.standard_normal(3), rng.standard_normal(4)]
        with pytest.raises(WorkerFailure):
            refine_centroid(short, np.zeros(10), DBAConfig(window_size=0), tolerant=True)


class TestBuffers:
    """Caller-supplied scratch space."""

    def test_reused_buffer_gives_same_centroid(self, random_collection):
        centroid = random_collection[1]
        buffers = DTWBuffers(np.full((13, 11), np.nan), np.zeros((13, 11), dtype=np.int8))
        with_buffers = refine_centroid(random_collection, centroid, n_jobs=1, buffers=buffers)
        without = refine_centroid(random_collection, centroid, n_jobs=1)

        np.testing.assert_array_equal(with_buffers.centroid, without.centroid)
        assert with_buffers.iterations == without.iterations
        assert buffers.gcm[0, 0] == 0

    def test_buffer_shared_by_columns(self, rng):
        collection = [rng.standard_normal((n, 2)) for n in (6, 8, 7)]
        buffers = DTWBuffers.allocate(8, 6)
        expected = refine_centroid(collection, collection[0], n_jobs=1).centroid
        np.testing.assert_array_equal(
            refine_centroid(collection, collection[0], n_jobs=1, buffers=buffers).centroid, expected
        )

    def test_undersized_buffer(self, random_collection):
        with pytest.raises(InvalidBuffer, match="Dimension inconsistency in 'gcm'"):
            dba(random_collection, random_collection[1], n_jobs=1, buffers=DTWBuffers.allocate(5, 10))

    def test_missing_direction_matrix(self, random_collection):
        buffers = DTWBuffers(np.empty((13, 11)))
        with pytest.raises(InvalidBuffer, match="direction matrix"):
            dba(random_collection, random_collection[1], n_jobs=1, buffers=buffers)

    def test_several_chunks_allocate_their_own(self, random_collection):
        centroid = random_collection[1]
        buffers = DTWBuffers.allocate(12, 10)
        expected = refine_centroid(random_collection, centroid, n_jobs=1).centroid
        np.testing.assert_array_equal(
            refine_centroid(random_collection, centroid, n_jobs=3, buffers=buffers).centroid, expected
        )
