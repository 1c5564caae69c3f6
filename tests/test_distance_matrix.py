"""Tests for distance matrices over collections."""
import numpy as np
import pytest

from warpclust import (
    DimensionMismatch,
    DTWBuffers,
    DTWConfig,
    InvalidBuffer,
    WorkerFailure,
    align,
    distance_matrix,
)


class TestShapes:
    """Self, cross and pairwise layouts."""

    def test_self_matrix(self, random_collection):
        D = distance_matrix(random_collection)
        n = len(random_collection)
        assert D.shape == (n, n)
        assert np.all(np.diag(D) == 0)
        np.testing.assert_allclose(D, D.T)
        assert D[1, 3] == pytest.approx(align(random_collection[1], random_collection[3]).distance)

    def test_cross_matrix(self, random_collection):
        x, y = random_collection[:2], random_collection[2:]
        D = distance_matrix(x, y, DTWConfig(norm="L2"))
        assert D.shape == (2, 4)
        for i in range(2):
            for j in range(4):
                assert D[i, j] == align(x[i], y[j], DTWConfig(norm="L2")).distance

    def test_single_pair_matches_align(self, rng):
        x = rng.standard_normal(11)
        y = rng.standard_normal(7)
        config = DTWConfig(window_size=3, step_pattern="symmetric1")
        assert distance_matrix([x], [y], config)[0, 0] == align(x, y, config).distance

    def test_pairwise(self, random_collection):
        x, y = random_collection[:3], random_collection[3:]
        d = distance_matrix(x, y, pairwise=True)
        assert d.shape == (3,)
        for i in range(3):
            assert d[i] == align(x[i], y[i]).distance

    def test_pairwise_requires_equal_sizes(self, random_collection):
        with pytest.raises(DimensionMismatch):
            distance_matrix(random_collection[:2], random_collection[2:], pairwise=True)

    def test_matrix_input_is_one_series_per_row(self, rng):
        X = rng.standard_normal((4, 10))
        D = distance_matrix(X)
        assert D.shape == (4, 4)
        assert D[0, 2] == align(X[0], X[2]).distance

    def test_single_series(self, rng):
        assert distance_matrix([rng.standard_normal(5)]).shape == (1, 1)


class TestScheduling:
    """Results do not depend on how work is split."""

    def test_same_result_for_any_n_jobs(self, random_collection):
        serial = distance_matrix(random_collection, n_jobs=1)
        for n_jobs in (2, 3, 16):
            np.testing.assert_array_equal(distance_matrix(random_collection, n_jobs=n_jobs), serial)

    def test_cross_matrix_any_n_jobs(self, random_collection):
        serial = distance_matrix(random_collection, random_collection[:3], n_jobs=1)
        np.testing.assert_array_equal(distance_matrix(random_collection, random_collection[:3], n_jobs=4), serial)


class TestCustomDistance:
    """Injected distance functions."""

    def test_custom_distance_full_matrix(self, random_collection):
        calls = []

        def length_gap(a, b):
            calls.append((a.shape[0], b.shape[0]))
            return float(a.shape[0] - b.shape[0])

        D = distance_matrix(random_collection, distance=length_gap, n_jobs=1)
        n = len(random_collection)
        assert len(calls) == n * n
        assert D[0, 1] == -D[1, 0] == 8 - 10

    def test_symmetric_custom_distance_upper_triangle(self, random_collection):
        calls = []

        def gap(a, b):
            calls.append(1)
            return float(abs(a.shape[0] - b.shape[0]))

        D = distance_matrix(random_collection, distance=gap, symmetric=True)
        n = len(random_collection)
        assert len(calls) == n * (n - 1) // 2
        np.testing.assert_array_equal(D, D.T)

    def test_same_collection_twice_uses_upper_triangle(self, random_collection):
        calls = []

        def gap(a, b):
            calls.append(1)
            return float(abs(a.shape[0] - b.shape[0]))

        D = distance_matrix(random_collection, random_collection, distance=gap, symmetric=True)
        n = len(random_collection)
        assert len(calls) == n * (n - 1) // 2
        np.testing.assert_array_equal(D, distance_matrix(random_collection, distance=gap, symmetric=True))


class TestFailures:
    """Fail-fast and tolerant modes."""

    @staticmethod
    def _failing_on(bad_length):
        def distance(a, b):
            if a.shape[0] == bad_length or b.shape[0] == bad_length:
                raise RuntimeError("boom")
            return 1.0
        return distance

    def test_fail_fast(self, random_collection):
        with pytest.raises(WorkerFailure) as excinfo:
            distance_matrix(random_collection, distance=self._failing_on(12), n_jobs=1)
        assert excinfo.value.unit == (0, 3)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_tolerant_marks_failures(self, random_collection):
        D = distance_matrix(random_collection, distance=self._failing_on(12), tolerant=True)
        assert np.all(np.isnan(D[3, :]))
        assert np.all(np.isnan(D[:, 3]))
        assert D[0, 1] == 1.0

    def test_tolerant_all_failed(self, random_collection):
        def always_fails(a, b):
            raise RuntimeError("boom")

        with pytest.raises(WorkerFailure):
            distance_matrix(random_collection, distance=always_fails, tolerant=True)

    def test_dimension_mismatch_before_scheduling(self, rng):
        calls = []

        def distance(a, b):
            calls.append(1)
            return 0.0

        with pytest.raises(DimensionMismatch):
            distance_matrix([rng.standard_normal((5, 2))], [rng.standard_normal(5)], distance=distance)
        assert calls == []

    def test_mixed_variable_counts(self, rng):
        with pytest.raises(DimensionMismatch):
            distance_matrix([rng.standard_normal((5, 2)), rng.standard_normal(5)])


class TestBuffers:
    """Caller-supplied scratch space."""

    def test_reused_buffer(self, random_collection):
        buffers = DTWBuffers(np.full((13, 13), np.nan))
        D = distance_matrix(random_collection, n_jobs=1, buffers=buffers)
        np.testing.assert_array_equal(D, distance_matrix(random_collection, n_jobs=1))
        assert buffers.gcm[0, 0] == 0

    def test_cross_matrix_buffer_fits_both_collections(self, random_collection):
        x, y = random_collection[:2], random_collection[2:]
        D = distance_matrix(x, y, n_jobs=1, buffers=DTWBuffers.allocate(10, 12, backtrack=False))
        np.testing.assert_array_equal(D, distance_matrix(x, y, n_jobs=1))

    def test_undersized_buffer(self, random_collection):
        with pytest.raises(InvalidBuffer, match="Dimension inconsistency in 'gcm'"):
            distance_matrix(random_collection, n_jobs=1, buffers=DTWBuffers.allocate(12, 4, backtrack=False))

    def test_wrong_dtype(self, random_collection):
        buffers = DTWBuffers(np.zeros((13, 13), dtype=np.float32))
        with pytest.raises(InvalidBuffer, match="dtype"):
            distance_matrix(random_collection, buffers=buffers)
