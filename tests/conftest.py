"""
Shared fixtures for the warpclust test suite.
"""
import numpy as np
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def two_groups():
    """Ten noisy sine waves, five around 0 and five shifted up by 10, with varying lengths."""
    gen = np.random.default_rng(0)
    low, high = [], []
    for i in range(5):
        t = np.linspace(0, 2 * np.pi, 18 + i)
        low.append(np.sin(t) + 0.05 * gen.standard_normal(t.size))
        high.append(np.sin(t) + 10 + 0.05 * gen.standard_normal(t.size))
    return low + high


@pytest.fixture
def random_collection(rng):
    """Six univariate series of different lengths."""
    return [rng.standard_normal(n) for n in (8, 10, 9, 12, 10, 7)]
