"""
Per-series transformations applied before clustering.

Both functions work column-wise on 2-D (time x variables) input and return a
new array.
"""

import numpy as np


def minmax(x) -> np.ndarray:
    """
    Scale each variable to [0, 1] such that
    y_i = (x_i - min(x)) / (max(x) - min(x))

    Constant variables become 0.
    """
    x = np.asarray(x, dtype=float)
    low = np.min(x, axis=0)
    span = np.max(x, axis=0) - low
    return (x - low) / np.where(span == 0, 1, span)


def zscore(x) -> np.ndarray:
    """
    Standardize each variable such that
    y_i = (x_i - mean(x)) / std(x)

    Variables with zero standard deviation are only centred.
    """
    x = np.asarray(x, dtype=float)
    std = np.std(x, axis=0)
    return (x - np.mean(x, axis=0)) / np.where(std == 0, 1, std)
