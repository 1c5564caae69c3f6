"""
Configuration objects shared by the DTW kernel, the distance matrix builder
and the barycenter averaging engine.
"""

from dataclasses import dataclass, replace
from typing import Optional

from .exceptions import InvalidConfiguration, InvalidStepPattern

NORMS = ("L1", "L2")
STEP_PATTERNS = ("symmetric1", "symmetric2")
MV_VERSIONS = ("by-variable", "by-series")


def _check_window(window_size: Optional[int]) -> Optional[int]:
    if window_size is None:
        return None
    if isinstance(window_size, bool) or int(window_size) != window_size:
        raise InvalidConfiguration("window_size must be an integer or None", {"window_size": window_size})
    if window_size < 0:
        raise InvalidConfiguration("window_size must be non-negative", {"window_size": window_size})
    return int(window_size)


def _check_norm(norm: str) -> str:
    if norm not in NORMS:
        raise InvalidConfiguration(f"norm must be one of {NORMS}", {"norm": norm})
    return norm


@dataclass(frozen=True)
class DTWConfig:
    """
    Options of the DTW kernel.

    Parameters
    ----------
    window_size : Optional[int], default=None
        Radius of the slanted band around the diagonal. None means no constraint.
    norm : str, default='L1'
        ``L1`` sums absolute differences across variables, ``L2`` uses the
        Euclidean distance between observation vectors.
    step_pattern : str, default='symmetric2'
        ``symmetric1`` weights every step by the local cost, ``symmetric2``
        doubles the weight of diagonal steps.
    normalize : bool, default=False
        Divide the distance by ``len(x) + len(y)``. Only meaningful for
        ``symmetric2``.
    """

    window_size: Optional[int] = None
    norm: str = "L1"
    step_pattern: str = "symmetric2"
    normalize: bool = False

    def __post_init__(self):
        object.__setattr__(self, "window_size", _check_window(self.window_size))
        _check_norm(self.norm)
        if self.step_pattern not in STEP_PATTERNS:
            raise InvalidStepPattern(f"step_pattern must be one of {STEP_PATTERNS}",
                                     {"step_pattern": self.step_pattern})

    def with_options(self, **changes) -> "DTWConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class DBAConfig:
    """
    Options of DTW Barycenter Averaging.

    Parameters
    ----------
    window_size : Optional[int], default=None
        Window for the alignments against the centroid.
    norm : str, default='L1'
        Local cost norm for the alignments.
    max_iter : int, default=20
        Maximum number of refinement passes.
    delta : float, default=1e-3
        Convergence is declared when every element of the centroid moved
        less than ``delta`` in one pass.
    mv_ver : str, default='by-variable'
        ``by-variable`` refines each variable on its own, ``by-series``
        aligns all variables jointly.
    """

    window_size: Optional[int] = None
    norm: str = "L1"
    max_iter: int = 20
    delta: float = 1e-3
    mv_ver: str = "by-variable"

    def __post_init__(self):
        object.__setattr__(self, "window_size", _check_window(self.window_size))
        _check_norm(self.norm)
        if int(self.max_iter) != self.max_iter or self.max_iter < 1:
            raise InvalidConfiguration("max_iter must be a positive integer", {"max_iter": self.max_iter})
        if not self.delta > 0:
            raise InvalidConfiguration("delta must be positive", {"delta": self.delta})
        if self.mv_ver not in MV_VERSIONS:
            raise InvalidConfiguration(f"mv_ver must be one of {MV_VERSIONS}", {"mv_ver": self.mv_ver})

    def dtw_config(self) -> DTWConfig:
        """Kernel options used for the backtracked alignments."""
        return DTWConfig(window_size=self.window_size, norm=self.norm)
