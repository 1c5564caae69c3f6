"""
Chunked execution of independent work units.

Units are split into contiguous chunks, one per worker. Each chunk builds its
own scratch state, so buffers are never shared between threads. Results are
put back by unit position, never by completion order.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

import numpy as np
from joblib import Parallel, cpu_count, delayed

from .exceptions import InvalidConfiguration, WorkerFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitFailure:
    """Marker left in place of a result when a unit fails in tolerant mode."""

    index: int
    unit: Any
    error: BaseException


def effective_n_jobs(n_jobs: Optional[int], n_units: int) -> int:
    """
    Number of workers to use for ``n_units`` units.

    ``None`` and ``-1`` use every available CPU.
    """
    if n_jobs is None or n_jobs == -1:
        n_jobs = cpu_count()
    elif int(n_jobs) != n_jobs or n_jobs < 1:
        raise InvalidConfiguration("n_jobs must be a positive integer, -1 or None", {"n_jobs": n_jobs})
    return max(1, min(int(n_jobs), n_units))


def run_batch(worker: Callable[[Any, Any], Any], units: Sequence, n_jobs: Optional[int] = None,
              tolerant: bool = False, scratch: Optional[Callable[[], Any]] = None) -> List[Any]:
    """
    Run ``worker(unit, state)`` for every unit and return the results in unit order.

    Parameters
    ----------
    worker : Callable[[Any, Any], Any]
        Computes one unit. ``state`` is the chunk's private scratch object.
    units : Sequence
        Work units. Read-only inputs should be captured by ``worker``.
    n_jobs : Optional[int]
        Degree of parallelism, see :func:`effective_n_jobs`.
    tolerant : bool, default=False
        If False, the first failing unit aborts the batch with
        ``WorkerFailure``. If True, failing units yield a ``UnitFailure``
        marker and the caller must check for them.
    scratch : Optional[Callable[[], Any]]
        Factory called once per chunk to build its private state.

    Returns
    -------
    List[Any]
        One result (or marker) per unit.
    """
    units = list(units)
    if not units:
        return []

    n_jobs = effective_n_jobs(n_jobs, len(units))
    bounds = np.linspace(0, len(units), n_jobs + 1).astype(int)
    chunks = [(int(start), units[start:stop]) for start, stop in zip(bounds[:-1], bounds[1:]) if stop > start]
    logger.debug("Running %d units in %d chunk(s)", len(units), len(chunks))

    if len(chunks) == 1:
        parts = [_run_chunk(worker, chunks[0][1], chunks[0][0], tolerant, scratch)]
    else:
        # the numba kernels release the GIL, so threads run them concurrently
        parts = Parallel(n_jobs=len(chunks), prefer="threads")(
            delayed(_run_chunk)(worker, chunk, start, tolerant, scratch) for start, chunk in chunks
        )

    results: List[Any] = [None] * len(units)
    for (start, _), part in zip(chunks, parts):
        results[start:start + len(part)] = part
    return results


def _run_chunk(worker, units, offset, tolerant, scratch):
    state = scratch() if scratch is not None else None
    out = []
    for pos, unit in enumerate(units):
        try:
            out.append(worker(unit, state))
        except Exception as exc:
            if not tolerant:
                raise WorkerFailure(f"Work unit failed: {exc}", unit=unit, index=offset + pos) from exc
            logger.warning("Work unit %r failed and is excluded: %s", unit, exc)
            out.append(UnitFailure(offset + pos, unit, exc))
    return out


def failures(results: Sequence) -> List[UnitFailure]:
    return [r for r in results if isinstance(r, UnitFailure)]
