"""Symmetric eigendecomposition by racing two solvers.

Two solvers decompose the same matrix concurrently:

- `bounded_eigenpairs`: cyclic Jacobi rotations, sweep after sweep, until
  the off-diagonal mass drops below a tolerance relative to the matrix
  norm, within a maximum number of sweeps. Each sweep applies disjoint
  rotations in round-robin order, so a whole round is one vectorized step.
- `exact_eigenpairs`: a full `numpy.linalg.eigh` decomposition.

Each solver is an async generator doing its numeric work in an executor
thread and checking a `threading.Event` cancellation token between steps.
Pairs come out most significant first. `race_eigenpairs` runs both as
asyncio tasks, takes the first one to finish its whole sequence and
cancels the other.

Example:
    >>> pairs = compute_eigenpairs(np.diag([3.0, 1.0, 2.0]))
    >>> [round(p.value, 6) for p in pairs]
    [3.0, 2.0, 1.0]
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from functools import partial
from typing import AsyncIterator, Callable, NamedTuple

import numpy as np

from blockbasis.errors import EigenDecompositionError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-10
DEFAULT_MAX_SWEEPS = 100


class EigenPair(NamedTuple):
    """An eigenvalue and its unit eigenvector."""

    value: float
    vector: np.ndarray


SolverFactory = Callable[[threading.Event], AsyncIterator[EigenPair]]


def _check_symmetric(matrix: np.ndarray) -> np.ndarray:
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {matrix.shape}")
    if not np.allclose(matrix, matrix.T):
        raise ValueError("Matrix is not symmetric")
    return matrix


def sort_eigenpairs(pairs: list[EigenPair]) -> list[EigenPair]:
    """Order pairs by eigenvalue, largest first."""
    return sorted(pairs, key=lambda pair: pair.value, reverse=True)


def _descending(values: np.ndarray, vectors: np.ndarray) -> list[EigenPair]:
    return [
        EigenPair(float(values[column]), vectors[:, column].copy())
        for column in np.argsort(values, kind="stable")[::-1]
    ]


def _round_robin(dim: int) -> list[tuple[np.ndarray, np.ndarray]]:
    """Rounds of disjoint (p, q) index pairs covering every pair once.

    Circle method: index 0 stays put and the others rotate. For odd `dim` a
    placeholder index sits out one pair per round.
    """
    slots = dim + dim % 2
    ring = list(range(1, slots))
    rounds = []
    for _ in range(slots - 1):
        order = [0] + ring
        pairs = [
            (order[i], order[slots - 1 - i])
            for i in range(slots // 2)
            if order[slots - 1 - i] < dim and order[i] < dim
        ]
        if pairs:
            rounds.append((np.array([p for p, _ in pairs]), np.array([q for _, q in pairs])))
        ring = ring[-1:] + ring[:-1]
    return rounds


def _off_diagonal_norm(a: np.ndarray) -> float:
    return float(np.linalg.norm(a - np.diag(np.diag(a))))


def _jacobi_sweep(
    a: np.ndarray,
    v: np.ndarray,
    rounds: list[tuple[np.ndarray, np.ndarray]],
) -> None:
    """Apply one sweep of Jacobi rotations to `a` and accumulate them in `v`."""
    for p, q in rounds:
        app, aqq, apq = a[p, p], a[q, q], a[p, q]
        rotate = apq != 0.0
        tau = np.divide(aqq - app, 2.0 * apq, out=np.zeros_like(apq), where=rotate)
        # Smaller root of t**2 + 2 tau t - 1 = 0, so |angle| <= pi/4.
        t = np.where(tau >= 0.0, 1.0, -1.0) / (np.abs(tau) + np.hypot(1.0, tau))
        t = np.where(rotate, t, 0.0)
        c = 1.0 / np.sqrt(1.0 + t * t)
        s = t * c

        for m in (a, v):
            mp, mq = m[:, p], m[:, q]
            m[:, p] = mp * c - mq * s
            m[:, q] = mp * s + mq * c
        ap, aq = a[p, :], a[q, :]
        a[p, :] = c[:, None] * ap - s[:, None] * aq
        a[q, :] = s[:, None] * ap + c[:, None] * aq
        a[p, q] = 0.0
        a[q, p] = 0.0


async def bounded_eigenpairs(
    matrix: np.ndarray,
    cancel: threading.Event,
    tolerance: float = DEFAULT_TOLERANCE,
    max_sweeps: int = DEFAULT_MAX_SWEEPS,
    executor: Executor | None = None,
) -> AsyncIterator[EigenPair]:
    """Yield eigenpairs of a symmetric matrix by cyclic Jacobi iteration.

    Args:
        matrix: Symmetric (dim, dim) matrix
        cancel: Token checked between sweeps and between results
        tolerance: Off-diagonal Frobenius norm bound, relative to ||matrix||
        max_sweeps: Sweep budget
        executor: Executor for the sweeps (the loop's default if None)

    Raises:
        EigenDecompositionError: If the budget runs out before convergence
    """
    matrix = _check_symmetric(matrix)
    loop = asyncio.get_running_loop()
    a = matrix.copy()
    v = np.eye(matrix.shape[0])
    limit = tolerance * float(np.linalg.norm(matrix))
    rounds = _round_robin(matrix.shape[0])

    sweeps = 0
    while _off_diagonal_norm(a) > limit:
        if sweeps == max_sweeps:
            raise EigenDecompositionError(
                f"Jacobi iteration did not converge within {max_sweeps} sweeps"
            )
        if cancel.is_set():
            return
        await loop.run_in_executor(executor, _jacobi_sweep, a, v, rounds)
        sweeps += 1

    logger.debug("Jacobi solver converged after %d sweeps", sweeps)
    for pair in _descending(np.diag(a), v):
        if cancel.is_set():
            return
        yield pair
        await asyncio.sleep(0)


async def exact_eigenpairs(
    matrix: np.ndarray,
    cancel: threading.Event,
    executor: Executor | None = None,
) -> AsyncIterator[EigenPair]:
    """Yield every eigenpair from a full `numpy.linalg.eigh` decomposition.

    Raises:
        EigenDecompositionError: If LAPACK fails to converge
    """
    matrix = _check_symmetric(matrix)
    loop = asyncio.get_running_loop()
    try:
        values, vectors = await loop.run_in_executor(executor, np.linalg.eigh, matrix)
    except np.linalg.LinAlgError as e:
        raise EigenDecompositionError(f"eigh failed: {e}") from e

    for pair in _descending(values, vectors):
        if cancel.is_set():
            return
        yield pair
        await asyncio.sleep(0)


async def _collect(source: AsyncIterator[EigenPair]) -> list[EigenPair]:
    return [pair async for pair in source]


async def race(*solvers: tuple[str, SolverFactory]) -> list[EigenPair]:
    """Run solvers concurrently and return the first complete result.

    Each solver is a (name, factory) pair; the factory receives its own
    cancellation token and returns an async iterator of eigenpairs. As soon
    as one sequence is fully enumerated, every other solver has its token
    set and its task cancelled, and its partial output is dropped.

    Raises:
        EigenDecompositionError: If every solver fails
    """
    if not solvers:
        raise ValueError("Need at least one solver to race")

    tokens: dict[asyncio.Task[list[EigenPair]], threading.Event] = {}
    names: dict[asyncio.Task[list[EigenPair]], str] = {}
    for name, factory in solvers:
        token = threading.Event()
        task = asyncio.create_task(_collect(factory(token)), name=name)
        tokens[task] = token
        names[task] = name

    pending = set(tokens)
    failures: list[BaseException] = []
    winner: list[EigenPair] | None = None
    try:
        while pending and winner is None:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            # Ties resolve in solver order.
            for task in sorted(done, key=list(tokens).index):
                error = task.exception()
                if error is not None:
                    logger.warning("Eigensolver %s failed: %s", names[task], error)
                    failures.append(error)
                elif winner is None:
                    winner = task.result()
                    logger.debug(
                        "Eigensolver %s won the race with %d pairs",
                        names[task],
                        len(winner),
                    )
    finally:
        for task in pending:
            tokens[task].set()
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if winner is None:
        raise EigenDecompositionError(
            f"All {len(solvers)} eigensolvers failed"
        ) from (failures[-1] if failures else None)
    return winner


async def race_eigenpairs(
    matrix: np.ndarray,
    tolerance: float = DEFAULT_TOLERANCE,
    max_sweeps: int = DEFAULT_MAX_SWEEPS,
    executor: Executor | None = None,
) -> list[EigenPair]:
    """Race the bounded and exact solvers on `matrix`, largest pair first."""
    matrix = _check_symmetric(matrix)
    pairs = await race(
        (
            "bounded",
            partial(
                bounded_eigenpairs,
                matrix,
                tolerance=tolerance,
                max_sweeps=max_sweeps,
                executor=executor,
            ),
        ),
        ("exact", partial(exact_eigenpairs, matrix, executor=executor)),
    )
    return sort_eigenpairs(pairs)


def compute_eigenpairs(
    matrix: np.ndarray,
    tolerance: float = DEFAULT_TOLERANCE,
    max_sweeps: int = DEFAULT_MAX_SWEEPS,
) -> list[EigenPair]:
    """Synchronous entry point for `race_eigenpairs`.

    Returns as soon as the race is decided. A losing `eigh` call cannot be
    interrupted; it finishes in a background thread and its result is
    dropped.

    Must not be called from inside a running event loop; use
    `await race_eigenpairs(...)` there instead.
    """
    executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="eigensolver")
    try:
        return asyncio.run(race_eigenpairs(matrix, tolerance, max_sweeps, executor))
    finally:
        executor.shutdown(wait=False)
