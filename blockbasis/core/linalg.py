"""Compensated accumulation helpers on top of numpy."""

from __future__ import annotations

from typing import Iterable

import numpy as np


class KahanSum:
    """Element-wise Kahan-compensated running sum of equally shaped arrays.

    Example:
        >>> acc = KahanSum((2,))
        >>> for term in terms:
        ...     acc.add(term)
        >>> total = acc.total
    """

    def __init__(self, shape: tuple[int, ...]) -> None:
        self._sum = np.zeros(shape, dtype=np.float64)
        self._comp = np.zeros(shape, dtype=np.float64)

    def add(self, term: np.ndarray | float) -> None:
        y = term - self._comp
        t = self._sum + y
        self._comp = (t - self._sum) - y
        self._sum = t

    @property
    def total(self) -> np.ndarray:
        return self._sum.copy()


def kahan_sum(terms: Iterable[np.ndarray], shape: tuple[int, ...]) -> np.ndarray:
    """Sum an iterable of arrays with compensated summation."""
    acc = KahanSum(shape)
    for term in terms:
        acc.add(term)
    return acc.total


def gram_matrix(blocks: np.ndarray) -> np.ndarray:
    """Symmetric matrix M[i, j] = sum over blocks of block[i] * block[j].

    Args:
        blocks: (n_blocks, dim) array

    Returns:
        (dim, dim) float64 matrix

    Raises:
        ValueError: If there are no blocks
    """
    blocks = np.asarray(blocks, dtype=np.float64)
    if blocks.ndim != 2 or blocks.shape[0] == 0:
        raise ValueError(f"Need a non-empty (n_blocks, dim) array, got {blocks.shape}")

    dim = blocks.shape[1]
    return kahan_sum((np.outer(block, block) for block in blocks), (dim, dim))


def column_matrix(vectors: np.ndarray) -> np.ndarray:
    """Stack row vectors as the columns of a (dim, n) matrix."""
    return np.ascontiguousarray(np.asarray(vectors, dtype=np.float64).T)
