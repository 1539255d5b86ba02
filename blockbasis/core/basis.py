"""Basis construction for block vectors.

Two constructions are provided:
- `analytic_basis`: cosine/sine pairs of increasing frequency plus a
  constant vector, depending on the dimension only
- `pca_basis`: eigenvectors of the blocks' Gram matrix, ranked by
  eigenvalue, found by racing two eigensolvers
"""

from __future__ import annotations

import logging
import math

import numpy as np

from blockbasis.core.eigen import (
    DEFAULT_MAX_SWEEPS,
    DEFAULT_TOLERANCE,
    EigenPair,
    compute_eigenpairs,
)
from blockbasis.core.linalg import gram_matrix

logger = logging.getLogger(__name__)


def basis_size(quality: float, block_size: int) -> int:
    """Map a quality in [0, 1] to a number of retained basis vectors.

    The result is round-half-up of quality * block_size**2, clamped to
    [1, block_size**2].
    """
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be in [0, 1], got {quality}")
    full = block_size * block_size
    return min(max(int(math.floor(quality * full + 0.5)), 1), full)


def analytic_basis(dimension: int) -> np.ndarray:
    """Orthonormal Fourier-style basis of the given dimension.

    Rows 2i and 2i+1 sample cos and sin at frequency (i + 1) * 2pi / dimension
    over positions 0..dimension-1. The last row is the constant vector.

    Returns:
        (dimension, dimension) float64 array, one unit vector per row
    """
    if dimension < 1:
        raise ValueError(f"dimension must be positive, got {dimension}")

    positions = np.arange(dimension, dtype=np.float64)
    basis = np.zeros((dimension, dimension), dtype=np.float64)
    for i in range(dimension // 2):
        freq = (i + 1) * 2.0 * np.pi / dimension
        basis[2 * i] = np.cos(positions * freq)
        basis[2 * i + 1] = np.sin(positions * freq)
    basis[-1] = 1.0

    return basis / np.linalg.norm(basis, axis=1, keepdims=True)


def select_by_energy(coefficients: np.ndarray, count: int) -> list[int]:
    """Pick the `count` basis indices with the largest total squared coefficient.

    Ties go to the lower index. The result is sorted ascending.
    """
    energy = np.einsum("ij,ij->j", coefficients, coefficients)
    order = np.argsort(-energy, kind="stable")
    return sorted(int(i) for i in order[:count])


def pca_basis(
    blocks: np.ndarray,
    count: int,
    tolerance: float = DEFAULT_TOLERANCE,
    max_sweeps: int = DEFAULT_MAX_SWEEPS,
) -> list[EigenPair]:
    """Top `count` eigenpairs of the Gram matrix of `blocks`.

    Raises:
        ValueError: If `blocks` is empty
        EigenDecompositionError: If both eigensolvers fail
    """
    matrix = gram_matrix(blocks)
    pairs = compute_eigenpairs(matrix, tolerance, max_sweeps)
    logger.debug(
        "PCA basis: keeping %d of %d eigenpairs (top eigenvalue %.6g)",
        count,
        len(pairs),
        pairs[0].value if pairs else float("nan"),
    )
    return pairs[:count]
