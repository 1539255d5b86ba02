"""Projection of block vectors onto a basis and back."""

from __future__ import annotations

import numpy as np

from blockbasis.core.linalg import KahanSum, column_matrix


class Projector:
    """Least-squares projection onto a fixed set of basis vectors.

    The basis is treated as the columns of a (dim, k) matrix A. `reduce`
    solves the normal equations for A, so truncated or non-orthogonal bases
    project correctly; for an orthonormal basis it equals a dot product.

    Example:
        >>> projector = Projector(basis.selected())
        >>> coeffs = projector.reduce(blocks)
        >>> approx = projector.expand(coeffs)
    """

    def __init__(self, vectors: np.ndarray) -> None:
        vectors = np.asarray(vectors, dtype=np.float64)
        if vectors.ndim != 2:
            raise ValueError(f"Expected (k, dim) basis array, got shape {vectors.shape}")
        self.vectors = vectors
        self.dimension = vectors.shape[1]
        self._solver = np.linalg.pinv(column_matrix(vectors))

    def reduce(self, blocks: np.ndarray) -> np.ndarray:
        """Coefficients for one block (dim,) or a stack of blocks (n, dim)."""
        blocks = np.asarray(blocks, dtype=np.float64)
        if blocks.shape[-1] != self.dimension:
            raise ValueError(
                f"Block length {blocks.shape[-1]} does not match basis "
                f"dimension {self.dimension}"
            )
        return blocks @ self._solver.T

    def expand(self, coefficients: np.ndarray) -> np.ndarray:
        """Linear combination of the basis for one or many coefficient rows."""
        coefficients = np.asarray(coefficients, dtype=np.float64)
        if coefficients.shape[-1] != len(self.vectors):
            raise ValueError(
                f"Got {coefficients.shape[-1]} coefficients for "
                f"{len(self.vectors)} basis vectors"
            )
        acc = KahanSum(coefficients.shape[:-1] + (self.dimension,))
        for i, vector in enumerate(self.vectors):
            acc.add(coefficients[..., i, None] * vector)
        return acc.total
