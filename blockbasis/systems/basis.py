"""Basis selection systems.

Both systems read the image's BlockVectors and attach a Basis:
- AnalyticBasis: fixed Fourier-style basis, keeps the highest-energy vectors
- PCABasis: eigenvectors of the block Gram matrix, keeps the largest
"""

from __future__ import annotations

import logging

import numpy as np

from blockbasis.components.basis import Basis
from blockbasis.components.blocks import BlockVectors
from blockbasis.core.basis import analytic_basis, basis_size, pca_basis, select_by_energy
from blockbasis.core.eigen import DEFAULT_MAX_SWEEPS, DEFAULT_TOLERANCE
from blockbasis.core.projector import Projector
from blockbasis.core.system import System
from blockbasis.core.world import World

logger = logging.getLogger(__name__)


class _BasisSystem(System):
    def __init__(self, block_size: int, quality: float) -> None:
        super().__init__(mode="encode")
        self.block_size = block_size
        self.basis_size = basis_size(quality, block_size)
        self.quality = quality

    def required_components(self) -> list[type]:
        return [BlockVectors]

    def produced_components(self) -> list[type]:
        return [Basis]

    def _blocks(self, world: World, eid: int) -> np.ndarray:
        blocks = world.get_component(eid, BlockVectors)
        if blocks.block_size != self.block_size:
            raise ValueError(
                f"Blocks have size {blocks.block_size}, system expects {self.block_size}"
            )
        return blocks.data

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(block_size={self.block_size}, "
            f"basis_size={self.basis_size})"
        )


class AnalyticBasis(_BasisSystem):
    """Attach the analytic basis, keeping the vectors with the most energy.

    Every block is projected on the full basis; the `basis_size` vectors with
    the largest summed squared coefficients are marked as used.
    """

    def run(self, world: World, eids: list[int]) -> None:
        vectors = analytic_basis(self.block_size * self.block_size)
        projector = Projector(vectors)
        for eid in eids:
            coefficients = projector.reduce(self._blocks(world, eid))
            used = select_by_energy(coefficients, self.basis_size)
            logger.debug("Analytic basis: using indices %s", used)
            world.add_component(eid, Basis(vectors=vectors, used=used, kind="analytic"))


class PCABasis(_BasisSystem):
    """Attach the top eigenvectors of the blocks' Gram matrix.

    Vectors are rounded to float32, the precision they are stored with,
    so the encoder projects on the same basis the decoder reads back.
    """

    def __init__(
        self,
        block_size: int,
        quality: float,
        tolerance: float = DEFAULT_TOLERANCE,
        max_sweeps: int = DEFAULT_MAX_SWEEPS,
    ) -> None:
        super().__init__(block_size, quality)
        self.tolerance = tolerance
        self.max_sweeps = max_sweeps

    def run(self, world: World, eids: list[int]) -> None:
        for eid in eids:
            pairs = pca_basis(
                self._blocks(world, eid),
                self.basis_size,
                tolerance=self.tolerance,
                max_sweeps=self.max_sweeps,
            )
            vectors = np.array([pair.vector for pair in pairs], dtype=np.float32)
            world.add_component(
                eid,
                Basis(
                    vectors=vectors.astype(np.float64),
                    used=list(range(len(pairs))),
                    kind="pca",
                    eigenvalues=np.array([pair.value for pair in pairs]),
                ),
            )
