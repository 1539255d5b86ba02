"""Projection system between block vectors and basis coefficients."""

from __future__ import annotations

from blockbasis.components.basis import Basis
from blockbasis.components.blocks import BlockVectors, Coefficients
from blockbasis.core.projector import Projector
from blockbasis.core.system import Mode, System
from blockbasis.core.world import World


class Project(System):
    """Reduce blocks to coefficients on the used basis, or expand them back.

    Modes:
    - 'encode'/'forward': BlockVectors + Basis -> Coefficients
    - 'decode'/'inverse': Coefficients + Basis -> BlockVectors
    """

    def __init__(self, mode: Mode = "encode") -> None:
        super().__init__(mode=mode)

    def required_components(self) -> list[type]:
        if self.encoding:
            return [BlockVectors, Basis]
        return [Coefficients, Basis]

    def produced_components(self) -> list[type]:
        return [Coefficients] if self.encoding else [BlockVectors]

    def run(self, world: World, eids: list[int]) -> None:
        for eid in eids:
            projector = Projector(world.get_component(eid, Basis).selected())
            if self.encoding:
                blocks = world.get_component(eid, BlockVectors)
                world.add_component(
                    eid,
                    Coefficients(
                        data=projector.reduce(blocks.data),
                        width=blocks.width,
                        height=blocks.height,
                        block_size=blocks.block_size,
                    ),
                )
            else:
                coeffs = world.get_component(eid, Coefficients)
                world.add_component(
                    eid,
                    BlockVectors(
                        data=projector.expand(coeffs.data),
                        width=coeffs.width,
                        height=coeffs.height,
                        block_size=coeffs.block_size,
                    ),
                )
