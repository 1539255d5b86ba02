"""Block split/merge system between images and channel block vectors."""

from __future__ import annotations

from blockbasis.components.blocks import BlockVectors
from blockbasis.components.image import RGB, ReconRGB
from blockbasis.core.blocks import to_blocks, to_image
from blockbasis.core.system import Mode, System
from blockbasis.core.world import World


class BlockSplit(System):
    """Cut images into zigzag-ordered channel blocks and put them back.

    Modes:
    - 'encode'/'forward': RGB -> BlockVectors
    - 'decode'/'inverse': BlockVectors -> ReconRGB (uint8)
    """

    def __init__(self, block_size: int = 8, mode: Mode = "encode") -> None:
        super().__init__(mode=mode)
        if block_size < 1:
            raise ValueError(f"block_size must be positive, got {block_size}")
        self.block_size = block_size

    def required_components(self) -> list[type]:
        return [RGB] if self.encoding else [BlockVectors]

    def produced_components(self) -> list[type]:
        return [BlockVectors] if self.encoding else [ReconRGB]

    def run(self, world: World, eids: list[int]) -> None:
        for eid in eids:
            if self.encoding:
                pix = world.get_component(eid, RGB).pix
                height, width = pix.shape[:2]
                world.add_component(
                    eid,
                    BlockVectors(
                        data=to_blocks(pix, self.block_size),
                        width=width,
                        height=height,
                        block_size=self.block_size,
                    ),
                )
            else:
                blocks = world.get_component(eid, BlockVectors)
                if blocks.block_size != self.block_size:
                    raise ValueError(
                        f"Blocks have size {blocks.block_size}, "
                        f"system expects {self.block_size}"
                    )
                pix = to_image(blocks.width, blocks.height, blocks.data, self.block_size)
                world.add_component(eid, ReconRGB(pix=pix))
