"""Block transform image compression.

This package compresses RGB images by cutting them into square blocks per
color channel and keeping only a few coefficients of each block in a small
basis:
- An analytic Fourier-style basis that depends only on the block size
- A PCA basis built from the image's own block statistics
- 8-bit quantization packed into a compact binary container

Quick Start:
    >>> from blockbasis import compress, decompress
    >>> import numpy as np
    >>>
    >>> img = np.random.randint(0, 256, (64, 64, 3), dtype=np.uint8)
    >>> data = compress(img, quality=0.25, compressor='smallbasis')
    >>> reconstructed = decompress(data, compressor='smallbasis')

For more control, use the fluent pipeline API:
    >>> from blockbasis import World
    >>> from blockbasis.components import Coefficients
    >>> from blockbasis.systems import BlockSplit, PCABasis, Project
    >>>
    >>> world = World()
    >>> entity = world.spawn_image(img)
    >>> coeffs = (
    ...     world.pipe(entity)
    ...     .to(BlockSplit(block_size=8, mode='encode'))
    ...     .to(PCABasis(block_size=8, quality=0.25))
    ...     .to(Project(mode='encode'))
    ...     .out(Coefficients)
    ... )
"""

__version__ = "0.1.0"

from blockbasis.api import compress, decompress
from blockbasis.core.world import World

__all__ = [
    "__version__",
    "compress",
    "decompress",
    "World",
]
