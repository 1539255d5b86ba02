"""Block decomposition and reconstruction.

An image is split into square tiles of `block_size` pixels. Every tile
produces three vectors (red, green, blue) of length `block_size**2`.
Within a block, samples follow a boustrophedon raster: row 0 left to
right, row 1 right to left, and so on. Tiles are visited row-major.
Pixels past the image edge are zero-filled.
"""

from __future__ import annotations

import numpy as np


def block_counts(width: int, height: int, block_size: int) -> tuple[int, int]:
    """Return (rows, cols) of tiles needed to cover the image."""
    if block_size < 1:
        raise ValueError(f"block_size must be positive, got {block_size}")
    rows = -(-height // block_size)
    cols = -(-width // block_size)
    return rows, cols


def count(width: int, height: int, block_size: int) -> int:
    """Number of per-channel blocks needed for an image of this size."""
    rows, cols = block_counts(width, height, block_size)
    return rows * cols * 3


def zigzag_order(block_size: int) -> np.ndarray:
    """Flat (row * block_size + col) pixel index for each vector position.

    Example:
        >>> zigzag_order(3).tolist()
        [0, 1, 2, 5, 4, 3, 6, 7, 8]
    """
    grid = np.arange(block_size * block_size).reshape(block_size, block_size)
    grid[1::2] = grid[1::2, ::-1].copy()
    return grid.reshape(-1)


def _normalize(image: np.ndarray) -> np.ndarray:
    if np.issubdtype(image.dtype, np.integer):
        return image.astype(np.float64) / np.iinfo(image.dtype).max
    return image.astype(np.float64)


def to_blocks(image: np.ndarray, block_size: int) -> np.ndarray:
    """Split an (H, W, 3) image into zigzag-ordered channel blocks.

    Args:
        image: RGB image; integer samples are divided by the dtype maximum,
            float samples are taken as already normalised to [0, 1]
        block_size: Side length of each square block

    Returns:
        (rows * cols * 3, block_size**2) float64 array
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image with shape (H, W, 3), got {image.shape}")

    height, width = image.shape[:2]
    rows, cols = block_counts(width, height, block_size)

    padded = np.zeros((rows * block_size, cols * block_size, 3), dtype=np.float64)
    padded[:height, :width] = _normalize(image)

    # (rows, bs, cols, bs, 3) -> (rows, cols, 3, bs * bs)
    tiles = padded.reshape(rows, block_size, cols, block_size, 3)
    tiles = tiles.transpose(0, 2, 4, 1, 3).reshape(rows, cols, 3, block_size * block_size)

    return tiles[..., zigzag_order(block_size)].reshape(-1, block_size * block_size)


def to_image(
    width: int, height: int, blocks: np.ndarray, block_size: int
) -> np.ndarray:
    """Reassemble channel blocks into an (H, W, 3) uint8 image.

    Samples are clamped to [0, 1] before being mapped to 8 bits with
    round-half-up.
    """
    rows, cols = block_counts(width, height, block_size)
    expected = (rows * cols * 3, block_size * block_size)
    blocks = np.asarray(blocks, dtype=np.float64)
    if blocks.shape != expected:
        raise ValueError(f"Expected blocks of shape {expected}, got {blocks.shape}")

    raster = np.empty_like(blocks)
    raster[:, zigzag_order(block_size)] = blocks

    tiles = raster.reshape(rows, cols, 3, block_size, block_size)
    padded = tiles.transpose(0, 3, 1, 4, 2).reshape(
        rows * block_size, cols * block_size, 3
    )

    pixels = np.floor(np.clip(padded[:height, :width], 0.0, 1.0) * 255.0 + 0.5)
    return pixels.astype(np.uint8)
