"""Block components: per-channel pixel blocks and their coefficients."""

import numpy as np
from pydantic import Field, field_validator

from blockbasis.components.image import Component


class BlockVectors(Component):
    """Zigzag-ordered pixel blocks of one image.

    Attributes:
        data: (n_blocks, block_size**2) float64, tiles row-major, R/G/B per tile
        width: Image width in pixels
        height: Image height in pixels
        block_size: Side length of each square block
    """

    data: np.ndarray
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    block_size: int = Field(ge=1)

    @field_validator("data")
    @classmethod
    def _check_2d(cls, value: np.ndarray) -> np.ndarray:
        if value.ndim != 2:
            raise ValueError(f"Expected (n_blocks, dim) array, got shape {value.shape}")
        return value


class Coefficients(Component):
    """Basis coefficients for every block of one image.

    Attributes:
        data: (n_blocks, n_used) float64, one row per block
        width: Image width in pixels
        height: Image height in pixels
        block_size: Side length of each square block
    """

    data: np.ndarray
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    block_size: int = Field(ge=1)

    @field_validator("data")
    @classmethod
    def _check_2d(cls, value: np.ndarray) -> np.ndarray:
        if value.ndim != 2:
            raise ValueError(f"Expected (n_blocks, n_used) array, got shape {value.shape}")
        return value
