"""Basis component shared by every block of one image."""

from typing import Literal

import numpy as np
from pydantic import Field, field_validator, model_validator

from blockbasis.components.image import Component


class Basis(Component):
    """Ranked basis vectors and the subset used for one image.

    Attributes:
        vectors: (m, dim) array, one basis vector per row, most significant first
        used: Sorted indices into `vectors` that carry coefficients
        kind: 'analytic' (block size only) or 'pca' (image statistics)
        eigenvalues: Eigenvalues matching `vectors` for PCA bases
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    vectors: np.ndarray
    used: list[int]
    kind: Literal["analytic", "pca"] = Field(default="analytic")
    eigenvalues: np.ndarray | None = None

    @field_validator("vectors")
    @classmethod
    def _freeze_vectors(cls, value: np.ndarray) -> np.ndarray:
        if value.ndim != 2:
            raise ValueError(f"Expected (m, dim) basis array, got shape {value.shape}")
        value = np.array(value, dtype=np.float64)
        value.flags.writeable = False
        return value

    @model_validator(mode="after")
    def _check_used(self) -> "Basis":
        if list(self.used) != sorted(set(self.used)):
            raise ValueError(f"Used indices must be sorted and unique, got {self.used}")
        if self.used and not 0 <= self.used[0] <= self.used[-1] < len(self.vectors):
            raise ValueError(
                f"Used indices out of range for {len(self.vectors)} basis vectors"
            )
        return self

    @property
    def dimension(self) -> int:
        """Length of every basis vector (block_size**2)."""
        return int(self.vectors.shape[1])

    def selected(self) -> np.ndarray:
        """Return the used vectors as a (len(used), dim) array."""
        return self.vectors[self.used]
