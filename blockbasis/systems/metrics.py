"""Quality metrics systems for evaluating reconstruction.

Implements PSNR and MSE using scikit-image.
Metrics store results in World metadata rather than creating components.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from skimage.metrics import mean_squared_error, peak_signal_noise_ratio

from blockbasis.components.image import RGB, ReconRGB
from blockbasis.core.system import System

if TYPE_CHECKING:
    from blockbasis.core.world import World


def _as_uint8(pix: np.ndarray) -> np.ndarray:
    if pix.dtype == np.uint8:
        return pix
    if np.issubdtype(pix.dtype, np.integer):
        scaled = pix.astype(np.float64) / np.iinfo(pix.dtype).max
    else:
        scaled = pix.astype(np.float64)
    return np.floor(np.clip(scaled, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)


class _PairMetric(System):
    key = ""

    def __init__(
        self,
        src_component: type = RGB,
        recon_component: type = ReconRGB,
    ) -> None:
        super().__init__(mode="forward")
        self.src_component = src_component
        self.recon_component = recon_component

    def required_components(self) -> list[type]:
        return [self.src_component, self.recon_component]

    def produced_components(self) -> list[type]:
        """None: results are stored in metadata."""
        return []

    def _pair(self, world: World, eid: int) -> tuple[np.ndarray, np.ndarray]:
        src = _as_uint8(world.get_component(eid, self.src_component).pix)
        recon = _as_uint8(world.get_component(eid, self.recon_component).pix)
        if src.shape != recon.shape:
            raise ValueError(
                f"Shape mismatch: src {src.shape} vs recon {recon.shape}"
            )
        return src, recon

    def _score(self, src: np.ndarray, recon: np.ndarray) -> float:
        raise NotImplementedError

    def run(self, world: World, eids: list[int]) -> None:
        for eid in eids:
            src, recon = self._pair(world, eid)
            world.metadata.setdefault(eid, {})[self.key] = self._score(src, recon)


class MetricPSNR(_PairMetric):
    """Peak Signal-to-Noise Ratio in dB on 8-bit samples.

    Identical images give infinity. Stores result in world.metadata[eid]['psnr'].
    """

    key = "psnr"

    def _score(self, src: np.ndarray, recon: np.ndarray) -> float:
        if np.array_equal(src, recon):
            return float("inf")
        return float(peak_signal_noise_ratio(src, recon, data_range=255))


class MetricMSE(_PairMetric):
    """Mean Squared Error on 8-bit samples.

    Stores result in world.metadata[eid]['mse'].
    """

    key = "mse"

    def _score(self, src: np.ndarray, recon: np.ndarray) -> float:
        return float(mean_squared_error(src, recon))
