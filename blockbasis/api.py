"""High-level API for image compression and decompression.

Provides compress() and decompress() functions that build the ECS pipeline
for a compressor identity and serialize the result.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from blockbasis.components.basis import Basis
from blockbasis.components.blocks import Coefficients
from blockbasis.components.image import ReconRGB
from blockbasis.config import CompressorConfig, get_compressor
from blockbasis.core.basis import analytic_basis
from blockbasis.core.container import CompressedImage
from blockbasis.core.world import World
from blockbasis.systems.basis import AnalyticBasis, PCABasis
from blockbasis.systems.blocker import BlockSplit
from blockbasis.systems.metrics import MetricMSE, MetricPSNR
from blockbasis.systems.projector import Project

logger = logging.getLogger(__name__)


def _validate_image(image: np.ndarray) -> None:
    if not isinstance(image, np.ndarray):
        raise TypeError(f"Expected ndarray, got {type(image)}")
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected shape (H, W, 3), got {image.shape}")


def _basis_system(config: CompressorConfig, quality: float) -> AnalyticBasis | PCABasis:
    if config.basis == "pca":
        return PCABasis(
            config.block_size,
            quality,
            tolerance=config.eigen_tolerance,
            max_sweeps=config.eigen_max_sweeps,
        )
    return AnalyticBasis(config.block_size, quality)


def _encode(world: World, image: np.ndarray, config: CompressorConfig, quality: float) -> bytes:
    entity = world.spawn_image(image)
    coeffs: Coefficients = (
        world.pipe(entity)
        .to(BlockSplit(block_size=config.block_size, mode="encode"))
        .to(_basis_system(config, quality))
        .to(Project(mode="encode"))
        .out(Coefficients)
    )
    basis = world.get_component(entity, Basis)

    compressed = CompressedImage(
        width=coeffs.width,
        height=coeffs.height,
        block_size=config.block_size,
        used_basis=list(basis.used),
        blocks=coeffs.data,
        basis=basis.vectors if config.embeds_basis else None,
    )
    return config.codec().encode(compressed)


def _decode(world: World, data: bytes, config: CompressorConfig) -> int:
    compressed = config.codec().decode(data)

    if compressed.basis is not None:
        basis = Basis(vectors=compressed.basis, used=compressed.used_basis, kind="pca")
    else:
        basis = Basis(
            vectors=analytic_basis(config.block_size * config.block_size),
            used=compressed.used_basis,
            kind="analytic",
        )

    entity = world.new_entity()
    world.add_component(entity, basis)
    world.add_component(
        entity,
        Coefficients(
            data=compressed.blocks,
            width=compressed.width,
            height=compressed.height,
            block_size=compressed.block_size,
        ),
    )
    (
        world.pipe(entity)
        .to(Project(mode="decode"))
        .to(BlockSplit(block_size=config.block_size, mode="decode"))
        .execute()
    )
    return entity


def compress(
    image: np.ndarray,
    quality: float = 0.5,
    compressor: str = "smallbasis",
    config_path: str | None = None,
) -> bytes:
    """Compress an RGB image to bytes.

    Args:
        image: Input image as (H, W, 3) array (uint8, other unsigned integer,
            or float in [0, 1])
        quality: Fraction of the basis to keep, in [0, 1]
        compressor: Compressor identity (see `blockbasis.config`)
        config_path: Path to blockbasis.toml (auto-detected if None)

    Returns:
        Compressed image as bytes

    Raises:
        ValueError: If image or quality is invalid, or compressor is unknown
        EigenDecompositionError: If the PCA basis cannot be computed

    Example:
        >>> img = np.full((16, 16, 3), 200, dtype=np.uint8)
        >>> data = compress(img, quality=1.0)
        >>> decompress(data).shape
        (16, 16, 3)
    """
    _validate_image(image)
    if not 0.0 <= quality <= 1.0:
        raise ValueError(f"quality must be in [0, 1], got {quality}")
    config = get_compressor(compressor, config_path)

    world = World()
    try:
        data = _encode(world, image, config, quality)
    finally:
        world.clear()

    logger.debug(
        "Compressed %s image with %s at quality %.3f to %d bytes",
        image.shape,
        config.name,
        quality,
        len(data),
    )
    return data


def decompress(
    data: bytes,
    compressor: str = "smallbasis",
    config_path: str | None = None,
) -> np.ndarray:
    """Decompress bytes to an RGB image.

    Args:
        data: Bytes produced by `compress` with the same compressor identity
        compressor: Compressor identity used for compression
        config_path: Path to blockbasis.toml (auto-detected if None)

    Returns:
        Reconstructed image as (H, W, 3) uint8 array

    Raises:
        ContainerDecodeError: If the data is corrupt or was produced by a
            different compressor identity
    """
    config = get_compressor(compressor, config_path)

    world = World()
    try:
        entity = _decode(world, data, config)
        return world.get_component(entity, ReconRGB).pix.copy()
    finally:
        world.clear()


def get_compression_info(
    data: bytes,
    compressor: str = "smallbasis",
    config_path: str | None = None,
) -> dict[str, Any]:
    """Get container fields without reconstructing the image.

    Returns:
        Dictionary with keys: compressor, width, height, block_size,
        used_basis, basis_encoding, bounds, embedded_basis_vectors
    """
    config = get_compressor(compressor, config_path)
    compressed = config.codec().decode(data)
    return {
        "compressor": config.name,
        "width": compressed.width,
        "height": compressed.height,
        "block_size": compressed.block_size,
        "used_basis": list(compressed.used_basis),
        "basis_encoding": compressed.basis_encoding,
        "bounds": compressed.bounds,
        "embedded_basis_vectors": (
            0 if compressed.basis is None else int(compressed.basis.shape[0])
        ),
    }


def get_compression_ratio(
    original_image: np.ndarray,
    compressed_data: bytes,
) -> float:
    """Calculate compression ratio (original_size / compressed_size)."""
    original_bytes = original_image.nbytes
    compressed_bytes = len(compressed_data)
    return original_bytes / compressed_bytes if compressed_bytes > 0 else float("inf")


def evaluate(
    image: np.ndarray,
    quality: float = 0.5,
    compressor: str = "smallbasis",
    config_path: str | None = None,
) -> dict[str, Any]:
    """Compress and decompress an image and report size and quality.

    Returns:
        Dictionary with keys: compressor, quality, compressed_bytes, ratio,
        psnr, mse
    """
    data = compress(image, quality=quality, compressor=compressor, config_path=config_path)
    config = get_compressor(compressor, config_path)

    world = World()
    try:
        entity = _decode(world, data, config)
        recon = world.get_component(entity, ReconRGB)
        source = world.spawn_image(image)
        world.add_component(source, recon)
        world.pipe(source).to(MetricPSNR()).to(MetricMSE()).execute()
        psnr = world.metadata[source]["psnr"]
        mse = world.metadata[source]["mse"]
    finally:
        world.clear()

    return {
        "compressor": config.name,
        "quality": quality,
        "compressed_bytes": len(data),
        "ratio": get_compression_ratio(image, data),
        "psnr": psnr,
        "mse": mse,
    }
