"""Binary container for compressed images.

File format (byte order set per codec, little-endian by default):
  [Dimensions: 8 bytes]
    - Width: uint32
    - Height: uint32
  [Embedded basis: PCA containers only]
    - Vector count: uint32
    - Vector dimension: uint32 (must equal block_size**2)
    - count * dimension float32 values, one vector after another
  [Basis selector]
    - Heading: uint8 (0 = sparse, 1 = dense)
    - Sparse: uint32 count, then count uint32 indices
    - Dense: ceil(block_size**2 / 8) bytes, bit (i & 7) of byte (i >> 3)
      set iff basis index i is used
  [Quantization bounds]
    - symmetric: float64 max |coefficient|
    - minmax: float64 min, float64 max
  [Coefficients]
    - One uint8 per used basis vector, for every channel block, tiles
      row-major and channels R, G, B

There is no magic number or version field: a format change means a new
compressor identity.
"""

from __future__ import annotations

import logging
import math
import struct
from typing import Literal

import numpy as np
from pydantic import BaseModel, Field, model_validator

from blockbasis.core.blocks import count as block_count
from blockbasis.errors import ContainerDecodeError

logger = logging.getLogger(__name__)

BASIS_HEADING_SPARSE = 0
BASIS_HEADING_DENSE = 1

BasisEncoding = Literal["sparse", "dense"]
Quantizer = Literal["symmetric", "minmax"]
ByteOrder = Literal["little", "big"]


class CompressedImage(BaseModel):
    """Everything stored in a container, with coefficients as floats.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        block_size: Side length of each square block
        used_basis: Sorted indices of the used basis vectors
        blocks: (n_blocks, len(used_basis)) coefficients
        basis: (count, block_size**2) embedded vectors, PCA containers only
        bounds: Quantization bounds read back by decode, None before encode
    """

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    width: int = Field(ge=0, lt=2**32)
    height: int = Field(ge=0, lt=2**32)
    block_size: int = Field(ge=1)
    used_basis: list[int]
    blocks: np.ndarray
    basis: np.ndarray | None = None
    bounds: tuple[float, ...] | None = None

    @model_validator(mode="after")
    def _check_shapes(self) -> "CompressedImage":
        expected = (block_count(self.width, self.height, self.block_size), len(self.used_basis))
        if self.blocks.shape != expected:
            raise ValueError(f"Expected blocks of shape {expected}, got {self.blocks.shape}")
        if self.used_basis != sorted(set(self.used_basis)):
            raise ValueError("used_basis must be sorted and unique")
        return self

    @property
    def full_basis_size(self) -> int:
        return self.block_size * self.block_size

    @property
    def basis_encoding(self) -> BasisEncoding:
        return choose_basis_encoding(len(self.used_basis), self.full_basis_size)


def choose_basis_encoding(used_count: int, full_size: int) -> BasisEncoding:
    """Sparse iff 32 bits per used index beat one bit per possible index."""
    return "sparse" if used_count * 32 < full_size else "dense"


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def quantize_symmetric(values: np.ndarray) -> tuple[np.ndarray, float]:
    """Map values to uint8 around a symmetric max-magnitude bound.

    Returns:
        (quantized uint8 array, bound)
    """
    values = np.asarray(values, dtype=np.float64)
    bound = float(np.abs(values).max()) if values.size else 0.0
    if bound == 0.0:
        return np.zeros(values.shape, dtype=np.uint8), bound
    scaled = _round_half_up(255.0 * (values + bound) / (2.0 * bound))
    return np.clip(scaled, 0, 255).astype(np.uint8), bound


def dequantize_symmetric(quantized: np.ndarray, bound: float) -> np.ndarray:
    return (np.asarray(quantized, dtype=np.float64) / 255.0) * 2.0 * bound - bound


def quantize_minmax(values: np.ndarray) -> tuple[np.ndarray, float, float]:
    """Map values to uint8 across their [min, max] range.

    Returns:
        (quantized uint8 array, min, max)
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return np.zeros(values.shape, dtype=np.uint8), 0.0, 0.0
    low, high = float(values.min()), float(values.max())
    if high == low:
        return np.zeros(values.shape, dtype=np.uint8), low, high
    scaled = _round_half_up(255.0 * (values - low) / (high - low))
    return np.clip(scaled, 0, 255).astype(np.uint8), low, high


def dequantize_minmax(quantized: np.ndarray, low: float, high: float) -> np.ndarray:
    return low + (np.asarray(quantized, dtype=np.float64) / 255.0) * (high - low)


class _Reader:
    """Sequential reader that names the field on truncation."""

    def __init__(self, data: bytes, prefix: str) -> None:
        self._data = memoryview(data)
        self._pos = 0
        self._prefix = prefix

    def take(self, size: int, field: str) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ContainerDecodeError(
                field,
                f"missing {field} field: need {size} bytes at offset {self._pos}, "
                f"{len(self._data) - self._pos} left",
            )
        chunk = bytes(self._data[self._pos:end])
        self._pos = end
        return chunk

    def unpack(self, fmt: str, field: str) -> tuple:
        fmt = self._prefix + fmt
        return struct.unpack(fmt, self.take(struct.calcsize(fmt), field))

    def array(self, dtype: str, count: int, field: str) -> np.ndarray:
        dt = np.dtype(dtype).newbyteorder(self._prefix)
        return np.frombuffer(self.take(count * dt.itemsize, field), dtype=dt).copy()

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos


class ContainerCodec:
    """Encode and decode `CompressedImage` values for one compressor identity.

    Args:
        block_size: Side length of each square block (known out of band)
        quantizer: 'symmetric' (max-magnitude bound) or 'minmax'
        embeds_basis: Whether the basis vectors are stored in the container
        byte_order: 'little' or 'big'

    Example:
        >>> codec = ContainerCodec(block_size=8, quantizer="symmetric")
        >>> data = codec.encode(image)
        >>> restored = codec.decode(data)
    """

    def __init__(
        self,
        block_size: int,
        quantizer: Quantizer = "symmetric",
        embeds_basis: bool = False,
        byte_order: ByteOrder = "little",
    ) -> None:
        if block_size < 1:
            raise ValueError(f"block_size must be positive, got {block_size}")
        if quantizer not in ("symmetric", "minmax"):
            raise ValueError(f"Unknown quantizer {quantizer!r}")
        if byte_order not in ("little", "big"):
            raise ValueError(f"Unknown byte order {byte_order!r}")
        self.block_size = block_size
        self.quantizer = quantizer
        self.embeds_basis = embeds_basis
        self.byte_order = byte_order
        self._prefix = "<" if byte_order == "little" else ">"

    @property
    def full_basis_size(self) -> int:
        return self.block_size * self.block_size

    @property
    def bitmap_bytes(self) -> int:
        return math.ceil(self.full_basis_size / 8)

    def encode(self, image: CompressedImage) -> bytes:
        """Serialize a compressed image.

        Raises:
            ValueError: If the image does not match this codec's configuration
        """
        if image.block_size != self.block_size:
            raise ValueError(
                f"Image block size {image.block_size} does not match codec "
                f"block size {self.block_size}"
            )
        if not image.used_basis:
            raise ValueError("At least one basis vector must be used")
        if image.used_basis[-1] >= self.full_basis_size:
            raise ValueError(f"Basis index {image.used_basis[-1]} out of range")

        p = self._prefix
        parts = [struct.pack(p + "II", image.width, image.height)]

        if self.embeds_basis:
            if image.basis is None:
                raise ValueError("This container requires an embedded basis")
            count, dim = image.basis.shape
            if dim != self.full_basis_size:
                raise ValueError(f"Basis dimension {dim} != {self.full_basis_size}")
            if image.used_basis[-1] >= count:
                raise ValueError("Used basis index beyond embedded vectors")
            parts.append(struct.pack(p + "II", count, dim))
            parts.append(image.basis.astype(p + "f4").tobytes())

        encoding = image.basis_encoding
        logger.debug(
            "Encoding %d of %d basis indices as %s",
            len(image.used_basis),
            self.full_basis_size,
            encoding,
        )
        if encoding == "sparse":
            parts.append(bytes([BASIS_HEADING_SPARSE]))
            parts.append(struct.pack(p + "I", len(image.used_basis)))
            parts.append(np.asarray(image.used_basis, dtype=p + "u4").tobytes())
        else:
            parts.append(bytes([BASIS_HEADING_DENSE]))
            parts.append(self._bitmap(image.used_basis))

        if self.quantizer == "symmetric":
            quantized, bound = quantize_symmetric(image.blocks)
            parts.append(struct.pack(p + "d", bound))
        else:
            quantized, low, high = quantize_minmax(image.blocks)
            parts.append(struct.pack(p + "dd", low, high))

        parts.append(quantized.tobytes())
        return b"".join(parts)

    def _bitmap(self, used: list[int]) -> bytes:
        bitmap = bytearray(self.bitmap_bytes)
        for index in used:
            bitmap[index >> 3] |= 1 << (index & 7)
        return bytes(bitmap)

    def decode(self, data: bytes) -> CompressedImage:
        """Parse a container produced by `encode`.

        Raises:
            ContainerDecodeError: On truncation, an unknown basis heading,
                a basis dimension that disagrees with the block size, an
                empty basis selection, or basis indices out of range
        """
        reader = _Reader(data, self._prefix)
        width, = reader.unpack("I", "width")
        height, = reader.unpack("I", "height")

        basis = None
        if self.embeds_basis:
            count, = reader.unpack("I", "basis vector count")
            dim, = reader.unpack("I", "basis vector dimension")
            if dim != self.full_basis_size:
                raise ContainerDecodeError(
                    "basis vector dimension",
                    f"basis dimension {dim} does not match block size "
                    f"{self.block_size} (expected {self.full_basis_size})",
                )
            if count > dim:
                raise ContainerDecodeError(
                    "basis vector count",
                    f"basis vector count {count} exceeds dimension {dim}",
                )
            basis = reader.array("f4", count * dim, "basis vectors")
            basis = basis.astype(np.float64).reshape(count, dim)

        heading, = reader.unpack("B", "basis heading")
        if heading == BASIS_HEADING_SPARSE:
            used_count, = reader.unpack("I", "sparse basis count")
            if used_count == 0:
                raise ContainerDecodeError("sparse basis count", "empty basis selection")
            used = reader.array("u4", used_count, "sparse basis indices").tolist()
            if used != sorted(set(used)):
                raise ContainerDecodeError(
                    "sparse basis indices", "sparse basis indices are not sorted"
                )
        elif heading == BASIS_HEADING_DENSE:
            bitmap = np.frombuffer(reader.take(self.bitmap_bytes, "basis bitmap"), dtype=np.uint8)
            bits = np.unpackbits(bitmap, bitorder="little")[: self.full_basis_size]
            used = np.flatnonzero(bits).tolist()
            if not used:
                raise ContainerDecodeError("basis bitmap", "empty basis selection")
        else:
            raise ContainerDecodeError(
                "basis heading", f"unknown basis heading type: 0x{heading:x}"
            )

        limit = len(basis) if basis is not None else self.full_basis_size
        if used and used[-1] >= limit:
            raise ContainerDecodeError(
                "basis indices", f"basis index {used[-1]} out of range (< {limit})"
            )

        n_blocks = block_count(width, height, self.block_size)
        if self.quantizer == "symmetric":
            bound, = reader.unpack("d", "maximum coefficient")
            quantized = reader.array("u1", n_blocks * len(used), "coefficient data")
            values = dequantize_symmetric(quantized, bound)
            bounds: tuple[float, ...] = (bound,)
        else:
            low, = reader.unpack("d", "minimum coefficient")
            high, = reader.unpack("d", "maximum coefficient")
            quantized = reader.array("u1", n_blocks * len(used), "coefficient data")
            values = dequantize_minmax(quantized, low, high)
            bounds = (low, high)

        if reader.remaining:
            logger.debug("Ignoring %d trailing bytes", reader.remaining)

        return CompressedImage(
            width=width,
            height=height,
            block_size=self.block_size,
            used_basis=used,
            blocks=values.reshape(n_blocks, len(used)),
            basis=basis,
            bounds=bounds,
        )
