"""Tests for quantization and the binary container format."""

import struct

import numpy as np
import pytest

from blockbasis.core.container import (
    BASIS_HEADING_DENSE,
    BASIS_HEADING_SPARSE,
    CompressedImage,
    ContainerCodec,
    choose_basis_encoding,
    dequantize_minmax,
    dequantize_symmetric,
    quantize_minmax,
    quantize_symmetric,
)
from blockbasis.errors import ContainerDecodeError


def _image(used: list[int], width: int = 8, height: int = 8, block_size: int = 8,
           basis: np.ndarray | None = None) -> CompressedImage:
    n_blocks = 3 * -(-width // block_size) * -(-height // block_size)
    rng = np.random.default_rng(len(used))
    return CompressedImage(
        width=width,
        height=height,
        block_size=block_size,
        used_basis=used,
        blocks=rng.uniform(-2.0, 3.0, (n_blocks, len(used))),
        basis=basis,
    )


class TestBasisEncodingChoice:
    @pytest.mark.parametrize(
        "used,full,expected",
        [
            (1, 64, "sparse"),
            (2, 64, "dense"),  # 2 * 32 == 64
            (2, 65, "sparse"),
            (2, 63, "dense"),
            (0, 1, "sparse"),
            (8, 256, "dense"),
            (7, 256, "sparse"),
        ],
    )
    def test_threshold(self, used: int, full: int, expected: str) -> None:
        assert choose_basis_encoding(used, full) == expected


class TestSymmetricQuantizer:
    def test_levels(self) -> None:
        quantized, bound = quantize_symmetric(np.array([-1.0, 0.0, 1.0]))
        assert bound == 1.0
        assert quantized.tolist() == [0, 128, 255]

    def test_error_bound(self) -> None:
        values = np.random.default_rng(0).uniform(-5.0, 4.0, 500)
        quantized, bound = quantize_symmetric(values)
        restored = dequantize_symmetric(quantized, bound)
        assert np.abs(restored - values).max() <= bound / 255.0 + 1e-12

    def test_monotonic(self) -> None:
        values = np.sort(np.random.default_rng(1).normal(size=200))
        quantized, _ = quantize_symmetric(values)
        assert np.all(np.diff(quantized.astype(int)) >= 0)

    def test_all_zero(self) -> None:
        quantized, bound = quantize_symmetric(np.zeros(4))
        assert bound == 0.0
        assert quantized.tolist() == [0, 0, 0, 0]
        np.testing.assert_array_equal(dequantize_symmetric(quantized, bound), np.zeros(4))


class TestMinMaxQuantizer:
    def test_levels(self) -> None:
        quantized, low, high = quantize_minmax(np.array([2.0, 3.0, 4.0]))
        assert (low, high) == (2.0, 4.0)
        assert quantized.tolist() == [0, 128, 255]

    def test_endpoints_exact(self) -> None:
        values = np.array([-3.5, 0.25, 7.0])
        quantized, low, high = quantize_minmax(values)
        restored = dequantize_minmax(quantized, low, high)
        assert restored[0] == -3.5
        assert restored[-1] == pytest.approx(7.0, abs=1e-12)

    def test_error_bound(self) -> None:
        values = np.random.default_rng(2).uniform(-1.0, 9.0, 500)
        quantized, low, high = quantize_minmax(values)
        restored = dequantize_minmax(quantized, low, high)
        assert np.abs(restored - values).max() <= (high - low) / 510.0 + 1e-12

    def test_monotonic(self) -> None:
        values = np.sort(np.random.default_rng(3).normal(size=200))
        quantized, _, _ = quantize_minmax(values)
        assert np.all(np.diff(quantized.astype(int)) >= 0)

    def test_constant(self) -> None:
        quantized, low, high = quantize_minmax(np.full(5, 3.0))
        assert (low, high) == (3.0, 3.0)
        np.testing.assert_array_equal(dequantize_minmax(quantized, low, high), np.full(5, 3.0))

    def test_empty(self) -> None:
        quantized, low, high = quantize_minmax(np.zeros(0))
        assert quantized.size == 0
        assert (low, high) == (0.0, 0.0)


class TestCompressedImage:
    def test_shape_checked(self) -> None:
        with pytest.raises(ValueError, match="Expected blocks of shape"):
            CompressedImage(
                width=8, height=8, block_size=8, used_basis=[0], blocks=np.zeros((2, 1))
            )

    def test_used_must_be_sorted(self) -> None:
        with pytest.raises(ValueError, match="sorted"):
            CompressedImage(
                width=8, height=8, block_size=8, used_basis=[3, 1], blocks=np.zeros((3, 2))
            )

    def test_basis_encoding(self) -> None:
        assert _image([5]).basis_encoding == "sparse"
        assert _image([0, 1]).basis_encoding == "dense"


class TestLayout:
    def test_dense_layout(self) -> None:
        data = ContainerCodec(8, quantizer="minmax").encode(_image([0, 3, 9, 63]))

        assert len(data) == 8 + 1 + 8 + 16 + 3 * 4
        assert struct.unpack("<II", data[:8]) == (8, 8)
        assert data[8] == BASIS_HEADING_DENSE
        bitmap = data[9:17]
        assert bitmap[0] == 0b1001
        assert bitmap[1] == 0b10
        assert bitmap[2:7] == bytes(5)
        assert bitmap[7] == 0x80

    def test_sparse_layout(self) -> None:
        data = ContainerCodec(8, quantizer="minmax").encode(_image([5]))

        assert len(data) == 8 + 1 + 4 + 4 + 16 + 3
        assert data[8] == BASIS_HEADING_SPARSE
        assert struct.unpack("<II", data[9:17]) == (1, 5)

    def test_symmetric_has_one_bound(self) -> None:
        data = ContainerCodec(8, quantizer="symmetric").encode(_image([5]))
        assert len(data) == 8 + 1 + 4 + 4 + 8 + 3

    def test_embedded_basis(self) -> None:
        basis = np.random.default_rng(9).normal(size=(2, 16))
        codec = ContainerCodec(4, quantizer="minmax", embeds_basis=True)
        data = codec.encode(_image([0, 1], block_size=4, basis=basis))

        assert struct.unpack("<II", data[8:16]) == (2, 16)
        stored = np.frombuffer(data[16:16 + 2 * 16 * 4], dtype="<f4")
        np.testing.assert_array_equal(stored, basis.astype(np.float32).ravel())

    def test_big_endian(self) -> None:
        image = CompressedImage(
            width=1, height=2, block_size=8, used_basis=[5], blocks=np.ones((3, 1))
        )
        data = ContainerCodec(8, quantizer="symmetric", byte_order="big").encode(image)

        assert data[:8] == b"\x00\x00\x00\x01\x00\x00\x00\x02"
        assert data[9:13] == b"\x00\x00\x00\x01"
        assert struct.unpack(">d", data[17:25]) == (1.0,)


class TestDecode:
    @pytest.mark.parametrize("quantizer", ["symmetric", "minmax"])
    @pytest.mark.parametrize("used", [[5], [0, 3, 9, 63]])
    def test_fields_restored(self, quantizer: str, used: list[int]) -> None:
        original = _image(used, width=13, height=9)
        codec = ContainerCodec(8, quantizer=quantizer)
        restored = codec.decode(codec.encode(original))

        assert (restored.width, restored.height, restored.block_size) == (13, 9, 8)
        assert restored.used_basis == used
        assert restored.basis is None
        # Both quantizers stay within max|v| / 255 of the input.
        bound = np.abs(original.blocks).max()
        np.testing.assert_allclose(restored.blocks, original.blocks, atol=bound / 255.0 + 1e-12)

    def test_bounds(self) -> None:
        original = _image([0, 1])
        codec = ContainerCodec(8, quantizer="minmax")
        restored = codec.decode(codec.encode(original))
        assert restored.bounds == (original.blocks.min(), original.blocks.max())

    def test_embedded_basis(self) -> None:
        basis = np.random.default_rng(9).normal(size=(3, 16))
        codec = ContainerCodec(4, quantizer="minmax", embeds_basis=True)
        restored = codec.decode(codec.encode(_image([0, 2], block_size=4, basis=basis)))

        assert restored.basis is not None
        np.testing.assert_array_equal(restored.basis, basis.astype(np.float32))

    def test_zero_size_image(self) -> None:
        codec = ContainerCodec(8, quantizer="minmax")
        restored = codec.decode(codec.encode(_image([0, 1], width=0, height=0)))
        assert restored.used_basis == [0, 1]
        assert restored.blocks.shape == (0, 2)

    def test_trailing_bytes_ignored(self) -> None:
        codec = ContainerCodec(8, quantizer="minmax")
        data = codec.encode(_image([5]))
        assert codec.decode(data + b"\xff\xff").used_basis == [5]


class TestDecodeErrors:
    @pytest.fixture
    def dense(self) -> bytes:
        return ContainerCodec(8, quantizer="minmax").encode(_image([0, 3, 9, 63]))

    @pytest.mark.parametrize(
        "length,field",
        [
            (0, "width"),
            (3, "width"),
            (5, "height"),
            (8, "basis heading"),
            (12, "basis bitmap"),
            (17, "minimum coefficient"),
            (30, "maximum coefficient"),
            (40, "coefficient data"),
        ],
    )
    def test_truncated(self, dense: bytes, length: int, field: str) -> None:
        with pytest.raises(ContainerDecodeError, match=f"missing {field} field") as exc:
            ContainerCodec(8, quantizer="minmax").decode(dense[:length])
        assert exc.value.field == field

    def test_truncated_sparse(self) -> None:
        data = ContainerCodec(8, quantizer="minmax").encode(_image([5]))
        codec = ContainerCodec(8, quantizer="minmax")

        with pytest.raises(ContainerDecodeError) as exc:
            codec.decode(data[:11])
        assert exc.value.field == "sparse basis count"

        with pytest.raises(ContainerDecodeError) as exc:
            codec.decode(data[:15])
        assert exc.value.field == "sparse basis indices"

    def test_unknown_heading(self, dense: bytes) -> None:
        corrupt = dense[:8] + bytes([7]) + dense[9:]
        with pytest.raises(ContainerDecodeError, match="unknown basis heading type: 0x7"):
            ContainerCodec(8, quantizer="minmax").decode(corrupt)

    def test_index_out_of_range(self) -> None:
        data = struct.pack("<II", 8, 8) + b"\x00" + struct.pack("<II", 1, 64)
        with pytest.raises(ContainerDecodeError) as exc:
            ContainerCodec(8, quantizer="minmax").decode(data + bytes(16 + 3))
        assert exc.value.field == "basis indices"

    def test_basis_dimension_mismatch(self) -> None:
        basis = np.random.default_rng(9).normal(size=(2, 64))
        data = ContainerCodec(8, "minmax", embeds_basis=True).encode(
            _image([0, 1], basis=basis)
        )

        with pytest.raises(ContainerDecodeError, match="does not match block size") as exc:
            ContainerCodec(4, "minmax", embeds_basis=True).decode(data)
        assert exc.value.field == "basis vector dimension"

    def test_basis_count_exceeds_dimension(self) -> None:
        data = struct.pack("<III", 4, 4, 17)
        with pytest.raises(ContainerDecodeError) as exc:
            ContainerCodec(4, "minmax", embeds_basis=True).decode(data + struct.pack("<I", 16))
        assert exc.value.field == "basis vector count"

    def test_truncated_basis_vectors(self) -> None:
        data = struct.pack("<IIII", 4, 4, 2, 16) + bytes(40)
        with pytest.raises(ContainerDecodeError) as exc:
            ContainerCodec(4, "minmax", embeds_basis=True).decode(data)
        assert exc.value.field == "basis vectors"

    def test_decode_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            ContainerCodec(8).decode(b"")


class TestEncodeErrors:
    def test_block_size_mismatch(self) -> None:
        with pytest.raises(ValueError, match="does not match codec"):
            ContainerCodec(4).encode(_image([0, 1]))

    def test_missing_basis(self) -> None:
        with pytest.raises(ValueError, match="embedded basis"):
            ContainerCodec(8, embeds_basis=True).encode(_image([0, 1]))

    def test_invalid_codec_settings(self) -> None:
        with pytest.raises(ValueError):
            ContainerCodec(0)
        with pytest.raises(ValueError):
            ContainerCodec(8, quantizer="linear")  # type: ignore[arg-type]


class TestEmptySelection:
    """No encoder writes an empty selection; decode refuses one before allocating."""

    def test_encode_rejects(self) -> None:
        with pytest.raises(ValueError, match="At least one basis vector"):
            ContainerCodec(8, quantizer="minmax").encode(_image([]))

    def test_sparse(self) -> None:
        data = (
            struct.pack("<II", 0xFFFFFFFF, 0xFFFFFFFF)
            + bytes([BASIS_HEADING_SPARSE])
            + struct.pack("<I", 0)
            + struct.pack("<dd", 0.0, 0.0)
        )
        with pytest.raises(ContainerDecodeError, match="empty basis selection") as exc:
            ContainerCodec(8, quantizer="minmax").decode(data)
        assert exc.value.field == "sparse basis count"

    def test_dense(self) -> None:
        data = (
            struct.pack("<II", 0xFFFFFFFF, 0xFFFFFFFF)
            + bytes([BASIS_HEADING_DENSE])
            + bytes(8)
            + struct.pack("<dd", 0.0, 0.0)
        )
        with pytest.raises(ContainerDecodeError) as exc:
            ContainerCodec(8, quantizer="minmax").decode(data)
        assert exc.value.field == "basis bitmap"

    def test_huge_dimensions_need_coefficient_data(self) -> None:
        data = (
            struct.pack("<II", 0xFFFFFFFF, 0xFFFFFFFF)
            + bytes([BASIS_HEADING_SPARSE])
            + struct.pack("<II", 1, 0)
            + struct.pack("<dd", 0.0, 1.0)
        )
        with pytest.raises(ContainerDecodeError) as exc:
            ContainerCodec(8, quantizer="minmax").decode(data)
        assert exc.value.field == "coefficient data"
