"""
Unit tests for content identity and fingerprint hashing.
"""

import hashlib

import imagehash
import numpy as np
import pytest
from PIL import Image

from imgcomparator.errors import ConfigurationError, DecodeError, IoError, UnsupportedFormatError
from imgcomparator.scanner.hashing import (
    canonical_hash,
    compute_content_identity,
    compute_fingerprint,
    decode_fingerprint,
    encode_fingerprint,
    file_stats,
    fingerprint_grid_size,
    fingerprint_image,
    hamming_distance,
    rotation_candidates,
    sample_grid,
)


class TestContentIdentity:
    """Test SHA-256 content identity."""

    def test_digest_and_size(self, temp_dir):
        """Test digest matches hashlib and size counts every byte."""
        path = temp_dir / "data.bin"
        payload = b"x" * 200_000
        path.write_bytes(payload)

        identity = compute_content_identity(path)
        assert identity.digest == hashlib.sha256(payload).hexdigest()
        assert identity.size == len(payload)
        assert len(identity.digest) == 64

    def test_identical_files_share_identity(self, sample_images):
        """Test byte-identical files at different paths get the same identity."""
        first = compute_content_identity(sample_images['original'])
        second = compute_content_identity(sample_images['copy'])
        assert first == second

    def test_different_files_differ(self, sample_images):
        """Test different contents give different digests."""
        first = compute_content_identity(sample_images['original'])
        second = compute_content_identity(sample_images['other'])
        assert first.digest != second.digest

    def test_empty_file(self, temp_dir):
        """Test an empty file has size 0 and the empty-input digest."""
        path = temp_dir / "empty.bin"
        path.write_bytes(b"")
        identity = compute_content_identity(path)
        assert identity.size == 0
        assert identity.digest == hashlib.sha256(b"").hexdigest()

    def test_missing_file_raises_io_error(self, temp_dir):
        """Test missing file raises IoError carrying the path."""
        missing = temp_dir / "missing.png"
        with pytest.raises(IoError) as excinfo:
            compute_content_identity(missing)
        assert excinfo.value.path == str(missing)

    def test_file_stats_missing(self, temp_dir):
        """Test stat failure raises IoError."""
        with pytest.raises(IoError):
            file_stats(temp_dir / "missing.png")


class TestFingerprint:
    """Test rotation-invariant perceptual fingerprints."""

    @pytest.mark.parametrize("grid_size", [8, 16])
    @pytest.mark.parametrize("transpose", [
        Image.Transpose.ROTATE_90,
        Image.Transpose.ROTATE_180,
        Image.Transpose.ROTATE_270,
    ])
    def test_rotation_invariance(self, pattern_image, grid_size, transpose):
        """Test an image and its quarter-turn rotations share one fingerprint."""
        img = pattern_image(seed=7)
        rotated = img.transpose(transpose)
        assert fingerprint_image(img, grid_size) == fingerprint_image(rotated, grid_size)

    def test_rotation_invariance_non_square(self, pattern_image):
        """Test invariance holds for a non-square image."""
        img = pattern_image(seed=11, block_width=12, block_height=8)
        assert img.size == (192, 128)
        rotated = img.transpose(Image.Transpose.ROTATE_90)
        assert fingerprint_image(img, 16) == fingerprint_image(rotated, 16)

    def test_rotated_file_matches(self, sample_images):
        """Test a rotated file on disk yields the original's fingerprint."""
        original = compute_fingerprint(sample_images['original'], 16)
        rotated = compute_fingerprint(sample_images['rotated'], 16)
        assert hamming_distance(original, rotated) == 0

    def test_deterministic(self, sample_images):
        """Test repeated computation gives identical fingerprints."""
        first = compute_fingerprint(sample_images['original'], 16)
        second = compute_fingerprint(sample_images['original'], 16)
        assert encode_fingerprint(first) == encode_fingerprint(second)

    @pytest.mark.parametrize("grid_size", [1, 5, 8, 64])
    def test_fingerprint_length(self, sample_images, grid_size):
        """Test the fingerprint holds grid_size**2 bits."""
        fp = compute_fingerprint(sample_images['original'], grid_size)
        assert fp.hash.shape == (grid_size, grid_size)
        assert fingerprint_grid_size(fp) == grid_size

    def test_canonical_is_smallest_rotation(self, pattern_image):
        """Test the canonical fingerprint is the minimum of the four candidates."""
        grid = sample_grid(pattern_image(seed=3), 16)
        candidates = [encode_fingerprint(c) for c in rotation_candidates(grid)]
        assert len(candidates) == 4
        assert encode_fingerprint(canonical_hash(grid)) == min(candidates)

    def test_uniform_image_sets_every_bit(self):
        """Test a flat image maps to all ones (every cell equals the mean)."""
        img = Image.new('L', (64, 64), color=128)
        fp = fingerprint_image(img, 8)
        assert fp.hash.all()

    def test_color_image_uses_luminance(self, pattern_image):
        """Test RGB input is reduced to luminance before sampling."""
        gray = pattern_image(seed=5)
        assert fingerprint_image(gray.convert('RGB'), 16) == fingerprint_image(gray, 16)

    def test_different_images_differ(self, sample_images):
        """Test unrelated images are far apart."""
        first = compute_fingerprint(sample_images['original'], 16)
        second = compute_fingerprint(sample_images['other'], 16)
        assert hamming_distance(first, second) > 20

    def test_invalid_grid_size(self, pattern_image):
        """Test a non-positive grid size is rejected."""
        with pytest.raises(ConfigurationError):
            fingerprint_image(pattern_image(seed=1), 0)


def noise_image(width, height, seed=0):
    rng = np.random.default_rng(seed)
    return Image.fromarray(rng.integers(0, 256, size=(height, width), dtype=np.uint8), mode='L')


def gradient_image(width, height):
    x = np.linspace(0, 255, width)
    y = np.linspace(0, 255, height)
    levels = (0.6 * x[None, :] + 0.4 * y[:, None]).astype(np.uint8)
    return Image.fromarray(levels, mode='L')


class TestSampleGrid:
    """Test area-average sampling."""

    def test_cells_are_scaled_area_means(self, pattern_image):
        """Test each cell equals its block level times the pixel count."""
        img = pattern_image(seed=9)
        levels = np.asarray(img)[::8, ::8].astype(np.int64)
        grid = sample_grid(img, 16)
        assert grid.dtype == np.int64
        assert np.array_equal(grid, levels * 128 * 128)

    @pytest.mark.parametrize("size", [(101, 67), (97, 131), (250, 33), (1000, 750), (5, 3)])
    @pytest.mark.parametrize("grid_size", [16, 64])
    def test_rotating_image_rotates_grid(self, size, grid_size):
        """Test sampling commutes with quarter turns for sizes that do not divide the grid."""
        img = noise_image(*size, seed=size[0])
        grid = sample_grid(img, grid_size)
        rotated = sample_grid(img.transpose(Image.Transpose.ROTATE_90), grid_size)
        # ROTATE_90 is counter-clockwise, which is np.rot90 with k=1
        assert np.array_equal(rotated, np.rot90(grid))

    def test_total_is_preserved(self):
        """Test the grid sums to the image total scaled by N*N."""
        img = noise_image(101, 67, seed=4)
        total = int(np.asarray(img, dtype=np.int64).sum())
        assert int(sample_grid(img, 16).sum()) == total * 16 * 16


class TestRotatedFiles:
    """Test rotated copies saved to disk share the original's fingerprint."""

    @pytest.mark.parametrize("size", [(101, 67), (97, 131), (250, 33)])
    @pytest.mark.parametrize("grid_size", [16, 64])
    @pytest.mark.parametrize("transpose", [
        Image.Transpose.ROTATE_90,
        Image.Transpose.ROTATE_180,
        Image.Transpose.ROTATE_270,
    ])
    def test_odd_sizes(self, temp_dir, size, grid_size, transpose):
        """Test noise images whose size is not a multiple of the grid."""
        img = noise_image(*size, seed=size[1])
        img.save(temp_dir / "original.png")
        img.transpose(transpose).save(temp_dir / "rotated.png")

        original = compute_fingerprint(temp_dir / "original.png", grid_size)
        rotated = compute_fingerprint(temp_dir / "rotated.png", grid_size)
        assert hamming_distance(original, rotated) == 0

    @pytest.mark.parametrize("make_image", [noise_image, gradient_image])
    @pytest.mark.parametrize("transpose", [
        Image.Transpose.ROTATE_90,
        Image.Transpose.ROTATE_180,
        Image.Transpose.ROTATE_270,
    ])
    def test_photo_sized_image_default_grid(self, temp_dir, make_image, transpose):
        """Test a 1000x750 image at the default 64x64 grid."""
        img = make_image(1000, 750)
        img.save(temp_dir / "original.png")
        img.transpose(transpose).save(temp_dir / "rotated.png")

        original = compute_fingerprint(temp_dir / "original.png", 64)
        rotated = compute_fingerprint(temp_dir / "rotated.png", 64)
        assert hamming_distance(original, rotated) == 0


class TestFingerprintErrors:
    """Test decode and I/O failures."""

    def test_unrecognised_format(self, sample_images):
        """Test non-image content raises UnsupportedFormatError."""
        with pytest.raises(UnsupportedFormatError) as excinfo:
            compute_fingerprint(sample_images['corrupted'], 16)
        assert isinstance(excinfo.value, DecodeError)
        assert excinfo.value.path == sample_images['corrupted']

    def test_truncated_image(self, sample_images, temp_dir):
        """Test a truncated PNG raises DecodeError."""
        data = open(sample_images['original'], 'rb').read()
        truncated = temp_dir / "truncated.png"
        truncated.write_bytes(data[:len(data) // 2])
        with pytest.raises(DecodeError):
            compute_fingerprint(truncated, 16)

    def test_missing_file(self, temp_dir):
        """Test a missing file raises IoError."""
        with pytest.raises(IoError):
            compute_fingerprint(temp_dir / "missing.png", 16)


class TestHammingDistance:
    """Test fingerprint distance."""

    def test_counts_differing_bits(self):
        """Test distance equals the number of flipped bits."""
        bits = np.zeros((4, 4), dtype=bool)
        flipped = bits.copy()
        flipped[0, 0] = flipped[1, 2] = flipped[3, 3] = True
        first = decode_fingerprint(encode_fingerprint(fingerprint_from(bits)), 4)
        second = fingerprint_from(flipped)
        assert hamming_distance(first, second) == 3
        assert hamming_distance(second, first) == 3
        assert hamming_distance(first, first) == 0

    def test_mismatched_grid_sizes(self):
        """Test comparing different grid sizes raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            hamming_distance(
                fingerprint_from(np.zeros((4, 4), dtype=bool)),
                fingerprint_from(np.zeros((8, 8), dtype=bool)),
            )


class TestFingerprintCodec:
    """Test the stored text form of fingerprints."""

    def test_fixed_width_hex(self):
        """Test encoding is lowercase hex of ceil(N*N/4) digits."""
        bits = np.zeros((5, 5), dtype=bool)
        bits[4, 4] = True
        text = encode_fingerprint(fingerprint_from(bits))
        assert len(text) == 7
        assert text == text.lower()
        assert decode_fingerprint(text, 5) == fingerprint_from(bits)

    def test_hex_order_matches_bit_order(self):
        """Test first row-major bit is the most significant."""
        low = np.zeros((4, 4), dtype=bool)
        low[3, 3] = True
        high = np.zeros((4, 4), dtype=bool)
        high[0, 0] = True
        assert encode_fingerprint(fingerprint_from(low)) < encode_fingerprint(fingerprint_from(high))

    @pytest.mark.parametrize("text", ["abc", "ffff0", "zzzz"])
    def test_malformed_text_rejected(self, text):
        """Test wrong width or non-hex text raises ValueError."""
        with pytest.raises(ValueError):
            decode_fingerprint(text, 4)

    def test_overflow_rejected(self):
        """Test bits beyond N*N are rejected."""
        # 5x5 grid has 25 bits; 7 hex digits can hold 28
        with pytest.raises(ValueError):
            decode_fingerprint("fffffff", 5)


def fingerprint_from(bits):
    return imagehash.ImageHash(bits)
