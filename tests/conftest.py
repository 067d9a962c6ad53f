"""
Pytest configuration and shared fixtures for test suite.
"""

import pytest
import tempfile
import shutil
from pathlib import Path

import numpy as np
from PIL import Image


def make_pattern_image(seed: int, blocks: int = 16, block_width: int = 8, block_height: int = 8) -> Image.Image:
    """
    Grayscale image made of constant blocks with random levels.

    Block sizes are whole multiples of the grid cells used in the tests so
    box resampling reproduces the block levels exactly.
    """
    rng = np.random.default_rng(seed)
    levels = rng.integers(0, 256, size=(blocks, blocks), dtype=np.uint8)
    pixels = levels.repeat(block_height, axis=0).repeat(block_width, axis=1)
    return Image.fromarray(pixels, mode='L')


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def temp_cache_db(temp_dir):
    """Create a temporary database file for cache tests."""
    db_path = temp_dir / "cache" / "test_cache.db"
    return str(db_path)


@pytest.fixture
def sample_images(temp_dir):
    """
    Create a set of sample images for testing.

    Returns:
        dict with paths to:
        - original.png: random block pattern
        - copy.png: byte-identical copy of original.png
        - rotated.png: original rotated 90 degrees
        - other.png: unrelated pattern
        - corrupted.png: text file with an image extension
    """
    images_dir = temp_dir / "images"
    images_dir.mkdir()
    images = {}

    original = make_pattern_image(seed=1)
    path = images_dir / "original.png"
    original.save(path, 'PNG')
    images['original'] = str(path)

    copy_path = images_dir / "copy.png"
    shutil.copyfile(path, copy_path)
    images['copy'] = str(copy_path)

    rotated_path = images_dir / "rotated.png"
    original.transpose(Image.Transpose.ROTATE_90).save(rotated_path, 'PNG')
    images['rotated'] = str(rotated_path)

    other_path = images_dir / "other.png"
    make_pattern_image(seed=2).save(other_path, 'PNG')
    images['other'] = str(other_path)

    corrupted_path = images_dir / "corrupted.png"
    corrupted_path.write_text("not an image")
    images['corrupted'] = str(corrupted_path)

    return images


@pytest.fixture
def isolated_user_config(temp_dir, monkeypatch):
    """Point the user configuration at an empty directory."""
    from imgcomparator.user_config import get_user_config

    config_dir = temp_dir / "config"
    config_dir.mkdir()
    monkeypatch.setenv('IMGCOMPARATOR_CONFIG_DIR', str(config_dir))
    for name in ('IMGCOMPARATOR_GRID_SIZE', 'IMGCOMPARATOR_THRESHOLD', 'IMGCOMPARATOR_WORKERS',
                 'IMGCOMPARATOR_CACHE_DB', 'IMGCOMPARATOR_IGNORE_PATHS'):
        monkeypatch.delenv(name, raising=False)

    config = get_user_config()
    config.reload()
    yield config
    config.reload()


@pytest.fixture
def pattern_image():
    """Factory fixture for block-pattern test images."""
    return make_pattern_image
