"""
Configuration constants for Image Comparator.

This module contains all configurable defaults including:
- Supported image extensions
- Fingerprint grid size and similarity threshold
- Cache database location
"""

import os

# Raster formats the scanner picks up during directory walks
IMAGE_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff', '.tif',
    '.heic', '.heif',
}

# Magic numbers checked before a file is handed to the decoder.
# Extensions missing here are left for Pillow to validate.
MAGIC_NUMBERS = {
    '.png': (b'\x89PNG\r\n\x1a\n',),
    '.jpg': (b'\xff\xd8\xff',),
    '.jpeg': (b'\xff\xd8\xff',),
    '.gif': (b'GIF87a', b'GIF89a'),
    '.bmp': (b'BM',),
    '.tiff': (b'MM\x00*', b'II*\x00'),
    '.tif': (b'MM\x00*', b'II*\x00'),
}

# Default fingerprint grid size (N x N samples, N*N bits)
DEFAULT_GRID_SIZE = 64

# Default maximum Hamming distance for two images to be linked
# Lower = stricter matching (0 to grid_size**2)
DEFAULT_THRESHOLD = 15

# Default number of parallel workers
DEFAULT_WORKERS = min(32, (os.cpu_count() or 1) + 4)

# Decompression bomb limit for Pillow (500 megapixels)
MAX_IMAGE_PIXELS = 500_000_000

# Block size used when streaming files through SHA-256
HASH_BLOCK_SIZE = 65536

# SQLite has a limit of 999 variables, we use 500 for safety
CHUNK_SIZE = 500

# SQLite cache database location
CACHE_DIR = os.path.join(os.path.expanduser('~'), '.cache', 'image-comparator')
CACHE_DB_FILE = os.path.join(CACHE_DIR, 'hashes.db')

# User configuration directory (config.json lives here)
CONFIG_DIR = os.path.join(os.path.expanduser('~'), '.config', 'image-comparator')
