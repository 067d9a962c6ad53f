"""
Clustering module for the scanner package.

Groups fingerprinted files into duplicate sets. Every unordered pair of
files is compared; pairs within the distance threshold are merged with a
Union-Find structure, so membership is transitive: A and C end up in the
same group when both are close to B, even if A and C are not close to
each other.

Pairwise comparison is split into row chunks that run on a thread pool.
Each chunk returns its own edge list and the edges are merged on the
calling thread, so the partition does not depend on scheduling order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional

from ..config import DEFAULT_WORKERS
from ..errors import ConfigurationError
from ..models import DuplicateGroup
from .dependencies import imagehash, np, progress_bar
from .hashing import fingerprint_grid_size


logger = logging.getLogger(__name__)

# Set-bit count for every byte value
_POPCOUNT = np.array([bin(value).count('1') for value in range(256)], dtype=np.uint16)


class UnionFind:
    """Disjoint-set forest with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # Path compression
        while self.parent[x] != root:
            next_x = self.parent[x]
            self.parent[x] = root
            x = next_x
        return root

    def union(self, x: int, y: int) -> bool:
        """Merge the sets holding x and y. Returns False if already merged."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def components(self) -> list[list[int]]:
        """All sets, each listed in ascending index order."""
        members: dict[int, list[int]] = defaultdict(list)
        for i in range(len(self.parent)):
            members[self.find(i)].append(i)
        return list(members.values())


def validate_threshold(threshold: int, grid_size: int) -> None:
    """
    Check that a threshold fits the fingerprint length.

    Raises:
        ConfigurationError: If threshold is not an integer in [0, grid_size**2]
    """
    bit_count = grid_size * grid_size
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise ConfigurationError(f"threshold must be an integer, got {threshold!r}")
    if not 0 <= threshold <= bit_count:
        raise ConfigurationError(
            f"threshold must be between 0 and {bit_count} for grid size {grid_size}, got {threshold}"
        )


def common_grid_size(fingerprints: Iterable[imagehash.ImageHash]) -> Optional[int]:
    """
    Grid size shared by all fingerprints (None if there are none).

    Raises:
        ConfigurationError: If the fingerprints come from different grid sizes
    """
    sizes = {fingerprint_grid_size(fp) for fp in fingerprints}
    if len(sizes) > 1:
        raise ConfigurationError(
            f"cannot cluster fingerprints of mixed grid sizes: {sorted(sizes)}"
        )
    return sizes.pop() if sizes else None


def _pack(fingerprints: list[imagehash.ImageHash]) -> np.ndarray:
    """Pack fingerprints into an (n, bytes) uint8 matrix."""
    return np.stack([np.packbits(fp.hash.flatten()) for fp in fingerprints])


def _row_chunks(count: int, max_workers: int) -> list[tuple[int, int]]:
    """Split rows 0..count-2 into contiguous (start, stop) ranges."""
    rows = count - 1
    if rows <= 0:
        return []
    chunk_count = max(1, min(rows, max_workers * 4))
    size, extra = divmod(rows, chunk_count)
    chunks = []
    start = 0
    for index in range(chunk_count):
        stop = start + size + (1 if index < extra else 0)
        chunks.append((start, stop))
        start = stop
    return chunks


def _chunk_edges(packed: np.ndarray, start: int, stop: int, threshold: int) -> list[tuple[int, int]]:
    """Pairs (i, j), i in [start, stop), j > i, within threshold bits."""
    edges = []
    for i in range(start, stop):
        differing = np.bitwise_xor(packed[i + 1:], packed[i])
        distances = _POPCOUNT[differing].sum(axis=1)
        for j in np.nonzero(distances <= threshold)[0]:
            edges.append((i, i + 1 + int(j)))
    return edges


def find_duplicate_groups(
    entries: Iterable[tuple[str, imagehash.ImageHash]],
    threshold: int,
    max_workers: int = DEFAULT_WORKERS,
    start_id: int = 1,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    show_progress: bool = False,
) -> list[DuplicateGroup]:
    """
    Partition fingerprinted files into duplicate groups.

    Args:
        entries: (path, fingerprint) pairs, all at the same grid size
        threshold: Maximum Hamming distance for two files to be linked
        max_workers: Number of threads used for pairwise comparison
        start_id: Starting ID for duplicate groups
        progress_callback: Optional callback(done_chunks, total_chunks)
        show_progress: Whether to show tqdm progress bar

    Returns:
        Groups of two or more files, members sorted by path and groups
        sorted by their first member

    Raises:
        ConfigurationError: On mixed grid sizes or an out-of-range threshold
    """
    by_path: dict[str, imagehash.ImageHash] = {}
    for path, fingerprint in entries:
        by_path[str(path)] = fingerprint

    grid_size = common_grid_size(by_path.values())
    if grid_size is None:
        return []
    validate_threshold(threshold, grid_size)

    paths = sorted(by_path)
    if len(paths) < 2:
        return []

    packed = _pack([by_path[path] for path in paths])
    chunks = _row_chunks(len(paths), max_workers)
    edge_lists: list[list[tuple[int, int]]] = [[] for _ in chunks]

    total_comparisons = (len(paths) * (len(paths) - 1)) // 2
    pbar = progress_bar(len(chunks), "Comparing images", "chunk", show_progress and total_comparisons > 1000)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = {
            executor.submit(_chunk_edges, packed, start, stop, threshold): index
            for index, (start, stop) in enumerate(chunks)
        }
        for done, future in enumerate(as_completed(futures), start=1):
            edge_lists[futures[future]] = future.result()
            if pbar is not None:
                pbar.update(1)
            if progress_callback:
                progress_callback(done, len(chunks))

    if pbar is not None:
        pbar.close()

    # Merge on this thread; union order does not change the components
    forest = UnionFind(len(paths))
    matches = 0
    for edges in edge_lists:
        for i, j in edges:
            forest.union(i, j)
            matches += 1

    logger.debug(
        f"Compared {total_comparisons:,} pairs at grid size {grid_size}, "
        f"{matches:,} within threshold {threshold}"
    )

    return _collect_duplicate_groups(paths, forest, grid_size, threshold, start_id)


def _collect_duplicate_groups(
    paths: list[str],
    forest: UnionFind,
    grid_size: int,
    threshold: int,
    start_id: int,
) -> list[DuplicateGroup]:
    """Turn Union-Find components of two or more files into groups."""
    members = [
        tuple(paths[i] for i in component)
        for component in forest.components()
        if len(component) > 1
    ]
    members.sort()
    return [
        DuplicateGroup(id=start_id + offset, paths=group_paths, grid_size=grid_size, threshold=threshold)
        for offset, group_paths in enumerate(members)
    ]


__all__ = [
    'UnionFind',
    'validate_threshold',
    'common_grid_size',
    'find_duplicate_groups',
]
