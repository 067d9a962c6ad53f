"""
Unit tests for duplicate grouping.
"""

import random

import imagehash
import numpy as np
import pytest

from imgcomparator.errors import ConfigurationError
from imgcomparator.scanner.clustering import (
    UnionFind,
    common_grid_size,
    find_duplicate_groups,
    validate_threshold,
)


def make_hash(set_bits=(), grid_size=4):
    """Fingerprint with the given row-major bit indices set."""
    bits = np.zeros(grid_size * grid_size, dtype=bool)
    bits[list(set_bits)] = True
    return imagehash.ImageHash(bits.reshape(grid_size, grid_size))


def random_entries(count, grid_size=8, seed=0):
    rng = np.random.default_rng(seed)
    base = rng.integers(0, 2, size=(4, grid_size * grid_size)).astype(bool)
    entries = []
    for i in range(count):
        # Small perturbations of a few base patterns give a mix of near and far pairs
        bits = base[i % 4].copy()
        flips = rng.choice(grid_size * grid_size, size=int(rng.integers(0, 12)), replace=False)
        bits[flips] = ~bits[flips]
        entries.append((f"/images/img_{i:03d}.png", imagehash.ImageHash(bits.reshape(grid_size, grid_size))))
    return entries


def as_sets(groups):
    return [set(group.paths) for group in groups]


class TestUnionFind:
    """Test the disjoint-set forest."""

    def test_initially_disjoint(self):
        """Test every element starts in its own set."""
        forest = UnionFind(4)
        assert sorted(forest.components()) == [[0], [1], [2], [3]]

    def test_union_merges_and_reports(self):
        """Test union returns True only when two sets merge."""
        forest = UnionFind(5)
        assert forest.union(0, 1) is True
        assert forest.union(1, 2) is True
        assert forest.union(0, 2) is False
        assert forest.find(0) == forest.find(2)
        assert forest.find(3) != forest.find(0)
        assert sorted(forest.components()) == [[0, 1, 2], [3], [4]]

    def test_long_chain(self):
        """Test a long chain collapses to one root."""
        forest = UnionFind(1000)
        for i in range(999):
            forest.union(i, i + 1)
        roots = {forest.find(i) for i in range(1000)}
        assert len(roots) == 1


class TestValidation:
    """Test threshold and grid size checks."""

    @pytest.mark.parametrize("threshold", [0, 8, 16])
    def test_valid_thresholds(self, threshold):
        """Test thresholds within [0, N*N] pass."""
        validate_threshold(threshold, 4)

    @pytest.mark.parametrize("threshold", [-1, 17, 2.5, True])
    def test_invalid_thresholds(self, threshold):
        """Test out-of-range or non-integer thresholds raise."""
        with pytest.raises(ConfigurationError):
            validate_threshold(threshold, 4)

    def test_common_grid_size(self):
        """Test shared grid size is reported and mixed sizes rejected."""
        assert common_grid_size([]) is None
        assert common_grid_size([make_hash(), make_hash((1,))]) == 4
        with pytest.raises(ConfigurationError):
            common_grid_size([make_hash(), make_hash(grid_size=8)])


class TestFindDuplicateGroups:
    """Test find_duplicate_groups function."""

    def test_empty_and_single(self):
        """Test fewer than two entries yields no groups."""
        assert find_duplicate_groups([], 5) == []
        assert find_duplicate_groups([("/a.png", make_hash())], 5) == []

    def test_identical_fingerprints_grouped(self):
        """Test distance-0 fingerprints form one group."""
        entries = [("/b.png", make_hash((1, 2))), ("/a.png", make_hash((1, 2))), ("/c.png", make_hash(range(8, 16)))]
        groups = find_duplicate_groups(entries, 0)
        assert len(groups) == 1
        assert groups[0].paths == ("/a.png", "/b.png")
        assert groups[0].grid_size == 4
        assert groups[0].threshold == 0

    def test_distance_above_threshold_not_grouped(self):
        """Test a pair three bits apart is split at threshold 0 and joined at 3."""
        entries = [("/a.png", make_hash()), ("/b.png", make_hash((0, 5, 9)))]
        assert find_duplicate_groups(entries, 0) == []
        assert find_duplicate_groups(entries, 2) == []
        assert as_sets(find_duplicate_groups(entries, 3)) == [{"/a.png", "/b.png"}]

    def test_transitive_membership(self):
        """Test A and C join through B even when A and C are too far apart."""
        entries = [
            ("/a.png", make_hash()),
            ("/b.png", make_hash((0, 1))),
            ("/c.png", make_hash((0, 1, 2, 3))),
        ]
        groups = find_duplicate_groups(entries, 2)
        assert as_sets(groups) == [{"/a.png", "/b.png", "/c.png"}]

    def test_groups_sorted_with_sequential_ids(self):
        """Test members and groups are ordered by path and ids count up."""
        entries = [
            ("/z1.png", make_hash(range(16))),
            ("/z0.png", make_hash(range(16))),
            ("/m1.png", make_hash()),
            ("/m0.png", make_hash()),
        ]
        groups = find_duplicate_groups(entries, 1, start_id=10)
        assert [g.paths for g in groups] == [("/m0.png", "/m1.png"), ("/z0.png", "/z1.png")]
        assert [g.id for g in groups] == [10, 11]

    def test_duplicate_paths_collapse(self):
        """Test a path listed twice counts once."""
        entries = [("/a.png", make_hash()), ("/a.png", make_hash())]
        assert find_duplicate_groups(entries, 0) == []

    def test_mixed_grid_sizes_rejected(self):
        """Test mixing grid sizes raises ConfigurationError."""
        entries = [("/a.png", make_hash()), ("/b.png", make_hash(grid_size=8))]
        with pytest.raises(ConfigurationError):
            find_duplicate_groups(entries, 1)

    def test_threshold_out_of_range(self):
        """Test a threshold longer than the fingerprint is rejected."""
        entries = [("/a.png", make_hash()), ("/b.png", make_hash())]
        with pytest.raises(ConfigurationError):
            find_duplicate_groups(entries, 17)

    def test_full_threshold_groups_everything(self):
        """Test threshold N*N links every pair."""
        entries = random_entries(12, grid_size=4)
        groups = find_duplicate_groups(entries, 16)
        assert len(groups) == 1
        assert groups[0].file_count == 12

    def test_matches_brute_force(self):
        """Test the partition equals a naive all-pairs computation."""
        entries = random_entries(60)
        threshold = 10
        forest = UnionFind(len(entries))
        for i in range(len(entries)):
            for j in range(i + 1, len(entries)):
                if entries[i][1] - entries[j][1] <= threshold:
                    forest.union(i, j)
        expected = sorted(
            sorted(entries[i][0] for i in component)
            for component in forest.components()
            if len(component) > 1
        )
        groups = find_duplicate_groups(entries, threshold)
        assert [list(g.paths) for g in groups] == expected

    @pytest.mark.parametrize("max_workers", [1, 2, 3, 16])
    def test_independent_of_worker_count(self, max_workers):
        """Test the partition does not depend on parallelism."""
        entries = random_entries(50)
        baseline = find_duplicate_groups(entries, 8, max_workers=1)
        assert find_duplicate_groups(entries, 8, max_workers=max_workers) == baseline

    def test_independent_of_input_order(self):
        """Test shuffling the input does not change the result."""
        entries = random_entries(50)
        baseline = find_duplicate_groups(entries, 8)
        shuffled = list(entries)
        random.Random(42).shuffle(shuffled)
        assert find_duplicate_groups(shuffled, 8) == baseline

    def test_threshold_monotonic(self):
        """Test raising the threshold only merges groups."""
        entries = random_entries(40)
        previous = as_sets(find_duplicate_groups(entries, 0))
        for threshold in range(1, 25):
            current = as_sets(find_duplicate_groups(entries, threshold))
            for group in previous:
                assert any(group <= bigger for bigger in current)
            previous = current

    def test_progress_callback(self):
        """Test progress reaches the total number of chunks."""
        calls = []
        find_duplicate_groups(random_entries(20), 4, max_workers=2,
                              progress_callback=lambda done, total: calls.append((done, total)))
        assert calls
        assert calls[-1][0] == calls[-1][1]
