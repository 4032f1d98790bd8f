"""Tests for the split primitive and geometric subdivision."""

import numpy as np
import pytest
from Distributor import Subvolume, coverage_grid, split, subdivide, widest_axis


class TestSplit:
    """Tests for bisection along the widest axis."""

    def test_odd_length_upper_absorbs_remainder(self):
        """Lower half gets floor(n/2), upper half the rest."""
        upper, lower = split(Subvolume(0, (0,), (7,)))

        assert lower == Subvolume(0, (0,), (3,))
        assert upper == Subvolume(0, (3,), (4,))

    def test_splits_widest_axis_only(self):
        """Other axes keep their offsets and counts."""
        piece = Subvolume(2, (2, 5), (4, 9))
        upper, lower = split(piece)

        assert lower.offsets == (2, 5) and lower.counts == (4, 4)
        assert upper.offsets == (2, 9) and upper.counts == (4, 5)
        assert upper.volume_index == lower.volume_index == 2

    @pytest.mark.parametrize("offsets,counts", [((0,), (1,)), ((3, 1), (6, 6)), ((0, 0, 4), (2, 9, 3))])
    def test_halves_tile_piece(self, offsets, counts):
        """Counts on the split axis sum to n, offsets are {start, start + n // 2}."""
        piece = Subvolume(0, offsets, counts)
        axis = widest_axis(counts)
        upper, lower = split(piece)

        assert upper.counts[axis] + lower.counts[axis] == counts[axis]
        assert {lower.offsets[axis], upper.offsets[axis]} == {
            offsets[axis],
            offsets[axis] + counts[axis] // 2,
        }
        for other in range(len(counts)):
            if other != axis:
                assert upper.counts[other] == lower.counts[other] == counts[other]
                assert upper.offsets[other] == lower.offsets[other] == offsets[other]

    def test_tie_picks_first_axis(self):
        """Equal extents split along the lowest axis."""
        assert widest_axis((6, 6)) == 0
        assert widest_axis((2, 6, 6)) == 1

    def test_input_unchanged(self):
        """Split returns new pieces."""
        piece = Subvolume(0, (0, 0), (4, 4))
        split(piece)
        assert piece == Subvolume(0, (0, 0), (4, 4))

    def test_scalar_cannot_split(self):
        """A piece without axes has nothing to bisect."""
        with pytest.raises(ValueError):
            split(Subvolume(0, (), ()))


class TestSubdivide:
    """Tests for cutting a volume into k pieces."""

    def test_single_piece_is_whole_volume(self):
        assert subdivide(3, (4, 5), 1) == [Subvolume(3, (0, 0), (4, 5))]

    def test_two_pieces_lower_first(self):
        """First piece starts at the origin."""
        pieces = subdivide(0, (10,), 2)

        assert pieces == [Subvolume(0, (0,), (5,)), Subvolume(0, (5,), (5,))]

    def test_creation_order_not_spatial(self):
        """Pieces come out in split order, not sorted by position."""
        pieces = subdivide(0, (8,), 4)

        assert [p.offsets[0] for p in pieces] == [0, 4, 2, 6]
        assert all(p.counts == (2,) for p in pieces)

    @pytest.mark.parametrize("dims", [(10,), (5, 3), (4, 4, 2), (7, 1, 3)])
    def test_exact_tiling(self, dims):
        """Every k up to the cell count tiles the volume with non-empty pieces."""
        n_cells = int(np.prod(dims))
        for k in range(1, n_cells + 1):
            pieces = subdivide(0, dims, k)

            assert len(pieces) == k
            assert all(p.cell_count() > 0 for p in pieces)
            assert np.all(coverage_grid(dims, pieces) == 1)

    def test_more_pieces_than_cells(self):
        """Extra pieces are empty but the tiling still holds."""
        pieces = subdivide(0, (2,), 5)

        assert len(pieces) == 5
        assert sum(p.cell_count() for p in pieces) == 2
        assert np.all(coverage_grid((2,), pieces) == 1)

    def test_invalid_piece_count(self):
        with pytest.raises(ValueError):
            subdivide(0, (4,), 0)

    @pytest.mark.parametrize("dims,k", [((60, 50), 2000), ((3, 5), 40), ((1, 1000), 3000)])
    def test_order_matches_linear_scan(self, dims, k):
        """Picking the next piece to split agrees with scanning the whole list."""
        expected = [Subvolume.whole(0, dims)]
        for _ in range(k - 1):
            target = max(range(len(expected)), key=lambda i: expected[i].cell_count())
            upper, lower = split(expected[target])
            expected[target] = lower
            expected.append(upper)

        assert subdivide(0, dims, k) == expected
