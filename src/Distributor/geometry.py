"""Subvolume geometry: bisection along the widest axis.

Pure geometric logic with no MPI dependencies.
"""

from __future__ import annotations

import heapq
from typing import List, Sequence, Tuple

from .datastructures import Subvolume


def widest_axis(counts: Sequence[int]) -> int:
    """Index of the largest count (first one on ties)."""
    if not counts:
        raise ValueError("Cannot pick an axis of a zero-dimensional piece")
    return max(range(len(counts)), key=lambda i: (counts[i], -i))


def split(piece: Subvolume) -> Tuple[Subvolume, Subvolume]:
    """Bisect a piece along its widest axis.

    Parameters
    ----------
    piece : Subvolume
        Region to split. Not modified.

    Returns
    -------
    tuple of Subvolume
        ``(upper, lower)``. ``lower`` keeps the original start and holds
        ``n // 2`` cells on the split axis; ``upper`` starts right after it and
        absorbs the odd remainder.
    """
    axis = widest_axis(piece.counts)
    size = piece.counts[axis]
    lower_count = size // 2
    upper_count = size - lower_count

    lower_counts = list(piece.counts)
    lower_counts[axis] = lower_count
    lower = Subvolume(piece.volume_index, piece.offsets, tuple(lower_counts))

    upper_offsets = list(piece.offsets)
    upper_offsets[axis] += lower_count
    upper_counts = list(piece.counts)
    upper_counts[axis] = upper_count
    upper = Subvolume(piece.volume_index, tuple(upper_offsets), tuple(upper_counts))

    return upper, lower


def subdivide(volume_index: int, dimensions: Sequence[int], k: int) -> List[Subvolume]:
    """Cut a volume into exactly ``k`` tiling pieces.

    The largest piece so far (lowest index on ties) is split ``k - 1`` times.
    The lower half takes the slot of the piece it came from, the upper half
    is appended, so the returned order depends only on ``dimensions`` and
    ``k``. Piece ``i`` goes to the ``i``-th owner of the volume.

    Under over-subscription some pieces may hold zero cells.
    """
    if k < 1:
        raise ValueError(f"Cannot subdivide into {k} pieces")

    pieces = [Subvolume.whole(volume_index, dimensions)]
    # (-cells, slot): the heap top is the largest piece, lowest slot on ties
    heap = [(-pieces[0].cell_count(), 0)]
    for _ in range(k - 1):
        _, target = heapq.heappop(heap)
        upper, lower = split(pieces[target])
        pieces[target] = lower
        pieces.append(upper)
        heapq.heappush(heap, (-lower.cell_count(), target))
        heapq.heappush(heap, (-upper.cell_count(), len(pieces) - 1))
    return pieces
