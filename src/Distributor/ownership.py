"""Ownership walk over the concatenated volume catalog.

Each rank gets a contiguous quota ``total / size`` of the concatenation of all
volumes, in catalog order. The walk records, per volume, which ranks receive a
positive share of it. Boundaries are compared on values scaled by ``size`` so
the quota never has to be represented as a float.
"""

from __future__ import annotations

from typing import List, Sequence


def ownership_lists(weights: Sequence[int], size: int) -> List[List[int]]:
    """Compute the ordered owner ranks of every volume.

    Parameters
    ----------
    weights : sequence of int
        Per-volume weight (cell count, or byte size), in catalog order.
        Zero-weight volumes are skipped and get an empty owner list.
    size : int
        Number of ranks in the process group.

    Returns
    -------
    list of list of int
        One strictly increasing list of ranks per volume.

    Examples
    --------
    >>> ownership_lists([10, 10], 4)
    [[0, 1], [2, 3]]
    >>> ownership_lists([3], 2)
    [[0, 1]]
    """
    if size < 1:
        raise ValueError(f"Process count must be >= 1, got {size}")
    weights = [int(w) for w in weights]
    if any(w < 0 for w in weights):
        raise ValueError(f"Volume weights must be non-negative: {weights}")

    owners: List[List[int]] = [[] for _ in weights]
    total = sum(weights)
    if total == 0:
        return owners

    # All positions below are multiplied by size
    end = total * size
    nonzero = [i for i, w in enumerate(weights) if w > 0]

    rank = 0
    consumed = 0
    cumulative = 0
    pos = 0
    volume_boundary = weights[nonzero[0]] * size

    while consumed < end:
        index = nonzero[pos]
        rank_boundary = total * (rank + 1)

        # consumed is below both boundaries here, so the share is positive
        owners[index].append(rank)

        if volume_boundary <= rank_boundary:
            consumed = volume_boundary
            if volume_boundary == rank_boundary:
                # Quota used up exactly at the volume edge
                rank = min(rank + 1, size - 1)
            pos += 1
            if pos < len(nonzero):
                cumulative += weights[index]
                volume_boundary = (cumulative + weights[nonzero[pos]]) * size
        else:
            consumed = rank_boundary
            rank = min(rank + 1, size - 1)

    return owners

