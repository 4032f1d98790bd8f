"""Post-processing and analysis of partition plans.

A plan is the mapping rank -> subvolumes produced by ``plan_all_ranks`` (or
gathered from an MPI run). This module checks that a plan tiles its catalog,
summarizes how balanced it is, and converts it to a table for logging.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .datastructures import PartitionMetrics, Subvolume, Volume

Plan = Dict[int, List[Subvolume]]


def coverage_grid(dimensions: Sequence[int], subvolumes: Sequence[Subvolume]) -> np.ndarray:
    """Count how many subvolumes cover each cell of a volume.

    Raises
    ------
    ValueError
        If a subvolume lies (partly) outside the volume.
    """
    covered = np.zeros(tuple(dimensions), dtype=np.int32)
    for sub in subvolumes:
        if len(sub.offsets) != len(dimensions) or any(
            o < 0 or e > d for o, e, d in zip(sub.offsets, sub.end, dimensions)
        ):
            raise ValueError(f"{sub} lies outside volume of shape {tuple(dimensions)}")
        covered[sub.as_slices()] += 1
    return covered


def subvolumes_by_volume(plan: Plan) -> Dict[int, List[Subvolume]]:
    """Regroup a plan by volume index."""
    grouped: Dict[int, List[Subvolume]] = {}
    for rank in sorted(plan):
        for sub in plan[rank]:
            grouped.setdefault(sub.volume_index, []).append(sub)
    return grouped


def verify_tiling(catalog: Sequence[Volume], plan: Plan) -> bool:
    """True if every volume is covered exactly once and nothing else is."""
    grouped = subvolumes_by_volume(plan)
    if any(index < 0 or index >= len(catalog) for index in grouped):
        return False

    for index, volume in enumerate(catalog):
        subs = grouped.get(index, [])
        if volume.cell_count() == 0:
            if subs:
                return False
            continue
        try:
            covered = coverage_grid(volume.dimensions, subs)
        except ValueError:
            return False
        if not np.all(covered == 1):
            return False
    return True


def compute_metrics(catalog: Sequence[Volume], plan: Plan) -> PartitionMetrics:
    """Summarize how evenly a plan spreads the cells over ranks."""
    rank_cells = np.array(
        [sum(sub.cell_count() for sub in plan[rank]) for rank in sorted(plan)],
        dtype=np.int64,
    )
    grouped = subvolumes_by_volume(plan)
    mean = rank_cells.mean() if rank_cells.size else 0.0

    return PartitionMetrics(
        total_cells=int(sum(v.cell_count() for v in catalog)),
        total_bytes=int(sum(v.byte_size() for v in catalog)),
        n_subvolumes=int(sum(len(subs) for subs in plan.values())),
        shared_volumes=sum(1 for subs in grouped.values() if len(subs) > 1),
        max_rank_cells=int(rank_cells.max()) if rank_cells.size else 0,
        min_rank_cells=int(rank_cells.min()) if rank_cells.size else 0,
        idle_ranks=int(np.count_nonzero(rank_cells == 0)),
        imbalance=float(rank_cells.max() / mean) if mean > 0 else None,
    )


def plan_to_dataframe(plan: Plan) -> pd.DataFrame:
    """One row per subvolume: rank, volume_index, offsets, counts, cells."""
    rows = [
        {
            "rank": rank,
            "volume_index": sub.volume_index,
            "offsets": list(sub.offsets),
            "counts": list(sub.counts),
            "cells": sub.cell_count(),
        }
        for rank in sorted(plan)
        for sub in plan[rank]
    ]
    return pd.DataFrame(rows, columns=["rank", "volume_index", "offsets", "counts", "cells"])


def plan_from_dataframe(df: pd.DataFrame, size: int) -> Plan:
    """Rebuild a plan from the table produced by plan_to_dataframe."""
    plan: Plan = {rank: [] for rank in range(size)}
    for row in df.itertuples(index=False):
        plan[int(row.rank)].append(
            Subvolume(int(row.volume_index), tuple(row.offsets), tuple(row.counts))
        )
    return plan
