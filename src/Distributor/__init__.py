"""Deterministic data-volume distributor.

Given a globally identical catalog of multi-dimensional data volumes and a
process group, every rank independently computes the disjoint, gap-free set
of subvolumes it alone reads or writes. No communication is needed during
partitioning; correctness relies on every rank holding the same catalog.

Core (no MPI)
-------------
- ownership_lists: Phase 1, which ranks touch which volume
- split / subdivide: Phase 2, bisection along the widest axis
- partition / plan_all_ranks: both phases for one rank or the whole group

Parallel (MPI)
--------------
- VolumeDistributor: queries the communicator, returns a TaskResult
- run_distributor: runs the distributor under mpiexec and gathers the plan
"""

from .datastructures import (
    ElementKind,
    Volume,
    Subvolume,
    ProcessGroup,
    PartitionParams,
    PartitionMetrics,
)
from .result import TaskError, TaskResult
from .geometry import split, subdivide, widest_axis
from .ownership import ownership_lists
from .distributor import VolumeDistributor, gather_tasks, partition, plan_all_ranks, volume_weights
from .catalog import catalog_from_arrays, catalog_from_config, catalog_to_config
from .postprocessing import (
    compute_metrics,
    coverage_grid,
    plan_from_dataframe,
    plan_to_dataframe,
    verify_tiling,
)
from .runner import run_distributor

__all__ = [
    # Data structures
    "ElementKind",
    "Volume",
    "Subvolume",
    "ProcessGroup",
    "PartitionParams",
    "PartitionMetrics",
    "TaskError",
    "TaskResult",
    # Algorithm
    "ownership_lists",
    "widest_axis",
    "split",
    "subdivide",
    "volume_weights",
    "partition",
    "plan_all_ranks",
    "VolumeDistributor",
    "gather_tasks",
    # Catalog
    "catalog_from_config",
    "catalog_from_arrays",
    "catalog_to_config",
    # Analysis
    "coverage_grid",
    "verify_tiling",
    "compute_metrics",
    "plan_to_dataframe",
    "plan_from_dataframe",
    # Runner
    "run_distributor",
]
