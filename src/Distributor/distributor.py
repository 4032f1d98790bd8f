"""Partitioning of a volume catalog across a process group.

Two phases, both deterministic given the catalog and the group size:

1. Ownership walk (``ownership_lists``): which ranks touch which volume.
2. Geometric subdivision (``subdivide``): every volume with ``k > 1`` owners
   is cut into ``k`` tiling pieces, piece ``i`` going to owner ``i``.

Every rank runs the same computation on the same catalog and keeps only its
own pieces; no communication is involved.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .datastructures import ProcessGroup, Subvolume, Volume
from .geometry import subdivide
from .ownership import ownership_lists
from .result import TaskError, TaskResult

log = logging.getLogger(__name__)

WEIGHTINGS = ("cells", "bytes")


def volume_weights(catalog: Sequence[Volume], weighting: str = "cells") -> List[int]:
    """Per-volume weight used by the ownership walk."""
    if weighting == "cells":
        return [v.cell_count() for v in catalog]
    elif weighting == "bytes":
        return [v.byte_size() for v in catalog]
    else:
        raise ValueError(f"Unknown weighting: {weighting}. Use 'cells' or 'bytes'.")


def plan_all_ranks(
    catalog: Sequence[Volume], size: int, weighting: str = "cells"
) -> Dict[int, List[Subvolume]]:
    """Compute the subvolumes of every rank in a group of ``size``.

    Returns
    -------
    dict
        rank -> list of Subvolume, ordered by volume index. Ranks without
        cells map to an empty list.
    """
    owners = ownership_lists(volume_weights(catalog, weighting), size)
    plan: Dict[int, List[Subvolume]] = {rank: [] for rank in range(size)}

    for index, (volume, ranks) in enumerate(zip(catalog, owners)):
        if not ranks:
            continue
        if volume.ndim == 0:
            # A scalar cannot be cut; its first owner takes it
            ranks = ranks[:1]
        pieces = subdivide(index, volume.dimensions, len(ranks))
        for rank, piece in zip(ranks, pieces):
            if piece.cell_count() > 0:
                plan[rank].append(piece)

    n_shared = sum(1 for ranks in owners if len(ranks) > 1)
    log.debug(f"Planned {len(catalog)} volumes over {size} ranks ({n_shared} shared)")
    return plan


def partition(
    catalog: Sequence[Volume], group: ProcessGroup, weighting: str = "cells"
) -> List[Subvolume]:
    """Subvolumes owned by ``group.rank``."""
    return plan_all_ranks(catalog, group.size, weighting)[group.rank]


class VolumeDistributor:
    """Distributes data volumes evenly across a process group.

    Parameters
    ----------
    comm : MPI.Comm, optional
        Communicator queried for rank and size. Defaults to
        ``MPI.COMM_WORLD``.
    group : ProcessGroup, optional
        Explicit rank/size; takes precedence over ``comm``.
    weighting : str
        'cells' (default) treats every cell as equal work,
        'bytes' weights volumes by their byte size.

    Examples
    --------
    >>> names = ["var1", "var2"]
    >>> dist = VolumeDistributor(group=ProcessGroup(rank=0, size=2))
    >>> for i, name in enumerate(names):
    ...     dist.data_volumes.append(Volume(i, ElementKind.DOUBLE, (1, 100)))
    >>> for sub in dist.get_tasks().value():
    ...     name = names[dist.data_volumes[sub.volume_index].data_index]
    ...     # read/write sub.counts cells of name starting at sub.offsets
    """

    def __init__(
        self,
        comm=None,
        group: Optional[ProcessGroup] = None,
        weighting: str = "cells",
    ):
        if weighting not in WEIGHTINGS:
            raise ValueError(f"Unknown weighting: {weighting}. Use 'cells' or 'bytes'.")
        self.comm = comm
        self.weighting = weighting
        self.data_volumes: List[Volume] = []
        self._group = group

    def _resolve_group(self) -> ProcessGroup:
        if self._group is None:
            comm = self.comm
            if comm is None:
                from mpi4py import MPI

                comm = MPI.COMM_WORLD
            self._group = ProcessGroup.from_comm(comm)
        return self._group

    @property
    def rank(self) -> int:
        return self._resolve_group().rank

    @property
    def processes(self) -> int:
        return self._resolve_group().size

    def get_tasks(self) -> TaskResult:
        """Subvolumes this process is responsible for.

        Returns a failed TaskResult if the process group cannot be queried.
        An empty or all-zero catalog is not an error and yields no tasks.
        """
        try:
            group = self._resolve_group()
        except (ImportError, RuntimeError, ValueError) as e:
            log.error(f"Could not determine process group: {e}")
            return TaskResult.failure(TaskError.ENVIRONMENT, str(e))

        if not any(v.cell_count() for v in self.data_volumes):
            log.debug(f"Rank {group.rank}: nothing to distribute")
            return TaskResult.success([])

        subvolumes = partition(self.data_volumes, group, self.weighting)
        log.debug(f"Rank {group.rank}/{group.size}: {len(subvolumes)} subvolumes")
        return TaskResult.success(subvolumes)


def gather_tasks(dist: VolumeDistributor, comm, root: int = 0):
    """Run ``get_tasks`` on every rank and collect the plan on ``root``.

    Aborts the communicator if any rank cannot determine its tasks.

    Returns
    -------
    tuple
        ``(plan, wall_time)`` on ``root``, where ``plan`` maps rank to its
        subvolumes and ``wall_time`` is the slowest rank's time.
        ``(None, None)`` on every other rank.
    """
    from mpi4py import MPI

    t0 = MPI.Wtime()
    result = dist.get_tasks()
    wall_time = MPI.Wtime() - t0

    if not result:
        log.error(f"Could not determine tasks: {result.message}")
        comm.Abort(1)

    gathered = comm.gather([s.to_record() for s in result.subvolumes], root=root)
    max_time = comm.reduce(wall_time, op=MPI.MAX, root=root)

    if comm.Get_rank() != root:
        return None, None
    plan = {
        rank: [Subvolume(**record) for record in records]
        for rank, records in enumerate(gathered)
    }
    return plan, max_time
