"""Data structures for volume partitioning.

Architecture: catalog entries in, subvolumes out, plus the Params vs Metrics
pair used for experiment tracking.

                 Input                         Output
                 ─────                         ──────
Geometry         Volume                        Subvolume
(identical on    data_index, element_kind,     volume_index,
 every rank)     dimensions                    offsets, counts

Tracking         PartitionParams               PartitionMetrics
(rank 0 / agg)   n_ranks, weighting...         imbalance, idle_ranks...
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


# ============================================================================
# Element kinds
# ============================================================================


class ElementKind(Enum):
    """Primitive payload type of one cell, with its width in bytes."""

    CHAR = "char"
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"

    @property
    def width(self) -> int:
        return _WIDTHS[self]

    @classmethod
    def parse(cls, name) -> "ElementKind":
        """Accept an ElementKind, a name ("double", "FLOAT") or a NumPy dtype."""
        if isinstance(name, cls):
            return name
        if isinstance(name, str):
            try:
                return cls[name.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown element kind: {name}. Use one of "
                    f"{', '.join(k.name.lower() for k in cls)}."
                ) from None
        return cls.from_dtype(name)

    @classmethod
    def from_dtype(cls, dtype) -> "ElementKind":
        """Map a NumPy dtype onto the closest element kind."""
        dtype = np.dtype(dtype)
        if dtype.kind in "SU" or (dtype.kind in "iub" and dtype.itemsize == 1):
            return cls.CHAR
        if dtype.kind in "iu" and dtype.itemsize == 4:
            return cls.INT
        if dtype.kind == "f" and dtype.itemsize == 4:
            return cls.FLOAT
        if dtype.kind == "f" and dtype.itemsize == 8:
            return cls.DOUBLE
        raise ValueError(f"Unsupported dtype for partitioning: {dtype}")


_WIDTHS = {
    ElementKind.CHAR: 1,
    ElementKind.INT: 4,
    ElementKind.FLOAT: 4,
    ElementKind.DOUBLE: 8,
}


# ============================================================================
# Geometry
# ============================================================================


@dataclass(frozen=True)
class Volume:
    """A logical, multi-dimensional data region.

    Parameters
    ----------
    data_index : int
        Handle into the caller's own list (variable name, array, ...).
        Never interpreted by the partitioner.
    element_kind : ElementKind
        Payload type of one cell. Only used for sizing.
    dimensions : tuple of int
        Shape of the region. A zero-length dimension makes the volume
        weightless.
    """

    data_index: int
    element_kind: ElementKind
    dimensions: Tuple[int, ...]

    def __post_init__(self):
        dims = tuple(int(d) for d in self.dimensions)
        if any(d < 0 for d in dims):
            raise ValueError(f"Negative dimension in volume {self.data_index}: {dims}")
        object.__setattr__(self, "dimensions", dims)
        object.__setattr__(self, "element_kind", ElementKind.parse(self.element_kind))

    @property
    def ndim(self) -> int:
        return len(self.dimensions)

    def cell_count(self) -> int:
        return math.prod(self.dimensions)

    def byte_size(self) -> int:
        return self.cell_count() * self.element_kind.width


@dataclass(frozen=True)
class Subvolume:
    """Axis-aligned slice of exactly one volume, owned by exactly one rank."""

    volume_index: int
    offsets: Tuple[int, ...]
    counts: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "offsets", tuple(int(o) for o in self.offsets))
        object.__setattr__(self, "counts", tuple(int(c) for c in self.counts))
        if len(self.offsets) != len(self.counts):
            raise ValueError(
                f"offsets {self.offsets} and counts {self.counts} differ in length"
            )

    @classmethod
    def whole(cls, volume_index: int, dimensions) -> "Subvolume":
        """Subvolume covering an entire volume."""
        return cls(volume_index, (0,) * len(dimensions), tuple(dimensions))

    @property
    def end(self) -> Tuple[int, ...]:
        """Exclusive end index per axis."""
        return tuple(o + c for o, c in zip(self.offsets, self.counts))

    def cell_count(self) -> int:
        return math.prod(self.counts)

    def as_slices(self) -> Tuple[slice, ...]:
        """Index tuple for reading/writing this region of a NumPy array."""
        return tuple(slice(o, o + c) for o, c in zip(self.offsets, self.counts))

    def to_record(self) -> dict:
        return {
            "volume_index": self.volume_index,
            "offsets": list(self.offsets),
            "counts": list(self.counts),
        }


@dataclass(frozen=True)
class ProcessGroup:
    """Rank and size of the calling process within its group."""

    rank: int
    size: int

    def __post_init__(self):
        if self.size < 1:
            raise ValueError(f"Process group size must be >= 1, got {self.size}")
        if not 0 <= self.rank < self.size:
            raise ValueError(f"Rank {self.rank} out of range for size {self.size}")

    @classmethod
    def from_comm(cls, comm) -> "ProcessGroup":
        return cls(rank=comm.Get_rank(), size=comm.Get_size())


# ============================================================================
# Tracking (identical across ranks, or aggregated on rank 0)
# ============================================================================


@dataclass
class PartitionParams:
    """Run configuration - logged to MLflow as params."""

    n_ranks: int
    n_volumes: int = 0
    weighting: str = "cells"  # "cells" | "bytes"
    experiment_name: str = "default"

    # Auto-detected at runtime (not from config)
    environment: str = field(init=False)

    def __post_init__(self):
        self.environment = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )

    def to_mlflow(self) -> dict:
        return dict(self.__dict__)


@dataclass
class PartitionMetrics:
    """Balance of a computed plan - logged to MLflow as metrics."""

    total_cells: int = 0
    total_bytes: int = 0
    n_subvolumes: int = 0
    shared_volumes: int = 0  # volumes split across more than one rank
    max_rank_cells: int = 0
    min_rank_cells: int = 0
    idle_ranks: int = 0  # ranks with no cells at all
    imbalance: Optional[float] = None  # max / mean cells per rank
    wall_time: Optional[float] = None

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (no None)."""
        return {k: v for k, v in self.__dict__.items() if v is not None}
