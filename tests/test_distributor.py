"""Tests for partitioning a catalog across a process group."""

import Distributor
import numpy as np
import pytest
from Distributor import (
    ElementKind,
    ProcessGroup,
    Subvolume,
    TaskError,
    Volume,
    VolumeDistributor,
    coverage_grid,
    gather_tasks,
    partition,
    plan_all_ranks,
)


def make_catalog(*shapes, kind=ElementKind.DOUBLE):
    return [Volume(i, kind, shape) for i, shape in enumerate(shapes)]


class MockComm:
    """Stand-in for an MPI communicator."""

    def __init__(self, rank=0, size=1, fail=False):
        self._rank, self._size, self._fail = rank, size, fail
        self.aborted = None

    def Get_rank(self):
        if self._fail:
            raise RuntimeError("MPI not initialized")
        return self._rank

    def Get_size(self):
        return self._size

    def gather(self, obj, root=0):
        return [obj] if self._rank == root else None

    def reduce(self, obj, op=None, root=0):
        return obj if self._rank == root else None

    def Abort(self, errorcode=0):
        self.aborted = errorcode
        raise SystemExit(errorcode)


class TestScenarios:
    """Worked examples with known subvolumes."""

    def test_two_volumes_four_ranks(self):
        """Each rank gets half of one volume."""
        plan = plan_all_ranks(make_catalog((10,), (10,)), 4)

        assert plan == {
            0: [Subvolume(0, (0,), (5,))],
            1: [Subvolume(0, (5,), (5,))],
            2: [Subvolume(1, (0,), (5,))],
            3: [Subvolume(1, (5,), (5,))],
        }

    def test_three_cells_two_ranks(self):
        """Rank 0 gets the lower (smaller) half, rank 1 the upper half."""
        plan = plan_all_ranks(make_catalog((3,)), 2)

        assert plan[0] == [Subvolume(0, (0,), (1,))]
        assert plan[1] == [Subvolume(0, (1,), (2,))]

    def test_single_rank_gets_whole_volumes(self):
        catalog = make_catalog((4, 5), (7,), (2, 3, 2))
        subs = partition(catalog, ProcessGroup(rank=0, size=1))

        assert subs == [Subvolume.whole(i, v.dimensions) for i, v in enumerate(catalog)]
        assert all(set(s.offsets) == {0} for s in subs)

    def test_zero_length_dimension_skipped(self):
        """Weightless volumes yield nothing; indices still refer to the catalog."""
        catalog = make_catalog((4, 0), (3,), (0,))
        plan = plan_all_ranks(catalog, 3)

        all_subs = [s for subs in plan.values() for s in subs]
        assert {s.volume_index for s in all_subs} == {1}
        assert sum(s.cell_count() for s in all_subs) == 3


class TestTiling:
    """Union over ranks covers each volume exactly once."""

    CATALOGS = [
        [(10,), (10,)],
        [(6, 4)],
        [(3, 5, 2), (7,), (2, 2)],
        [(1, 1000), (1, 250), (1, 0), (1, 31)],
    ]

    @pytest.mark.parametrize("shapes", CATALOGS)
    @pytest.mark.parametrize("size", [1, 2, 3, 5, 8, 13])
    def test_coverage(self, shapes, size):
        catalog = make_catalog(*shapes)
        plan = plan_all_ranks(catalog, size)

        for index, volume in enumerate(catalog):
            subs = [s for rank in plan for s in plan[rank] if s.volume_index == index]
            if volume.cell_count() == 0:
                assert subs == []
            else:
                assert np.all(coverage_grid(volume.dimensions, subs) == 1)

    @pytest.mark.parametrize("dims", [(12,), (3, 4), (2, 3, 2)])
    def test_conservation_for_every_group_size(self, dims):
        """Cells are conserved for P = 1 .. cell_count."""
        catalog = make_catalog(dims)
        n_cells = catalog[0].cell_count()

        for size in range(1, n_cells + 1):
            plan = plan_all_ranks(catalog, size)
            assert sum(s.cell_count() for subs in plan.values() for s in subs) == n_cells

    def test_partition_matches_plan(self):
        """Each rank's own computation agrees with the whole-group plan."""
        catalog = make_catalog((9, 7), (5,), (4, 4))
        plan = plan_all_ranks(catalog, 6)

        for rank in range(6):
            assert partition(catalog, ProcessGroup(rank, 6)) == plan[rank]

    def test_deterministic(self):
        catalog = make_catalog((9, 7), (5,), (4, 4))
        group = ProcessGroup(rank=2, size=5)

        assert partition(catalog, group) == partition(list(catalog), group)


class TestOversubscription:
    """More ranks than cells."""

    def test_idle_ranks_allowed(self):
        catalog = make_catalog((2,))
        plan = plan_all_ranks(catalog, 5)

        cells = [sum(s.cell_count() for s in plan[r]) for r in range(5)]
        assert sum(cells) == 2
        assert cells.count(0) == 3
        assert all(s.cell_count() > 0 for subs in plan.values() for s in subs)
        assert np.all(coverage_grid((2,), plan[3] + plan[4] + plan[0]) == 1)

    @pytest.mark.parametrize("size", [4, 10, 64])
    def test_many_ranks_tiny_catalog(self, size):
        catalog = make_catalog((3,), (2, 1), (1,))
        plan = plan_all_ranks(catalog, size)

        assert len(plan) == size
        for index, volume in enumerate(catalog):
            subs = [s for subs in plan.values() for s in subs if s.volume_index == index]
            assert np.all(coverage_grid(volume.dimensions, subs) == 1)

    def test_scalar_volume_goes_to_one_rank(self):
        """A zero-dimensional volume cannot be split."""
        catalog = make_catalog(())
        plan = plan_all_ranks(catalog, 3)

        assert plan[0] == [Subvolume(0, (), ())]
        assert plan[1] == plan[2] == []


class TestWeighting:
    """Cells vs bytes weighting."""

    def test_bytes_weighting_favours_wide_kinds(self):
        catalog = [
            Volume(0, ElementKind.CHAR, (100,)),
            Volume(1, ElementKind.DOUBLE, (100,)),
        ]

        by_cells = plan_all_ranks(catalog, 2, weighting="cells")
        by_bytes = plan_all_ranks(catalog, 2, weighting="bytes")

        assert by_cells == {0: [Subvolume(0, (0,), (100,))], 1: [Subvolume(1, (0,), (100,))]}
        # 900 bytes, quota 450: rank 0 also takes the start of the double volume
        assert len(by_bytes[0]) == 2
        assert by_bytes[0][1] == Subvolume(1, (0,), (50,))
        assert by_bytes[1] == [Subvolume(1, (50,), (50,))]

    def test_unknown_weighting(self):
        with pytest.raises(ValueError):
            plan_all_ranks(make_catalog((4,)), 2, weighting="flops")
        with pytest.raises(ValueError):
            VolumeDistributor(group=ProcessGroup(0, 1), weighting="flops")


class TestVolumeDistributor:
    """Process-group-bound front end."""

    def test_explicit_group(self):
        dist = VolumeDistributor(group=ProcessGroup(rank=1, size=4))
        dist.data_volumes.extend(make_catalog((10,), (10,)))
        result = dist.get_tasks()

        assert result.ok and bool(result)
        assert result.value() == [Subvolume(0, (5,), (5,))]
        assert (dist.rank, dist.processes) == (1, 4)

    def test_group_from_comm(self):
        dist = VolumeDistributor(comm=MockComm(rank=1, size=2))
        dist.data_volumes.append(Volume(0, ElementKind.INT, (3,)))

        assert dist.get_tasks().value() == [Subvolume(0, (1,), (2,))]

    def test_environment_error_returned(self):
        dist = VolumeDistributor(comm=MockComm(fail=True))
        dist.data_volumes.extend(make_catalog((10,)))
        result = dist.get_tasks()

        assert not result
        assert result.error is TaskError.ENVIRONMENT
        assert "not initialized" in result.message
        with pytest.raises(RuntimeError):
            result.value()

    def test_invalid_group_from_comm(self):
        """A communicator reporting a bogus rank is an environment error."""
        dist = VolumeDistributor(comm=MockComm(rank=3, size=2))
        assert dist.get_tasks().error is TaskError.ENVIRONMENT

    @pytest.mark.parametrize("shapes", [[], [(0,)], [(3, 0), (0, 5)]])
    def test_degenerate_catalog(self, shapes):
        """Empty or all-zero catalogs give no tasks but succeed."""
        dist = VolumeDistributor(group=ProcessGroup(rank=0, size=3))
        dist.data_volumes.extend(make_catalog(*shapes))
        result = dist.get_tasks()

        assert result.ok
        assert result.value() == []


class TestProcessGroup:
    """Validation of rank/size."""

    @pytest.mark.parametrize("rank,size", [(0, 0), (-1, 2), (2, 2)])
    def test_invalid(self, rank, size):
        with pytest.raises(ValueError):
            ProcessGroup(rank, size)

    def test_from_comm(self):
        assert ProcessGroup.from_comm(MockComm(rank=2, size=3)) == ProcessGroup(2, 3)


class TestGatherTasks:
    """Collecting every rank's subvolumes on the root rank."""

    @pytest.fixture(autouse=True)
    def _mpi(self):
        pytest.importorskip("mpi4py")

    def test_root_gets_plan(self):
        comm = MockComm(rank=0, size=1)
        dist = VolumeDistributor(comm)
        dist.data_volumes.extend(make_catalog((4, 3), (5,)))

        plan, wall_time = gather_tasks(dist, comm)

        assert plan == {0: [Subvolume(0, (0, 0), (4, 3)), Subvolume(1, (0,), (5,))]}
        assert wall_time >= 0

    def test_other_ranks_get_nothing(self):
        comm = MockComm(rank=1, size=2)
        dist = VolumeDistributor(comm)
        dist.data_volumes.extend(make_catalog((10,)))

        assert gather_tasks(dist, comm) == (None, None)

    def test_environment_error_aborts(self):
        comm = MockComm(fail=True)
        dist = VolumeDistributor(comm)
        dist.data_volumes.extend(make_catalog((10,)))

        with pytest.raises(SystemExit):
            gather_tasks(dist, comm)
        assert comm.aborted == 1


def test_public_names_resolve():
    """Everything listed in __all__ is importable from the package."""
    for name in Distributor.__all__:
        assert hasattr(Distributor, name), name
