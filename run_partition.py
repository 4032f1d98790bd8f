"""
Partition Runner - plans a volume catalog in-process or under MPI based on config.

Usage:
    python run_partition.py
    python run_partition.py n_ranks=16 weighting=bytes
    python run_partition.py +experiment=mesh_blocks mlflow.mode=local
    python run_partition.py +experiment=oversubscribed simulate=false
"""

import json
import logging
import os
import subprocess
import sys
import time
from pathlib import Path

import hydra
from omegaconf import DictConfig, OmegaConf

sys.path.insert(0, str(Path(__file__).parent / "src"))

log = logging.getLogger(__name__)


def _build_catalog(cfg: DictConfig):
    from Distributor import catalog_from_config

    return catalog_from_config(cfg.catalog)


def _log_results(cfg: DictConfig, catalog, plan: dict, wall_time: float, mode: str):
    """Verify a gathered plan and log it to MLflow."""
    from Distributor import PartitionParams, compute_metrics, plan_to_dataframe, verify_tiling
    from utils.mlflow.io import (
        log_metrics_dict,
        log_parameters,
        log_plan_table,
        run_context,
        setup_mlflow_tracking,
    )

    n_ranks = len(plan)
    tiles = verify_tiling(catalog, plan)
    metrics = compute_metrics(catalog, plan)
    metrics.wall_time = wall_time
    params = PartitionParams(
        n_ranks=n_ranks,
        n_volumes=len(catalog),
        weighting=cfg.get("weighting", "cells"),
        experiment_name=cfg.get("experiment_name") or "default",
    )

    for rank, subs in plan.items():
        for sub in subs:
            log.info(f"({rank}) volume {sub.volume_index}: offsets={list(sub.offsets)} counts={list(sub.counts)}")
    if not tiles:
        log.error("Plan does not tile the catalog")

    tracking = setup_mlflow_tracking(mode=cfg.mlflow.mode)
    run_name = f"{params.weighting}_v{params.n_volumes}_p{n_ranks}"
    with run_context(
        tracking,
        experiment_name=params.experiment_name,
        parent_run_name=f"p{n_ranks}",
        child_run_name=run_name,
    ):
        if tracking:
            log_parameters({**params.to_mlflow(), "mode": mode})
            log_metrics_dict({**metrics.to_mlflow(), "tiles": int(tiles)})
            log_plan_table(plan_to_dataframe(plan))

    imbalance = f"{metrics.imbalance:.3f}" if metrics.imbalance is not None else "n/a"
    log.info(f"Done: {metrics.n_subvolumes} subvolumes, imbalance={imbalance}, "
             f"idle ranks={metrics.idle_ranks}, time={wall_time * 1e3:.3f}ms")
    return tiles


@hydra.main(config_path="Experiments/hydra-conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Entry point - plans in-process or spawns MPI based on n_ranks/simulate."""
    n_ranks = cfg.get("n_ranks", 1)
    log.info(f"{len(cfg.catalog)} volumes, n_ranks={n_ranks}, weighting={cfg.get('weighting', 'cells')}")

    if n_ranks == 1 or cfg.get("simulate", True):
        ok = _run_simulated(cfg, n_ranks)
    else:
        ok = _spawn_mpi(cfg, n_ranks)
    if not ok:
        sys.exit(1)


def _run_simulated(cfg: DictConfig, n_ranks: int) -> bool:
    """Plan every rank of the group in this process."""
    from Distributor import plan_all_ranks

    catalog = _build_catalog(cfg)
    t0 = time.perf_counter()
    plan = plan_all_ranks(catalog, n_ranks, cfg.get("weighting", "cells"))
    wall_time = time.perf_counter() - t0
    return _log_results(cfg, catalog, plan, wall_time, mode="simulated")


def _spawn_mpi(cfg: DictConfig, n_ranks: int) -> bool:
    """Spawn MPI subprocess."""
    mpi = cfg.get("mpi") or {}
    env = os.environ.copy()
    env["MPI_SUBPROCESS"] = "1"

    cmd = ["mpiexec", "-n", str(n_ranks)]
    if mpi.get("bind_to"):
        cmd.extend(["--bind-to", str(mpi.bind_to)])

    # Catalog is structured, pass the resolved config as one JSON argument
    payload = OmegaConf.to_container(cfg, resolve=True)
    cmd.extend([sys.executable, os.path.abspath(__file__), json.dumps(payload)])

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, env=env, timeout=300)
    except FileNotFoundError:
        log.error("mpiexec not found; rerun with simulate=true")
        return False

    for line in (result.stdout or "").strip().split("\n"):
        if line:
            log.info(line)
    for line in (result.stderr or "").strip().split("\n"):
        if line:
            log.warning(line) if "error" in line.lower() else log.info(line)
    return result.returncode == 0


def _run_mpi_partition(cfg: DictConfig, comm) -> bool:
    """Run the distributor on every rank (called within mpiexec subprocess)."""
    from Distributor import VolumeDistributor, gather_tasks

    dist = VolumeDistributor(comm, weighting=cfg.get("weighting", "cells"))
    dist.data_volumes.extend(_build_catalog(cfg))

    plan, max_time = gather_tasks(dist, comm)

    if comm.Get_rank() != 0:
        return True
    log.info(f"Gathered plan from {comm.Get_size()} ranks")
    return _log_results(cfg, dist.data_volumes, plan, max_time, mode="mpi")


if __name__ == "__main__":
    if os.environ.get("MPI_SUBPROCESS"):
        from mpi4py import MPI

        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        ok = _run_mpi_partition(OmegaConf.create(json.loads(sys.argv[1])), MPI.COMM_WORLD)
        sys.exit(0 if ok else 1)
    else:
        main()
