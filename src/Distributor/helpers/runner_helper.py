"""MPI worker - invoked via: mpiexec -n X python -m Distributor.helpers.runner_helper '{config}'"""

import json
import logging
import sys

from mpi4py import MPI

from Distributor import VolumeDistributor, catalog_from_config, gather_tasks

log = logging.getLogger(__name__)


def main(config: dict) -> int:
    comm = MPI.COMM_WORLD

    dist = VolumeDistributor(comm, weighting=config.get("weighting", "cells"))
    dist.data_volumes.extend(catalog_from_config(config["catalog"]))

    plan, max_time = gather_tasks(dist, comm)

    if comm.Get_rank() == 0:
        payload = {
            "n_ranks": comm.Get_size(),
            "wall_time": max_time,
            "subvolumes": [
                {"rank": rank, **sub.to_record()}
                for rank, subs in plan.items()
                for sub in subs
            ],
        }
        with open(config["output"], "w") as f:
            json.dump(payload, f)
        # runner.py loads the JSON file
        print(f"RESULT:{config['output']}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    sys.exit(main(json.loads(sys.argv[1])))
