"""Run the distributor via mpiexec subprocess."""

import json
import math
import os
import subprocess
import sys
import tempfile
from pathlib import Path

from .catalog import catalog_to_config
from .datastructures import Volume


def run_distributor(catalog, n_ranks: int = 1, weighting: str = "cells", output: str = None) -> dict:
    """Partition a catalog on n_ranks real MPI processes.

    Parameters
    ----------
    catalog : list of Volume or list of dict
        Volume catalog, or its config form (see ``catalog_from_config``).
    n_ranks : int
        Number of MPI ranks
    weighting : str
        'cells' or 'bytes'
    output : str, optional
        Path to save the gathered plan as JSON (uses temp file if not provided)

    Returns
    -------
    dict
        ``n_ranks``, ``wall_time`` and ``plan`` (DataFrame with one row per
        subvolume), or an 'error' key on failure
    """
    import pandas as pd

    entries = catalog_to_config(catalog) if catalog and isinstance(catalog[0], Volume) else list(catalog)

    # Use temp file if no output path specified
    use_temp = output is None
    if use_temp:
        tmp = tempfile.NamedTemporaryFile(suffix=".json", delete=False)
        output = tmp.name
        tmp.close()

    config = {"catalog": entries, "weighting": weighting, "output": output}
    cmd = ["mpiexec", "-n", str(n_ranks), sys.executable, "-m",
           "Distributor.helpers.runner_helper", json.dumps(config)]

    # Worker must import this package even without an installed copy
    env = os.environ.copy()
    src_dir = str(Path(__file__).resolve().parent.parent)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_dir, env.get("PYTHONPATH")]))

    try:
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, env=env, timeout=300)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            return {"error": str(e)}

        if proc.returncode != 0:
            return {"error": proc.stderr}

        if not Path(output).exists() or Path(output).stat().st_size == 0:
            return {"error": "No output file created", "stderr": proc.stderr}

        with open(output) as f:
            payload = json.load(f)
    finally:
        # Clean up temp file if we created one
        if use_temp:
            Path(output).unlink(missing_ok=True)

    plan = pd.DataFrame(payload["subvolumes"], columns=["rank", "volume_index", "offsets", "counts"])
    plan["cells"] = [math.prod(c) for c in plan["counts"]]
    return {"n_ranks": payload["n_ranks"], "wall_time": payload["wall_time"], "plan": plan}
