"""MLflow I/O utilities for partition experiment tracking.

This module provides helpers for:
- Setting up MLflow tracking (local, Databricks, or off).
- Orchestrating MLflow runs (context manager for parent/nested runs).
- Logging parameters, metrics and plan tables.
"""

import logging
import os
from contextlib import contextmanager, nullcontext
from pathlib import Path

import mlflow
import pandas as pd

log = logging.getLogger(__name__)

MODES = ("local", "databricks", "off")


def setup_mlflow_tracking(mode: str = "local") -> bool:
    """
    Configures MLflow tracking.

    Parameters
    ----------
    mode : str
        "local", "databricks" or "off".

    Returns
    -------
    bool
        Whether runs should be logged.
    """
    if mode == "off":
        return False
    if mode == "databricks":
        try:
            mlflow.login(backend="databricks", interactive=False)
            mlflow.set_tracking_uri("databricks")
            log.info("Connected to Databricks MLflow tracking.")
        except Exception as e:
            raise RuntimeError(
                "MLflow Databricks setup failed. Ensure credentials are configured."
            ) from e
    elif mode == "local":
        mlruns_uri = f"file://{Path.cwd() / 'mlruns'}"
        mlflow.set_tracking_uri(mlruns_uri)
        log.info(f"Using local file-based MLflow tracking backend: {mlruns_uri}")
    else:
        raise ValueError(f"Unknown MLflow mode: {mode}. Use one of {', '.join(MODES)}.")
    return True


def get_mlflow_client() -> mlflow.tracking.MlflowClient:
    """Get an MLflow tracking client."""
    return mlflow.tracking.MlflowClient()


@contextmanager
def start_mlflow_run_context(
    experiment_name: str,
    parent_run_name: str,
    child_run_name: str,
    project_prefix: str = "/Shared/VolumeDistributor",
):
    """
    Context manager to start a run nested under a (reused) parent run.
    """
    if mlflow.get_tracking_uri() == "databricks" and not experiment_name.startswith("/"):
        experiment_name = f"{project_prefix}/{experiment_name}"

    exp = mlflow.set_experiment(experiment_name)
    log.info(f"Using MLflow experiment: {experiment_name}")

    parent_runs = get_mlflow_client().search_runs(
        experiment_ids=[exp.experiment_id],
        filter_string=f"tags.mlflow.runName = '{parent_run_name}' AND tags.is_parent = 'true'",
        max_results=1,
    )
    parent_run_id = parent_runs[0].info.run_id if parent_runs else None

    with mlflow.start_run(
        run_id=parent_run_id, run_name=parent_run_name, tags={"is_parent": "true"}
    ):
        with mlflow.start_run(run_name=child_run_name, nested=True) as child_run:
            # Tag run with environment (HPC vs local) for easy filtering
            env = (
                "hpc"
                if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
                else "local"
            )
            mlflow.set_tag("environment", env)
            log.info(f"Started MLflow run '{child_run.info.run_name}' ({child_run.info.run_id}) [{env}]")
            yield child_run


def run_context(enabled: bool, **kwargs):
    """start_mlflow_run_context when tracking is enabled, else a no-op context."""
    return start_mlflow_run_context(**kwargs) if enabled else nullcontext()


def log_parameters(params: dict):
    """Log a dictionary of parameters to the active MLflow run."""
    mlflow.log_params(params)


def log_metrics_dict(metrics: dict):
    """Log a dictionary of metrics to the active MLflow run, filtering out None values."""
    filtered_metrics = {k: v for k, v in metrics.items() if v is not None}
    mlflow.log_metrics(filtered_metrics)


def log_plan_table(plan_df: pd.DataFrame, artifact_file: str = "plan.json"):
    """Log a partition plan table (one row per subvolume) as an artifact."""
    # list columns do not survive table logging
    table = plan_df.assign(
        offsets=plan_df["offsets"].map(lambda v: ",".join(map(str, v))),
        counts=plan_df["counts"].map(lambda v: ",".join(map(str, v))),
    )
    mlflow.log_table(table, artifact_file=artifact_file)
