"""MLflow utilities for experiment tracking.

Provides:
- Tracking setup (local, Databricks, or off)
- Context manager for MLflow run orchestration
- Logging functions for parameters, metrics and partition plans
"""

from .io import (
    setup_mlflow_tracking,
    start_mlflow_run_context,
    run_context,
    log_parameters,
    log_metrics_dict,
    log_plan_table,
)

__all__ = [
    "setup_mlflow_tracking",
    "start_mlflow_run_context",
    "run_context",
    "log_parameters",
    "log_metrics_dict",
    "log_plan_table",
]
