"""Hydra callbacks for MLflow integration.

The MLflowLogCallback uploads the Hydra job log and the composed job config
to the active MLflow run after each partition job, so the exact catalog a run
was planned from can be recovered from the MLflow UI.
"""

import logging
from pathlib import Path
from typing import Any

from hydra.core.utils import JobReturn
from hydra.experimental.callback import Callback
from omegaconf import DictConfig

log = logging.getLogger(__name__)


class MLflowLogCallback(Callback):
    """Callback to log Hydra job output to MLflow as artifacts.

    Configuration (in Experiments/hydra-conf/config.yaml):

    .. code-block:: yaml

        hydra:
          callbacks:
            mlflow_log:
              _target_: utils.hydra.callbacks.MLflowLogCallback
              artifact_path: logs
    """

    def __init__(self, artifact_path: str = "logs") -> None:
        self.artifact_path = artifact_path

    def job_files(self, output_dir: Path, job_name: str) -> list:
        """Files of a finished job worth keeping: its log and composed config."""
        candidates = [output_dir / f"{job_name}.log", output_dir / ".hydra" / "config.yaml"]
        return [p for p in candidates if p.exists()]

    def on_job_end(
        self, config: DictConfig, job_return: JobReturn, **kwargs: Any
    ) -> None:
        """Upload job files to MLflow after the job completes."""
        import mlflow
        from hydra.core.hydra_config import HydraConfig

        if not mlflow.active_run():
            log.debug("No active MLflow run, skipping log upload")
            return

        hc = HydraConfig.get()
        for path in self.job_files(Path(hc.runtime.output_dir), hc.job.name):
            try:
                mlflow.log_artifact(str(path), artifact_path=self.artifact_path)
                log.info(f"Uploaded {path.name} to MLflow")
            except OSError as e:
                # Don't fail the job if the upload fails
                log.warning(f"Failed to upload {path.name} to MLflow: {e}")
