"""Utility modules for experiment configuration and tracking.

Submodules:
- config: Project paths
- mlflow: MLflow run handling and logging
- hydra: Hydra callbacks

Import examples:
    from utils import mlflow       # MLflow utilities
    from utils.config import get_repo_root
"""

import warnings

# Suppress MLflow FutureWarning about filesystem backend deprecation
warnings.filterwarnings("ignore", category=FutureWarning, module="mlflow")

from . import config, mlflow  # noqa: E402

# Re-export common config functions for convenience
from .config import get_repo_root  # noqa: E402

__all__ = [
    "config",
    "mlflow",
    "get_repo_root",
]
