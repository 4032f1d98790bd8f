"""Configuration utilities."""

from .paths import get_repo_root, get_hydra_config_dir

__all__ = ["get_repo_root", "get_hydra_config_dir"]
