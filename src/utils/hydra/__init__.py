"""Hydra integration."""
