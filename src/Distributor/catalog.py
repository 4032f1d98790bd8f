"""Volume catalog construction.

The catalog must be identical, element for element and in the same order, on
every rank. Build it from metadata all ranks already agree on: the run
configuration, or arrays/variables read from a shared file.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence, Tuple

import numpy as np
from omegaconf import DictConfig, ListConfig, OmegaConf

from .datastructures import ElementKind, Volume


def catalog_from_config(entries) -> List[Volume]:
    """Build a catalog from a list of volume entries.

    Parameters
    ----------
    entries : list of dict or ListConfig
        Each entry needs ``dimensions``; ``element_kind`` defaults to
        ``double`` and ``data_index`` to the entry's position.

    Examples
    --------
    >>> catalog_from_config([{"dimensions": [10]}, {"dimensions": [4, 4], "element_kind": "int"}])
    """
    if isinstance(entries, (DictConfig, ListConfig)):
        entries = OmegaConf.to_container(entries, resolve=True)

    catalog = []
    for position, entry in enumerate(entries or []):
        if "dimensions" not in entry:
            raise ValueError(f"Volume entry {position} has no dimensions: {entry}")
        catalog.append(
            Volume(
                data_index=int(entry.get("data_index", position)),
                element_kind=ElementKind.parse(entry.get("element_kind", "double")),
                dimensions=tuple(entry["dimensions"]),
            )
        )
    return catalog


def catalog_from_arrays(arrays: Mapping[str, np.ndarray]) -> Tuple[List[str], List[Volume]]:
    """Build a catalog describing named arrays.

    Returns
    -------
    names : list of str
        Array names, in catalog order. ``data_index`` points into this list.
    catalog : list of Volume
    """
    names = list(arrays)
    catalog = [
        Volume(i, ElementKind.from_dtype(arrays[name].dtype), arrays[name].shape)
        for i, name in enumerate(names)
    ]
    return names, catalog


def catalog_to_config(catalog: Sequence[Volume]) -> List[dict]:
    """Inverse of catalog_from_config (JSON/YAML friendly)."""
    return [
        {
            "data_index": v.data_index,
            "element_kind": v.element_kind.value,
            "dimensions": list(v.dimensions),
        }
        for v in catalog
    ]
