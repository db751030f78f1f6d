from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from scviz.core.exceptions import NotFoundError, ShapeMismatchError


def normalize_cells_use(cells_use: Any, obs_names: pd.Index) -> np.ndarray:
    """
    Normalise an observation filter to a boolean mask over `obs_names`.

    Accepted forms:
    - None: every observation
    - sequence of observation identifiers
    - sequence of integer positions
    - boolean mask with one entry per observation

    :raises ShapeMismatchError: boolean mask of the wrong length, or integer position out of range
    :raises NotFoundError: identifier not present in obs_names
    """
    n = len(obs_names)

    if cells_use is None:
        return np.ones(n, dtype=bool)

    if isinstance(cells_use, str):
        cells_use = [cells_use]

    values = cells_use.to_numpy() if isinstance(cells_use, (pd.Series, pd.Index)) else np.asarray(list(cells_use))

    if values.size == 0:
        return np.zeros(n, dtype=bool)

    if values.dtype == bool:
        if values.shape != (n,):
            raise ShapeMismatchError(
                f"Boolean cells_use has length {values.shape[0]}, expected {n}"
            )
        return values.copy()

    mask = np.zeros(n, dtype=bool)

    if np.issubdtype(values.dtype, np.integer):
        if values.min() < 0 or values.max() >= n:
            raise ShapeMismatchError(
                f"Integer cells_use positions must lie in [0, {n}); "
                f"got range [{values.min()}, {values.max()}]"
            )
        mask[values] = True
        return mask

    ids = [str(v) for v in values]
    idx = obs_names.get_indexer(ids)
    missing = [i for i, pos in zip(ids, idx) if pos < 0]
    if missing:
        raise NotFoundError(missing[0], "observation identifiers")
    mask[idx] = True
    return mask
