import numpy as np
import pandas as pd
import pytest

from scviz.core.exceptions import NotFoundError, ShapeMismatchError
from scviz.pipeline.cells import normalize_cells_use

OBS = pd.Index(["c1", "c2", "c3", "c4"])


def test_none_selects_everything():
    assert normalize_cells_use(None, OBS).tolist() == [True, True, True, True]


def test_ids_positions_and_masks_agree():
    by_id = normalize_cells_use(["c3", "c1"], OBS)
    by_pos = normalize_cells_use([2, 0], OBS)
    by_mask = normalize_cells_use(np.array([True, False, True, False]), OBS)
    by_series = normalize_cells_use(pd.Series(["c1", "c3"]), OBS)

    expected = [True, False, True, False]
    assert by_id.tolist() == expected
    assert by_pos.tolist() == expected
    assert by_mask.tolist() == expected
    assert by_series.tolist() == expected


def test_single_id_string_and_empty_selection():
    assert normalize_cells_use("c2", OBS).tolist() == [False, True, False, False]
    assert normalize_cells_use([], OBS).tolist() == [False, False, False, False]


def test_mask_is_copied():
    mask = np.array([True, True, False, False])

    out = normalize_cells_use(mask, OBS)
    out[0] = False

    assert mask[0]


def test_wrong_length_mask_raises_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        normalize_cells_use([True, False], OBS)


def test_out_of_range_position_raises_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        normalize_cells_use([0, 4], OBS)
    with pytest.raises(ShapeMismatchError):
        normalize_cells_use([-1], OBS)


def test_unknown_id_raises_not_found():
    with pytest.raises(NotFoundError) as exc:
        normalize_cells_use(["c1", "c9"], OBS)

    assert exc.value.name == "c9"
