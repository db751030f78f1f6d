from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from scviz.core.accessor import is_numeric_series
from scviz.core.exceptions import TypeMismatchError, UnknownSummaryError

CONTINUOUS = "continuous"
DISCRETE = "discrete"


@dataclass(frozen=True)
class Summary:
    """A named single-value reduction and the variable type it applies to."""

    name: str
    fn: Callable[[Any], Any]
    kind: str


# -------------------------------------------------------------------------
# Discrete reductions
# -------------------------------------------------------------------------
def _level_counts(values: Sequence[Any]) -> Dict[Any, int]:
    # dict keeps first-encountered order, which the mode tie-break relies on
    counts: Dict[Any, int] = {}
    for v in values:
        if pd.isna(v):
            continue
        counts[v] = counts.get(v, 0) + 1
    return counts


def mode(values: Sequence[Any]) -> Any:
    """Most frequent level; ties go to the level encountered first."""
    counts = _level_counts(values)
    if not counts:
        return np.nan
    best, best_count = None, -1
    for level, count in counts.items():
        if count > best_count:
            best, best_count = level, count
    return best


def mode_share(values: Sequence[Any]) -> float:
    """Fraction of (non-missing) observations equal to the mode."""
    counts = _level_counts(values)
    if not counts:
        return np.nan
    return counts[mode(values)] / sum(counts.values())


# -------------------------------------------------------------------------
# Continuous reductions
# -------------------------------------------------------------------------
def _finite(values: Any) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[~np.isnan(arr)]


def _median(values: Any) -> float:
    arr = _finite(values)
    return float(np.median(arr)) if arr.size else np.nan


def _mean(values: Any) -> float:
    arr = _finite(values)
    return float(arr.mean()) if arr.size else np.nan


def _sum(values: Any) -> float:
    return float(_finite(values).sum())


def _sd(values: Any) -> float:
    arr = _finite(values)
    return float(arr.std(ddof=1)) if arr.size > 1 else np.nan


def _mad(values: Any) -> float:
    arr = _finite(values)
    if not arr.size:
        return np.nan
    return float(stats.median_abs_deviation(arr, scale="normal"))


class SummaryRegistry:
    """
    Registry mapping summary names to typed reductions.

    Design Notes:
    - Every name is validated at call time; unknown names raise UnknownSummaryError
    - Each summary declares the variable type it applies to ("continuous" / "discrete")
    """

    def __init__(self) -> None:
        self._summaries: Dict[str, Summary] = {}

    def register(
        self,
        name: str,
        fn: Callable[[Any], Any],
        kind: str = CONTINUOUS,
        overwrite: bool = False,
    ) -> None:
        """
        :raises ValueError: unknown kind, or name already registered and overwrite is False
        """
        if kind not in (CONTINUOUS, DISCRETE):
            raise ValueError(f"Summary kind must be '{CONTINUOUS}' or '{DISCRETE}', got '{kind}'")
        if name in self._summaries and not overwrite:
            raise ValueError(f"Summary '{name}' already registered")
        self._summaries[name] = Summary(name=name, fn=fn, kind=kind)

    def get(self, name: str) -> Summary:
        try:
            return self._summaries[name]
        except KeyError:
            raise UnknownSummaryError(name, self._summaries) from None

    def names(self, kind: Optional[str] = None) -> List[str]:
        return [n for n, s in self._summaries.items() if kind is None or s.kind == kind]

    def __contains__(self, name: str) -> bool:
        return name in self._summaries


def create_default_summaries() -> SummaryRegistry:
    registry = SummaryRegistry()
    registry.register("median", _median, CONTINUOUS)
    registry.register("mean", _mean, CONTINUOUS)
    registry.register("sum", _sum, CONTINUOUS)
    registry.register("sd", _sd, CONTINUOUS)
    registry.register("mad", _mad, CONTINUOUS)
    registry.register("mode", mode, DISCRETE)
    registry.register("mode_share", mode_share, DISCRETE)
    return registry


DEFAULT_SUMMARIES = create_default_summaries()


def check_summary(
    summary: str,
    values: pd.Series,
    registry: Optional[SummaryRegistry] = None,
) -> Summary:
    """
    Look up `summary` and check it fits the declared type of `values`.

    :raises UnknownSummaryError: name not registered
    :raises TypeMismatchError: continuous summary on categorical values or vice versa
    """
    entry = (registry or DEFAULT_SUMMARIES).get(summary)
    numeric = is_numeric_series(values)
    if entry.kind == CONTINUOUS and not numeric:
        raise TypeMismatchError(str(values.name), "numeric", "categorical")
    if entry.kind == DISCRETE and numeric:
        raise TypeMismatchError(str(values.name), "categorical", "numeric")
    return entry


def default_summary(values: pd.Series) -> str:
    """'median' for numeric values, 'mode' for categorical ones."""
    return "median" if is_numeric_series(values) else "mode"


# -------------------------------------------------------------------------
# Grouping
# -------------------------------------------------------------------------
def group_positions(table: pd.DataFrame, by: Sequence[str]) -> List[Tuple[Tuple[Any, ...], np.ndarray]]:
    """
    Row positions per distinct combination of `by` values, in first-seen order.
    Missing values form their own "NA" group.
    """
    if not by:
        return [((), np.arange(len(table)))]

    frame = table[list(by)].astype(object)
    frame = frame.where(frame.notna(), "NA")

    groups: Dict[Tuple[Any, ...], List[int]] = {}
    for pos, key in enumerate(frame.itertuples(index=False, name=None)):
        groups.setdefault(key, []).append(pos)
    return [(key, np.asarray(rows)) for key, rows in groups.items()]


def group_label(key: Tuple[Any, ...]) -> str:
    return " | ".join(str(k) for k in key)


def summarize(
    table: pd.DataFrame,
    column: str,
    by: Optional[Sequence[str] | str] = None,
    summary: Optional[str] = None,
    registry: Optional[SummaryRegistry] = None,
) -> pd.DataFrame:
    """
    Summarise `column` within each group of `by`.

    Returns one row per group (first-seen order) with the `by` columns,
    `column` holding the summary value and `n` the group size.
    """
    by = [by] if isinstance(by, str) else list(by or [])
    values = table[column]
    summary = summary or default_summary(values)
    entry = check_summary(summary, values, registry)

    rows = []
    for key, positions in group_positions(table, by):
        group_values = values.iloc[positions]
        rows.append((*key, entry.fn(group_values.to_numpy()), len(positions)))

    out = pd.DataFrame(rows, columns=[*by, column, "n"])
    out.attrs["summary"] = summary
    return out


# -------------------------------------------------------------------------
# Dot-plot style multi-variable summaries
# -------------------------------------------------------------------------
def _center_scale(values: pd.Series) -> pd.Series:
    sd = values.std(ddof=1)
    if not np.isfinite(sd) or sd == 0:
        return pd.Series(0.0, index=values.index)
    return (values - values.mean()) / sd


def summarize_dots(
    table: pd.DataFrame,
    variables: Sequence[str],
    group_by: Sequence[str] | str,
    summary: str = "mean",
    scale: bool = True,
    registry: Optional[SummaryRegistry] = None,
) -> pd.DataFrame:
    """
    Per (group, variable): the continuous `summary` of the values and the
    fraction of observations in the group with strictly positive values.

    With `scale`, each variable's summaries are centred and scaled across
    groups into `color_value`; otherwise `color_value` is the raw summary.
    """
    group_by = [group_by] if isinstance(group_by, str) else list(group_by)
    for var in variables:
        check_summary(summary, table[var], registry)
    entry = (registry or DEFAULT_SUMMARIES).get(summary)

    rows = []
    for key, positions in group_positions(table, group_by):
        label = group_label(key)
        for var in variables:
            values = table[var].iloc[positions].to_numpy(dtype=float)
            rows.append(
                (
                    *key,
                    label,
                    var,
                    entry.fn(values),
                    float((values > 0).mean()) if values.size else np.nan,
                    len(positions),
                )
            )

    out = pd.DataFrame(
        rows,
        columns=[*group_by, "group", "variable", "summary", "pct_expressed", "n"],
    )

    if scale and not out.empty:
        out["color_value"] = out.groupby("variable", sort=False)["summary"].transform(_center_scale)
    else:
        out["color_value"] = out["summary"]

    out["group"] = pd.Categorical(out["group"], categories=list(dict.fromkeys(out["group"])), ordered=True)
    out["variable"] = pd.Categorical(out["variable"], categories=list(variables), ordered=True)
    out.attrs["summary"] = summary
    out.attrs["scaled"] = scale
    return out
