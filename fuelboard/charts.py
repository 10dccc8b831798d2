from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

from fuelboard.config import Config

alt.data_transformers.disable_max_rows()

PALETTE = ("#3b82f6", "#10b981", "#f59e0b", "#f97316", "#8b5cf6", "#ec4899")

# Non-fuel lines hidden from the fuel breakdown
NON_FUEL_SLICES = ("Shop Sales", "Valet Sales")


@dataclass(frozen=True)
class ChartPoint:
    label: str
    value: float
    color: Optional[str] = None


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(out) else out


def distribution_series(
    rows: Iterable[Mapping[str, Any]],
    *,
    exclude: Sequence[str] = (),
    min_value: float = Config.MIN_SLICE_VALUE,
) -> List[ChartPoint]:
    series: List[ChartPoint] = []
    for row in rows or []:
        name = row.get("name")
        value = _to_float(row.get("value"))
        if name is None or name in exclude or value is None or value <= min_value:
            continue
        series.append(ChartPoint(label=str(name), value=value, color=PALETTE[len(series) % len(PALETTE)]))
    return series


def series_records(series: Sequence[ChartPoint]) -> List[Dict[str, Any]]:
    return [asdict(p) for p in series]


def _keyed_frame(rows: Iterable[Mapping[str, Any]], key: str) -> pd.DataFrame:
    df = pd.DataFrame(list(rows or []))
    if df.empty or key not in df.columns:
        return pd.DataFrame(columns=[key])
    df[key] = pd.to_numeric(df[key], errors="coerce")
    df = df.dropna(subset=[key])
    value_cols = [c for c in df.columns if c != key]
    for col in value_cols:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    value_cols = [c for c in value_cols if df[c].notna().any()]
    df[key] = df[key].astype(int)
    if not value_cols:
        return df[[key]].drop_duplicates().sort_values(key).reset_index(drop=True)
    # several months/years can report the same key; those rows add up
    return df.groupby(key, as_index=False)[value_cols].sum(min_count=1).sort_values(key).reset_index(drop=True)


def date_wise_frame(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    return _keyed_frame(rows, "day")


def monthly_frame(payload: Optional[Mapping[str, Any]]) -> pd.DataFrame:
    """Pivot ``{"labels": [...], "datasets": [{"name", "data"}]}`` into one row per month."""
    labels = list((payload or {}).get("labels") or [])
    if not labels:
        return pd.DataFrame(columns=["month", "label"])
    df = pd.DataFrame({"month": range(1, len(labels) + 1), "label": [str(x) for x in labels]})
    for dataset in (payload or {}).get("datasets") or []:
        name = dataset.get("name")
        data = list(dataset.get("data") or [])
        if not name:
            continue
        data = (data + [None] * len(labels))[: len(labels)]
        df[str(name)] = pd.to_numeric(pd.Series(data, dtype=object), errors="coerce").to_numpy()
    return df


def pie_spec(series: Sequence[ChartPoint], *, title: str = "") -> Optional[Dict[str, Any]]:
    if not series:
        return None
    df = pd.DataFrame(series_records(series))
    chart = (
        alt.Chart(df, title=title)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("label:N", scale=alt.Scale(domain=df["label"].tolist(), range=df["color"].tolist()), title=None),
            tooltip=["label", alt.Tooltip("value:Q", format=",.2f")],
        )
    )
    return to_vega_spec(chart)


def bar_spec(df: pd.DataFrame, x: str, y: str, *, title: str = "", y_format: str = "~s") -> Optional[Dict[str, Any]]:
    if df is None or df.empty or x not in df.columns or y not in df.columns:
        return None
    chart = (
        alt.Chart(df[[x, y]], title=title)
        .mark_bar()
        .encode(
            x=alt.X(f"{x}:O", title=x.title()),
            y=alt.Y(f"{y}:Q", title=y.title(), axis=alt.Axis(format=y_format)),
            tooltip=[x, alt.Tooltip(f"{y}:Q", format=",.2f")],
        )
    )
    return to_vega_spec(chart)


__all__ = [
    "ChartPoint",
    "NON_FUEL_SLICES",
    "PALETTE",
    "bar_spec",
    "date_wise_frame",
    "distribution_series",
    "monthly_frame",
    "pie_spec",
    "series_records",
    "to_vega_spec",
]
