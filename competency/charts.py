from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

PALETTE: Tuple[str, ...] = (
    "#2563EB", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6",
    "#06B6D4", "#84CC16", "#F472B6", "#F97316", "#22C55E",
    "#14B8A6", "#3B82F6", "#A855F7", "#E11D48", "#65A30D",
)
BAR_DOMAIN = (40, 100)
RADIAL_DOMAIN = (0, 100)


@dataclass
class ColorAssigner:
    """Series key -> palette colour, assigned in order of first request.

    Owned by the caller (one per session / request) so colours stay stable
    across every chart drawn from the same assigner.
    """

    palette: Sequence[str] = PALETTE
    assigned: Dict[str, str] = field(default_factory=dict)

    def color_for(self, key: Any) -> str:
        k = str(key)
        if k not in self.assigned:
            self.assigned[k] = self.palette[len(self.assigned) % len(self.palette)]
        return self.assigned[k]

    def scale(self, keys: Sequence[Any]) -> alt.Scale:
        domain = [str(k) for k in keys]
        return alt.Scale(domain=domain, range=[self.color_for(k) for k in domain])


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def to_long(records: Sequence[Dict[str, Any]], pivot: str, series: Sequence[Any]) -> pd.DataFrame:
    """Pivoted aggregate records -> ``(pivot, series, value)`` rows; missing values stay NaN."""
    rows: List[Dict[str, Any]] = []
    for rec in records:
        for s in series:
            rows.append({pivot: rec.get(pivot), "series": str(s), "value": rec.get(s)})
    df = pd.DataFrame.from_records(rows, columns=[pivot, "series", "value"])
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    return df


def grouped_bar_chart(
    records: Sequence[Dict[str, Any]],
    series: Sequence[Any],
    colors: ColorAssigner,
    *,
    pivot: str = "metric",
    title: Optional[str] = None,
    domain: Tuple[float, float] = BAR_DOMAIN,
) -> alt.Chart:
    long_df = to_long(records, pivot, series)
    order = [rec.get(pivot) for rec in records]
    chart = (
        alt.Chart(long_df)
        .mark_bar(clip=True)
        .encode(
            x=alt.X(f"{pivot}:N", sort=order, title=None, axis=alt.Axis(labelAngle=0)),
            xOffset=alt.XOffset("series:N"),
            y=alt.Y("value:Q", title="Score", scale=alt.Scale(domain=list(domain)), axis=alt.Axis(gridDash=[4, 4])),
            color=alt.Color("series:N", title=None, scale=colors.scale(series)),
            tooltip=[
                alt.Tooltip(f"{pivot}:N", title=pivot.capitalize()),
                alt.Tooltip("series:N", title="Series"),
                alt.Tooltip("value:Q", title="Mean", format=".2f"),
            ],
        )
        .properties(height=300)
    )
    if title:
        chart = chart.properties(title=title)
    return chart


def trend_line_chart(
    records: Sequence[Dict[str, Any]],
    series: Sequence[Any],
    colors: ColorAssigner,
    *,
    title: Optional[str] = None,
    domain: Tuple[float, float] = BAR_DOMAIN,
) -> alt.Chart:
    long_df = to_long(records, "semester", series)
    order = [rec.get("semester") for rec in records]
    hover = alt.selection_point(fields=["series"], on="mouseover", empty="all")
    chart = (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60}, clip=True)
        .encode(
            x=alt.X("semester:O", sort=order, title="Semester", axis=alt.Axis(labelAngle=0, grid=False)),
            y=alt.Y("value:Q", title="Mean", scale=alt.Scale(domain=list(domain)), axis=alt.Axis(gridDash=[4, 4])),
            color=alt.Color("series:N", title=None, scale=colors.scale(series)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=[
                alt.Tooltip("semester:O", title="Semester"),
                alt.Tooltip("series:N", title="Series"),
                alt.Tooltip("value:Q", title="Mean", format=".2f"),
            ],
        )
        .add_params(hover)
        .properties(height=300)
    )
    if title:
        chart = chart.properties(title=title)
    return chart


def profile_chart(
    records: Sequence[Dict[str, Any]],
    series: Sequence[Any],
    colors: ColorAssigner,
    *,
    title: Optional[str] = None,
) -> alt.Chart:
    """Per-axis profile of each series on the 0-100 radial scale, drawn as connected points."""
    long_df = to_long(records, "axis", series)
    order = [rec.get("axis") for rec in records]
    chart = (
        alt.Chart(long_df)
        .mark_line(point=True)
        .encode(
            x=alt.X("axis:N", sort=order, title=None, axis=alt.Axis(labelAngle=0)),
            y=alt.Y("value:Q", title="Mean", scale=alt.Scale(domain=list(RADIAL_DOMAIN))),
            color=alt.Color("series:N", title=None, scale=colors.scale(series)),
            tooltip=[
                alt.Tooltip("axis:N", title="Axis"),
                alt.Tooltip("series:N", title="Series"),
                alt.Tooltip("value:Q", title="Mean", format=".2f"),
            ],
        )
        .properties(height=300)
    )
    if title:
        chart = chart.properties(title=title)
    return chart
