from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from competency.aggregate import aggregate_by_dept, aggregate_over_time_by_dept, radar_by_dept
from competency.charts import ColorAssigner, grouped_bar_chart, profile_chart, to_vega_spec, trend_line_chart
from competency.filters import DashboardFilters


def _selected_columns(records: List[Dict[str, Any]], depts: List[str]) -> List[Dict[str, Any]]:
    return [{"metric": r["metric"], **{d: r.get(d) for d in depts}} for r in records]


def compute_department(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    colors: Optional[ColorAssigner] = None,
) -> Dict[str, Any]:
    rows: List[Dict[str, Any]] = ctx.get("result_rows", []) or []
    po_cols: List[str] = ctx.get("po_cols", []) or []
    tpo_cols: List[str] = ctx.get("tpo_cols", []) or []
    depts: List[str] = ctx.get("dept_selection", []) or []
    colors = colors or ColorAssigner()

    if not rows or not (po_cols or tpo_cols):
        return {"filters": asdict(filters), "departments": depts, "snapshot": {}, "profile": {}, "growth": {}, "charts": {}, "colors": {}}

    semester = filters.semester
    snapshot = {
        "tpo": _selected_columns(aggregate_by_dept(rows, tpo_cols, semester_filter=semester), depts),
        "po": _selected_columns(aggregate_by_dept(rows, po_cols, semester_filter=semester), depts),
    }
    profile = {
        "tpo": radar_by_dept(rows, tpo_cols, depts, semester_filter=semester),
        "po": radar_by_dept(rows, po_cols, depts, semester_filter=semester),
    }
    growth = {
        "tpo": aggregate_over_time_by_dept(rows, tpo_cols, depts),
        "po": aggregate_over_time_by_dept(rows, po_cols, depts),
    }

    charts: Dict[str, Any] = {}
    for family in ("tpo", "po"):
        label = family.upper()
        if snapshot[family]:
            charts[f"{family}_bar"] = to_vega_spec(
                grouped_bar_chart(snapshot[family], depts, colors, title=f"{label} by department")
            )
        if profile[family]:
            charts[f"{family}_profile"] = to_vega_spec(profile_chart(profile[family], depts, colors, title=f"{label} profile"))
        if growth[family]:
            charts[f"{family}_growth"] = to_vega_spec(
                trend_line_chart(growth[family], depts, colors, title=f"{label} growth by semester")
            )

    return {
        "filters": asdict(filters),
        "departments": depts,
        "snapshot": snapshot,
        "profile": profile,
        "growth": growth,
        "charts": charts,
        "colors": dict(colors.assigned),
    }
