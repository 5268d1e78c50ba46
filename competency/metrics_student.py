from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from competency.aggregate import GPA_BUCKET_LABELS, aggregate_over_time_by_student, bucket_from_gpa, student_snapshot
from competency.charts import ColorAssigner, grouped_bar_chart, to_vega_spec, trend_line_chart
from competency.filters import DashboardFilters
from competency.headers import fmt2


def student_label(sid: str, gpa_index: Dict[str, Optional[float]]) -> str:
    if sid in gpa_index:
        return f"{sid} (GPA {fmt2(gpa_index[sid])})"
    return sid


def _student_options(ids: List[str], gpa_index: Dict[str, Optional[float]]) -> List[Dict[str, Any]]:
    out = []
    for sid in ids:
        label = student_label(sid, gpa_index)
        gpa = gpa_index.get(sid)
        bucket = bucket_from_gpa(gpa)
        out.append({"studentId": sid, "label": label, "gpa": gpa, "bucket": bucket, "bucket_label": GPA_BUCKET_LABELS[bucket]})
    return out


def compute_student(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    colors: Optional[ColorAssigner] = None,
) -> Dict[str, Any]:
    rows: List[Dict[str, Any]] = ctx.get("result_rows", []) or []
    po_cols: List[str] = ctx.get("po_cols", []) or []
    tpo_cols: List[str] = ctx.get("tpo_cols", []) or []
    gpa_index = ctx.get("gpa_index", {}) or {}
    shown_ids: List[str] = ctx.get("shown_ids", []) or []
    target_ids: List[str] = ctx.get("target_ids", []) or []
    active_semester: str = ctx.get("active_semester", "") or ""
    colors = colors or ColorAssigner()

    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "active_semester": active_semester,
        "students": _student_options(shown_ids, gpa_index),
        "snapshot": {},
        "growth": {},
        "charts": {},
    }
    if not rows or not (po_cols or tpo_cols):
        return payload

    snapshot = {
        "tpo": student_snapshot(rows, tpo_cols, target_ids, active_semester),
        "po": student_snapshot(rows, po_cols, target_ids, active_semester),
    }
    selected = filters.selected_students
    growth = {
        "tpo": aggregate_over_time_by_student(rows, tpo_cols, selected),
        "po": aggregate_over_time_by_student(rows, po_cols, selected),
    }

    charts: Dict[str, Any] = {}
    for family in ("tpo", "po"):
        label = family.upper()
        if snapshot[family]:
            charts[f"{family}_bar"] = to_vega_spec(
                grouped_bar_chart(snapshot[family], target_ids, colors, title=f"{label} ({active_semester})")
            )
        if selected and growth[family]:
            charts[f"{family}_growth"] = to_vega_spec(
                trend_line_chart(growth[family], selected, colors, title=f"{label} growth by semester")
            )

    payload.update({"snapshot": snapshot, "growth": growth, "charts": charts, "colors": dict(colors.assigned)})
    return payload
