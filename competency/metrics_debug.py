from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from competency.data import rows_to_frame, unrecognized_columns
from competency.departments import UNKNOWN_MAJOR_FLAG
from competency.filters import DashboardFilters


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows = ctx.get("result_rows", []) or []
    payload: Dict[str, Any] = {
        "filters": asdict(filters),
        "row_counts": {
            "result_rows": len(rows),
            "grade_rows": len(ctx.get("grade_rows", []) or []),
            "students_with_gpa": len(ctx.get("gpa_index", {}) or {}),
        },
        "files": [],
        "metric_columns": {"po": ctx.get("po_cols", []), "tpo": ctx.get("tpo_cols", [])},
        "unrecognized_columns": unrecognized_columns(rows),
        "semester_coverage": [],
    }

    for f in ctx.get("result_files", []) or []:
        f_rows = f.get("rows") or []
        payload["files"].append(
            {
                "name": f.get("name"),
                "rows": len(f_rows),
                "unresolved_dept_rows": sum(1 for r in f_rows if r.get(UNKNOWN_MAJOR_FLAG)),
            }
        )

    df = rows_to_frame(rows)
    if not df.empty and {"semester", "dept", "studentId"}.issubset(df.columns):
        coverage = (
            df.fillna({"dept": ""})
            .groupby(["semester", "dept"])["studentId"]
            .agg(["count", "nunique"])
            .reset_index()
            .rename(columns={"count": "rows", "nunique": "students"})
        )
        payload["semester_coverage"] = coverage.to_dict(orient="records")
    return payload
