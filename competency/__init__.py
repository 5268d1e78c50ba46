"""Core (UI-agnostic) competency dashboard logic.

This package contains:
- header / row-shape normalization (sheet exports -> canonical records)
- department canonicalization
- metric column extraction and semester ordering
- grouped aggregates (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""

from competency.aggregate import (
    aggregate_by_dept,
    aggregate_over_time_by_dept,
    aggregate_over_time_by_student,
    bucket_from_gpa,
    build_student_gpa_index,
    radar_by_dept,
    student_snapshot,
)
from competency.columns import extract_metrics
from competency.departments import canon_major, canonicalize_department, ensure_dept, infer_dept_from_filename
from competency.headers import map_header, to_number
from competency.rows import normalize_rows
from competency.semesters import compare_semester

__all__ = [
    "aggregate_by_dept",
    "aggregate_over_time_by_dept",
    "aggregate_over_time_by_student",
    "bucket_from_gpa",
    "build_student_gpa_index",
    "radar_by_dept",
    "student_snapshot",
    "extract_metrics",
    "canon_major",
    "canonicalize_department",
    "ensure_dept",
    "infer_dept_from_filename",
    "map_header",
    "to_number",
    "normalize_rows",
    "compare_semester",
]
