"""Grouped means over canonical rows.

Every aggregate reports ``None`` for a group without a single usable value.
Callers decide how to draw "no data"; nothing here substitutes 0.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from competency.headers import HEADER_ALIASES, metric_label, norm, to_number
from competency.rows import student_id_of
from competency.semesters import semester_of, semesters_from_rows

GPA_BUCKET_LOW = "low"
GPA_BUCKET_MID = "mid"
GPA_BUCKET_HIGH = "high"
GPA_BUCKET_UNRESOLVED = "unresolved"
GPA_BUCKETS = (GPA_BUCKET_LOW, GPA_BUCKET_MID, GPA_BUCKET_HIGH)

GPA_BUCKET_LABELS = {
    GPA_BUCKET_LOW: "2점대 이하",
    GPA_BUCKET_MID: "3점대",
    GPA_BUCKET_HIGH: "4점대+",
    GPA_BUCKET_UNRESOLVED: "미확인",
}


def unique(values: Iterable[Any]) -> List[Any]:
    seen: Dict[Hashable, None] = {}
    for v in values:
        if v is None or str(v).strip() == "":
            continue
        seen.setdefault(v, None)
    return list(seen)


def mean_or_none(values: Any) -> Optional[float]:
    arr = np.asarray(values, dtype=float).ravel()
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return None
    return float(arr.mean())


def metric_frame(rows: Sequence[Dict[str, Any]], metric_cols: Sequence[str], dept_key: str = "dept") -> pd.DataFrame:
    """One row per record: ``studentId``/``dept``/``semester`` plus float metric columns (NaN = missing)."""
    cols = list(dict.fromkeys(metric_cols))
    records = []
    for r in rows:
        rec = {"studentId": student_id_of(r), "dept": r.get(dept_key), "semester": semester_of(r)}
        for c in cols:
            rec[c] = to_number(r.get(c))
        records.append(rec)
    df = pd.DataFrame.from_records(records, columns=["studentId", "dept", "semester", *cols])
    if cols:
        df[cols] = df[cols].astype(float)
    return df


def _semester_slice(df: pd.DataFrame, semester_filter: Optional[str]) -> pd.DataFrame:
    if not semester_filter:
        return df
    return df[df["semester"] == str(semester_filter)]


def aggregate_by_dept(
    rows: Sequence[Dict[str, Any]],
    metric_cols: Sequence[str],
    dept_key: str = "dept",
    semester_filter: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Per-metric means, one field per department present in ``rows``."""
    df = metric_frame(rows, metric_cols, dept_key)
    depts = unique(df["dept"].tolist())
    selected = _semester_slice(df, semester_filter)

    out: List[Dict[str, Any]] = []
    for col in metric_cols:
        entry: Dict[str, Any] = {"metric": metric_label(col)}
        for d in depts:
            entry[d] = mean_or_none(selected.loc[selected["dept"] == d, col])
        out.append(entry)
    return out


def _over_time(
    df: pd.DataFrame,
    semesters: Sequence[str],
    metric_cols: Sequence[str],
    group_col: str,
    groups: Sequence[Any],
) -> List[Dict[str, Any]]:
    cols = list(dict.fromkeys(metric_cols))
    out: List[Dict[str, Any]] = []
    for sem in semesters:
        obj: Dict[str, Any] = {"semester": sem}
        in_sem = df[df["semester"] == sem]
        for g in groups:
            block = in_sem.loc[in_sem[group_col] == g, cols]
            obj[g] = mean_or_none(block.to_numpy())
        out.append(obj)
    return out


def aggregate_over_time_by_dept(
    rows: Sequence[Dict[str, Any]],
    metric_cols: Sequence[str],
    selected_depts: Sequence[str],
    dept_key: str = "dept",
) -> List[Dict[str, Any]]:
    """Per-semester mean over all ``metric_cols`` jointly, one field per department."""
    df = metric_frame(rows, metric_cols, dept_key)
    return _over_time(df, semesters_from_rows(rows), metric_cols, "dept", list(selected_depts))


def aggregate_over_time_by_student(
    rows: Sequence[Dict[str, Any]],
    metric_cols: Sequence[str],
    selected_students: Sequence[Any],
) -> List[Dict[str, Any]]:
    df = metric_frame(rows, metric_cols)
    students = [str(s) for s in selected_students]
    return _over_time(df, semesters_from_rows(rows), metric_cols, "studentId", students)


def radar_by_dept(
    rows: Sequence[Dict[str, Any]],
    metric_cols: Sequence[str],
    selected_depts: Sequence[str],
    semester_filter: Optional[str] = None,
    dept_key: str = "dept",
) -> List[Dict[str, Any]]:
    """Same means as :func:`aggregate_by_dept`, keyed by ``axis`` for radial charts."""
    if not selected_depts or not metric_cols:
        return []
    df = _semester_slice(metric_frame(rows, metric_cols, dept_key), semester_filter)
    out: List[Dict[str, Any]] = []
    for col in metric_cols:
        entry: Dict[str, Any] = {"axis": metric_label(col)}
        for d in selected_depts:
            entry[d] = mean_or_none(df.loc[df["dept"] == d, col])
        out.append(entry)
    return out


def student_snapshot(
    rows: Sequence[Dict[str, Any]],
    metric_cols: Sequence[str],
    target_ids: Sequence[Any],
    semester: str,
) -> List[Dict[str, Any]]:
    """Per-metric means for each target student within one semester."""
    ids = [str(s) for s in target_ids]
    if not ids:
        return []
    df = _semester_slice(metric_frame(rows, metric_cols), semester)
    df = df[df["studentId"].isin(ids)]
    if df.empty:
        return []
    out: List[Dict[str, Any]] = []
    for col in metric_cols:
        entry: Dict[str, Any] = {"metric": metric_label(col)}
        for sid in ids:
            entry[sid] = mean_or_none(df.loc[df["studentId"] == sid, col])
        out.append(entry)
    return out


def _find_alias_key(keys: Iterable[str], field: str) -> Optional[str]:
    targets = {norm(a) for a in HEADER_ALIASES[field]} | {norm(field)}
    for k in keys:
        if norm(k) in targets:
            return k
    return None


def build_student_gpa_index(grade_rows: Sequence[Dict[str, Any]]) -> Dict[str, Optional[float]]:
    """Mean GPA per student id; ``None`` when a student has no usable GPA value.

    The id and GPA columns are resolved once, from the first record's keys.
    """
    if not grade_rows:
        return {}
    first_keys = list(grade_rows[0].keys())
    gpa_key = _find_alias_key(first_keys, "gpa")
    id_key = _find_alias_key(first_keys, "studentId") or "studentId"

    records = []
    for r in grade_rows:
        raw_id = r.get(id_key)
        if raw_id is None:
            raw_id = r.get("studentId", r.get("학번"))
        sid = "" if raw_id is None else str(raw_id).strip()
        if not sid:
            continue
        records.append({"sid": sid, "gpa": to_number(r.get(gpa_key)) if gpa_key else None})
    if not records:
        return {}

    df = pd.DataFrame.from_records(records, columns=["sid", "gpa"])
    df["gpa"] = df["gpa"].astype(float)
    means = df.groupby("sid", sort=False)["gpa"].mean()
    return {sid: (None if pd.isna(v) else float(v)) for sid, v in means.items()}


def bucket_from_gpa(gpa: Optional[float]) -> str:
    if gpa is None or pd.isna(gpa):
        return GPA_BUCKET_UNRESOLVED
    if gpa < 3:
        return GPA_BUCKET_LOW
    if gpa < 4:
        return GPA_BUCKET_MID
    return GPA_BUCKET_HIGH
