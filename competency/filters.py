from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from competency.aggregate import GPA_BUCKET_UNRESOLVED, GPA_BUCKETS, bucket_from_gpa, unique
from competency.rows import student_id_of

DEFAULT_DEPT_SELECTION = 3

_YEAR_RE = re.compile(r"^[0-9]{4}$")
_VALID_BUCKETS = set(GPA_BUCKETS) | {GPA_BUCKET_UNRESOLVED}


@dataclass(frozen=True)
class DashboardFilters:
    semester: str = ""
    selected_depts: List[str] = field(default_factory=list)
    selected_students: List[str] = field(default_factory=list)
    student_depts: List[str] = field(default_factory=list)
    gpa_buckets: List[str] = field(default_factory=list)
    year_prefixes: List[str] = field(default_factory=list)
    student_query: str = ""


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def normalize_filters(
    raw: Mapping[str, Any],
    *,
    available_semesters: Optional[Sequence[str]] = None,
    available_depts: Optional[Sequence[str]] = None,
) -> DashboardFilters:
    available_semesters = list(available_semesters or [])
    available_depts = list(available_depts or [])

    semester = str(raw.get("semester") or "").strip()
    if semester and available_semesters and semester not in available_semesters:
        semester = ""

    selected_depts = _as_str_list(raw.get("selected_depts"))
    if not selected_depts:
        selected_depts = available_depts[:DEFAULT_DEPT_SELECTION]

    gpa_buckets = [b for b in _as_str_list(raw.get("gpa_buckets")) if b in _VALID_BUCKETS]
    year_prefixes = [y for y in _as_str_list(raw.get("year_prefixes")) if _YEAR_RE.match(y)]

    return DashboardFilters(
        semester=semester,
        selected_depts=selected_depts,
        selected_students=_as_str_list(raw.get("selected_students")),
        student_depts=_as_str_list(raw.get("student_depts")),
        gpa_buckets=gpa_buckets,
        year_prefixes=year_prefixes,
        student_query=str(raw.get("student_query") or "").strip(),
    )


def all_students(rows: Iterable[Dict[str, Any]]) -> List[str]:
    return unique(student_id_of(r) for r in rows)


def student_year_options(student_ids: Iterable[str]) -> List[str]:
    return unique(y for y in (str(sid)[:4] for sid in student_ids) if _YEAR_RE.match(y))


def filter_student_ids(
    student_ids: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    *,
    dept_key: str = "dept",
    student_depts: Sequence[str] = (),
    gpa_buckets: Sequence[str] = (),
    year_prefixes: Sequence[str] = (),
    gpa_index: Optional[Mapping[str, Optional[float]]] = None,
) -> List[str]:
    """Narrow the student list; an empty criterion leaves the list untouched."""
    ids = [str(s) for s in student_ids]
    if student_depts:
        allowed = set(student_depts)
        members = {student_id_of(r) for r in rows if str(r.get(dept_key)) in allowed}
        ids = [sid for sid in ids if sid in members]
    if gpa_buckets:
        buckets = set(gpa_buckets)
        index = gpa_index or {}
        ids = [sid for sid in ids if bucket_from_gpa(index.get(sid)) in buckets]
    if year_prefixes:
        years = set(year_prefixes)
        ids = [sid for sid in ids if sid[:4] in years]
    return ids


def search_student_ids(student_ids: Sequence[str], query: str) -> List[str]:
    q = (query or "").strip()
    if not q:
        return list(student_ids)
    return [sid for sid in student_ids if q in str(sid)]
