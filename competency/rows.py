from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from competency.headers import is_po, is_tpo, map_header, metric_index, norm, to_number

Record = Dict[str, Any]

_METRIC_NAME_SEP_RE = re.compile(r"[\s_\-]+")
_LONG_PO_RE = re.compile(r"^PO[0-9]+$")
_LONG_TPO_RE = re.compile(r"^TPO[0-9]+$")


def _find_key(row: Record, target: str) -> Optional[str]:
    for k in row.keys():
        if norm(k) == target:
            return k
    return None


def is_long_shape(rows: Sequence[Record]) -> bool:
    """True when the first record carries both a METRIC and a VALUE column.

    The whole batch is assumed to share one shape; only ``rows[0]`` is inspected.
    """
    if not rows:
        return False
    first = rows[0]
    return _find_key(first, "METRIC") is not None and _find_key(first, "VALUE") is not None


def _pivot_long(rows: Sequence[Record]) -> List[Record]:
    meta_keys = [k for k in rows[0].keys() if norm(k) not in ("METRIC", "VALUE")]
    canon_meta = [(mk, map_header(mk)) for mk in meta_keys]

    pivoted: Dict[str, Record] = {}
    for r in rows:
        key = "|".join(f"{ck}::{r.get(mk)}" for mk, ck in canon_meta)
        cur = pivoted.get(key)
        if cur is None:
            cur = {ck: r.get(mk) for mk, ck in canon_meta}
            pivoted[key] = cur

        metric_key = _find_key(r, "METRIC")
        value_key = _find_key(r, "VALUE")
        raw_metric = r.get(metric_key) if metric_key is not None else None
        m = _METRIC_NAME_SEP_RE.sub("", str(raw_metric or "").upper())
        v = r.get(value_key) if value_key is not None else None
        if _LONG_PO_RE.match(m):
            cur[f"PO_{metric_index(m)}"] = to_number(v)
        elif _LONG_TPO_RE.match(m):
            cur[f"TPO_{metric_index(m)}"] = to_number(v)
    return list(pivoted.values())


def normalize_rows(rows: Sequence[Record]) -> List[Record]:
    """Reshape raw sheet records onto canonical keys.

    Long input (one row per student/metric) is pivoted to one row per distinct
    combination of the remaining columns; wide input only has its headers mapped.
    """
    if not rows:
        return []
    if is_long_shape(rows):
        return _pivot_long(rows)
    out: List[Record] = []
    for row in rows:
        mapped: Record = {}
        for k, v in row.items():
            mapped[map_header(k)] = v
        out.append(mapped)
    return out


def explode_to_long(rows: Sequence[Record], metric_cols: Optional[Sequence[str]] = None) -> List[Record]:
    """Inverse of the pivot: one ``metric``/``value`` record per PO/TPO cell."""
    out: List[Record] = []
    for row in rows:
        cols = metric_cols or [k for k in row.keys() if is_po(k) or is_tpo(k)]
        meta = {k: v for k, v in row.items() if not (is_po(k) or is_tpo(k))}
        for col in cols:
            if col not in row:
                continue
            out.append({**meta, "metric": col.replace("_", ""), "value": row[col]})
    return out


STUDENT_ID_FALLBACK_KEYS = ("studentId", "학번", "STUDENT ID", "ID")


def student_id_of(row: Record) -> str:
    for key in STUDENT_ID_FALLBACK_KEYS:
        value = row.get(key)
        if value is not None:
            return str(value).strip()
    return ""
