from __future__ import annotations

import math
import re
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List, Tuple

SEMESTER_FALLBACK_KEYS: Tuple[str, ...] = ("semester", "SEMESTER", "TERM", "SNAPSHOT", "스냅샷", "학기")

_SPLIT_RE = re.compile(r"[-_. ]")


def _token_number(token: str) -> float:
    token = token.strip()
    if not token:
        return 0
    try:
        value = float(token)
    except ValueError:
        return 0
    return value if math.isfinite(value) else 0


def semester_key(label: Any) -> Tuple[float, float]:
    """``"2023-1"`` -> ``(2023, 1)``; unparseable parts count as 0."""
    parts = _SPLIT_RE.split(str(label))
    year = _token_number(parts[0]) if parts else 0
    term = _token_number(parts[1]) if len(parts) > 1 else 0
    return year, term


def compare_semester(a: Any, b: Any) -> int:
    ka, kb = semester_key(a), semester_key(b)
    return (ka > kb) - (ka < kb)


def sort_semesters(labels: Iterable[Any]) -> List[Any]:
    return sorted(labels, key=cmp_to_key(compare_semester))


def semester_of(row: Dict[str, Any]) -> str:
    for key in SEMESTER_FALLBACK_KEYS:
        value = row.get(key)
        if value is not None:
            return str(value)
    return ""


def semesters_from_rows(rows: Iterable[Dict[str, Any]]) -> List[str]:
    seen: Dict[str, None] = {}
    for r in rows:
        s = semester_of(r)
        if s.strip():
            seen.setdefault(s, None)
    return sort_semesters(seen)
