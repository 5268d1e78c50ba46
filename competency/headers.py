from __future__ import annotations

import math
import re
from typing import Dict, List, Optional, Tuple

# canonical field -> aliases as they appear in exported sheets (KR / EN)
HEADER_ALIASES: Dict[str, List[str]] = {
    "studentId": ["학번", "STUDENT ID", "STUDENT_ID", "SID", "ID", "STUDENTID"],
    "name": ["이름", "성명", "NAME"],
    "dept": ["학과", "전공", "전공명", "학부전공", "학부/전공", "학부", "DEPARTMENT", "MAJOR", "DEPT"],
    "semester": ["학기", "SEMESTER", "TERM", "스냅샷", "SNAPSHOT"],
    "gpa": ["GPA", "평점", "평균평점", "학기평점", "전체평점", "누적평점"],
}

CANONICAL_FIELDS: Tuple[str, ...] = tuple(HEADER_ALIASES)

_SEP_RE = re.compile(r"[\s_\-/]+")
_PUNCT_RE = re.compile(r"[._-]")
_PO_RE = re.compile(r"^PO\s*0*([0-9]+)$", re.I)
_TPO_RE = re.compile(r"^TPO\s*0*([0-9]+)$", re.I)
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_NON_NUMERIC_RE = re.compile(r"[^0-9+\-.eE]")


def norm(value: object) -> str:
    """Header comparison form: trimmed, separator runs -> one space, upper case."""
    if value is None:
        return ""
    s = str(value).strip()
    return _SEP_RE.sub(" ", s).strip().upper()


_ALIAS_LOOKUP: Dict[str, str] = {}
for _field, _aliases in HEADER_ALIASES.items():
    for _alias in _aliases:
        _ALIAS_LOOKUP.setdefault(norm(_alias), _field)


def alias_field(key: object) -> Optional[str]:
    """Canonical field for an exact (normalized) alias match, else None."""
    return _ALIAS_LOOKUP.get(norm(key))


def is_po(key: object) -> bool:
    return bool(_PO_RE.match(_PUNCT_RE.sub(" ", str(key))))


def is_tpo(key: object) -> bool:
    return bool(_TPO_RE.match(_PUNCT_RE.sub(" ", str(key))))


def metric_index(key: object) -> int:
    digits = _NON_DIGIT_RE.sub("", str(key))
    return int(digits) if digits else 0


def map_header(key: str) -> str:
    """Map one raw column key onto the canonical vocabulary.

    Alias matches win, then TPO/PO indicator columns (``TPO 03`` -> ``TPO_3``).
    Anything else is returned verbatim.
    """
    field = alias_field(key)
    if field is not None:
        return field
    k = norm(key)
    if is_tpo(k):
        return f"TPO_{metric_index(k)}"
    if is_po(k):
        return f"PO_{metric_index(k)}"
    return key


def metric_label(col: str) -> str:
    return col.replace("_", "")


def to_number(value: object) -> Optional[float]:
    """Coerce a sheet cell to a finite float, or None.

    Strings keep only ``[0-9+-.eE]`` before parsing, so ``"95.5%"`` -> 95.5
    and ``"N/A"`` -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
        return out if math.isfinite(out) else None
    if isinstance(value, str):
        s = _NON_NUMERIC_RE.sub("", value)
        if not s:
            return None
        try:
            out = float(s)
        except ValueError:
            return None
        return out if math.isfinite(out) else None
    try:
        out = float(value)  # numpy scalars
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def fmt2(value: object) -> str:
    if value is None or value == "":
        return "-"
    num = to_number(value)
    return "-" if num is None else f"{num:.2f}"
