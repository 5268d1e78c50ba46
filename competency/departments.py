"""Department / major canonicalization.

Source sheets spell majors in Korean, English or as two-letter codes, and some
only carry the major in the file name (``2023_CE_results.xlsx``). Aggregation
groups by exact label equality, so every variant has to land on one of the
labels below or on the unresolved sentinel ``""``.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

DEPT_COMPUTER = "컴퓨터공학전공"
DEPT_MEDIA_DESIGN = "미디어디자인공학전공"
DEPT_POWER_SYSTEMS = "전력응용시스템공학"

UNRESOLVED = ""
UNKNOWN_MAJOR_FLAG = "__unknown_major__"
SINGLE_MAJOR_MARKER = "단일전공"

# raw department column names checked when a row has no canonical ``dept``
DEPT_FALLBACK_KEYS: Tuple[str, ...] = ("dept", "학과", "전공", "전공명", "DEPARTMENT", "MAJOR", "학부")

_SINGLE_MAJOR_RE = re.compile(r"단일\s*전공")
_MIDDLE_DOT_RE = re.compile(r"[∙•·]")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class DepartmentRule:
    label: str
    pattern: Pattern[str]
    filename_pattern: Pattern[str]


# evaluated in order; first match wins
DEPARTMENT_RULES: Tuple[DepartmentRule, ...] = (
    DepartmentRule(
        DEPT_COMPUTER,
        re.compile(r"(^|[_\s.-])ce([_\s.-]|$)|computer|컴퓨터|전산"),
        re.compile(r"(^|[_-])ce([_-]|\.|$)|computer|컴퓨터|전산"),
    ),
    DepartmentRule(
        DEPT_MEDIA_DESIGN,
        re.compile(r"mediadesign|md_|design|미디어"),
        re.compile(r"mediadesign|md_|design|디자인"),
    ),
    DepartmentRule(
        DEPT_POWER_SYSTEMS,
        re.compile(r"(^|[_\s.-])ee([_\s.-]|$)|energy|electrical|power|전력응용시스템|전력|에너지|전기"),
        re.compile(r"(^|[_-])ee([_-]|\.|$)|energy|electrical|power|전력응용시스템|전력|에너지|전기"),
    ),
)

DEPARTMENT_LABELS: Tuple[str, ...] = tuple(rule.label for rule in DEPARTMENT_RULES)


def normalize_major_text(raw: Any) -> str:
    if raw is None:
        return ""
    s = unicodedata.normalize("NFC", str(raw).strip())
    s = _SPACE_RE.sub(" ", s)
    s = _MIDDLE_DOT_RE.sub("·", s)
    return s.lower()


def canon_major(raw: Any = "") -> str:
    """Canonical label for a free-text major, ``""`` when nothing matches."""
    s = normalize_major_text(raw)
    if not s or _SINGLE_MAJOR_RE.search(s):
        return UNRESOLVED
    for rule in DEPARTMENT_RULES:
        if rule.pattern.search(s):
            return rule.label
    return UNRESOLVED


def infer_dept_from_filename(name: Any = "") -> str:
    n = str(name or "").lower()
    if not n:
        return UNRESOLVED
    for rule in DEPARTMENT_RULES:
        if rule.filename_pattern.search(n):
            return rule.label
    return UNRESOLVED


def canonicalize_department(raw: Any, filename: str = "") -> str:
    return canon_major(raw) or infer_dept_from_filename(filename)


def raw_department(row: Dict[str, Any]) -> Any:
    for key in DEPT_FALLBACK_KEYS:
        value = row.get(key)
        if value is not None:
            return value
    return ""


def ensure_dept(rows: Sequence[Dict[str, Any]], filename: str = "") -> List[Dict[str, Any]]:
    """Attach a canonical ``dept`` and the unresolved flag to every row.

    Rows are copied; the file name is only consulted when the row's own
    department text does not resolve.
    """
    if not rows:
        return []
    inferred = infer_dept_from_filename(filename)
    out: List[Dict[str, Any]] = []
    unresolved = 0
    for r in rows:
        dept = canon_major(raw_department(r)) or inferred
        if not dept:
            unresolved += 1
            out.append({**r, "dept": UNRESOLVED, UNKNOWN_MAJOR_FLAG: True})
        else:
            out.append({**r, "dept": dept, UNKNOWN_MAJOR_FLAG: False})
    if unresolved:
        logger.debug("%s: %d of %d rows without a resolvable department", filename or "<rows>", unresolved, len(out))
    return out


def is_real_department(value: Optional[Any]) -> bool:
    if value is None:
        return False
    s = str(value).strip()
    return s != "" and s != SINGLE_MAJOR_MARKER
