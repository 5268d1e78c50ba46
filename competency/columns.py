from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from competency.headers import is_po, is_tpo, metric_index

_PO_COL_RE = re.compile(r"^PO_[0-9]+$")
_TPO_COL_RE = re.compile(r"^TPO_[0-9]+$")


def column_union(rows: Iterable[Dict[str, Any]]) -> List[str]:
    cols: Dict[str, None] = {}
    for r in rows:
        for k in r.keys():
            cols.setdefault(k, None)
    return list(cols)


def _collect(cols: Sequence[str], prefix: str, canonical_re, matcher) -> List[str]:
    found: Dict[str, None] = {}
    for c in cols:
        c = str(c)
        if canonical_re.match(c):
            found.setdefault(c, None)
        elif matcher(c):
            found.setdefault(f"{prefix}_{metric_index(c)}", None)
    return sorted(found, key=metric_index)


def extract_metrics(rows: Iterable[Dict[str, Any]]) -> Tuple[List[str], List[str]]:
    """Return ``(po_cols, tpo_cols)`` present in the rows, ordered by index."""
    cols = column_union(rows)
    po_cols = _collect(cols, "PO", _PO_COL_RE, is_po)
    tpo_cols = _collect(cols, "TPO", _TPO_COL_RE, is_tpo)
    return po_cols, tpo_cols
