from __future__ import annotations

import json
import logging
import os
import zipfile
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from competency.aggregate import build_student_gpa_index, unique
from competency.columns import column_union, extract_metrics
from competency.departments import UNKNOWN_MAJOR_FLAG, ensure_dept, is_real_department
from competency.filters import (
    DashboardFilters,
    all_students,
    filter_student_ids,
    normalize_filters,
    search_student_ids,
    student_year_options,
)
from competency.headers import CANONICAL_FIELDS, is_po, is_tpo, to_number
from competency.rows import normalize_rows, student_id_of
from competency.semesters import semester_of, semesters_from_rows

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[1]
DATA_DIR = Path(os.environ.get("TPO_DATA_DIR") or BASE_DIR / "data")
RESULTS_SUBDIR = "results"
GRADES_SUBDIR = "grades"

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".json")
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}
CSV_ENCODINGS = ("utf-8-sig", "cp949")

Record = Dict[str, Any]
FileSig = Tuple[Tuple[str, float], ...]


class UnsupportedFormatError(ValueError):
    """Raised for inputs the loader cannot turn into records."""


# ---------------- Parsing ----------------
def _drop_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    blank = df.apply(lambda col: col.astype(str).str.strip() == "").all(axis=1)
    return df[~blank]


def _read_csv_bytes(data: bytes) -> pd.DataFrame:
    last_err: Optional[Exception] = None
    for enc in CSV_ENCODINGS:
        try:
            return pd.read_csv(
                BytesIO(data),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                index_col=False,
                encoding=enc,
            )
        except UnicodeDecodeError as exc:
            last_err = exc
            continue
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except pd.errors.ParserError as exc:
            raise UnsupportedFormatError(f"Malformed CSV: {exc}") from exc
    raise UnsupportedFormatError(f"Could not decode CSV ({', '.join(CSV_ENCODINGS)}): {last_err}")


def _read_excel_bytes(data: bytes, ext: str) -> pd.DataFrame:
    engine = EXCEL_ENGINES[ext]
    try:
        df = pd.read_excel(BytesIO(data), sheet_name=0, dtype=str, engine=engine)
    except (ValueError, KeyError, zipfile.BadZipFile, InvalidFileException, XLRDError) as exc:
        raise UnsupportedFormatError(f"Could not read {ext} workbook: {exc}") from exc
    return df.fillna("")


def _read_json_bytes(data: bytes) -> List[Record]:
    try:
        payload = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise UnsupportedFormatError(f"Invalid JSON: {exc}") from exc
    if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
        raise UnsupportedFormatError("JSON input must be a list of objects")
    return payload


def parse_table(name: str, data: bytes) -> List[Record]:
    """Read the first sheet / whole CSV / JSON array of a file into raw records.

    Every read failure surfaces as ``UnsupportedFormatError``.
    """
    ext = Path(name).suffix.lower()
    if ext == ".json":
        return _read_json_bytes(data)
    if ext == ".csv":
        df = _read_csv_bytes(data)
    elif ext in EXCEL_ENGINES:
        df = _read_excel_bytes(data, ext)
    else:
        raise UnsupportedFormatError(f"Unsupported file format '{ext or name}': use CSV, XLSX, XLS or JSON.")
    df = _drop_blank_rows(df)
    return df.to_dict(orient="records")


def canonicalize_result_rows(rows: Sequence[Record], filename: str = "") -> List[Record]:
    """Raw competency-result records -> canonical records.

    Shape normalisation, department resolution (with the file name as
    fallback), id/semester fallbacks and numeric coercion of PO/TPO/GPA values.
    """
    out: List[Record] = []
    for r in ensure_dept(normalize_rows(rows), filename):
        rec = dict(r)
        sid = student_id_of(rec)
        rec["studentId"] = sid or None
        rec["semester"] = semester_of(rec) or None
        for k in list(rec.keys()):
            if k == "gpa" or is_po(k) or is_tpo(k):
                rec[k] = to_number(rec[k])
        out.append(rec)
    return out


def load_result_table(name: str, data: bytes) -> Dict[str, Any]:
    rows = canonicalize_result_rows(parse_table(name, data), name)
    logger.info("loaded %d result rows from %s", len(rows), name)
    return {"name": name, "rows": rows}


def load_grade_table(name: str, data: bytes) -> Dict[str, Any]:
    rows = normalize_rows(parse_table(name, data))
    logger.info("loaded %d grade rows from %s", len(rows), name)
    return {"name": name, "rows": rows}


# ---------------- Context ----------------
def all_departments(rows: Iterable[Record], dept_key: str = "dept") -> List[str]:
    return unique(r.get(dept_key) for r in rows if is_real_department(r.get(dept_key)))


def build_data_context(result_files: Sequence[Dict[str, Any]], grade_files: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    result_rows = [r for f in result_files for r in (f.get("rows") or [])]
    grade_rows = [r for f in grade_files for r in (f.get("rows") or [])]
    po_cols, tpo_cols = extract_metrics(result_rows)
    students = all_students(result_rows)
    return {
        "files": [f.get("name") for f in result_files],
        "grade_files": [f.get("name") for f in grade_files],
        "result_files": list(result_files),
        "result_rows": result_rows,
        "grade_rows": grade_rows,
        "po_cols": po_cols,
        "tpo_cols": tpo_cols,
        "semesters": semesters_from_rows(result_rows),
        "departments": all_departments(result_rows),
        "students": students,
        "year_options": student_year_options(students),
        "gpa_index": build_student_gpa_index(grade_rows),
    }


def get_source_files(kind: str = RESULTS_SUBDIR) -> List[Path]:
    folder = DATA_DIR / kind
    if not folder.is_dir():
        return []
    files = []
    for path in sorted(folder.iterdir()):
        if not path.is_file():
            continue
        if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            logger.warning("skipping %s: unsupported format", path.name)
            continue
        files.append(path)
    return files


def file_signature(files: List[Path]) -> FileSig:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def _load_files(sig: FileSig, loader) -> List[Dict[str, Any]]:
    loaded = []
    for p, _ in sig:
        path = Path(p)
        try:
            loaded.append(loader(path.name, path.read_bytes()))
        except UnsupportedFormatError as exc:
            logger.warning("skipping %s: %s", path.name, exc)
    return loaded


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(results_sig: FileSig, grades_sig: FileSig) -> Dict[str, Any]:
    return build_data_context(_load_files(results_sig, load_result_table), _load_files(grades_sig, load_grade_table))


def load_dashboard_data() -> Dict[str, Any]:
    results = get_source_files(RESULTS_SUBDIR)
    grades = get_source_files(GRADES_SUBDIR)
    if not results and not grades:
        return build_data_context([], [])
    return _load_dashboard_data_cached(file_signature(results), file_signature(grades))


def prepare_context(filters: Dict[str, Any] | DashboardFilters, data_ctx: Dict[str, Any]) -> Dict[str, Any]:
    semesters: List[str] = data_ctx.get("semesters", []) or []
    departments: List[str] = data_ctx.get("departments", []) or []
    result_rows: List[Record] = data_ctx.get("result_rows", []) or []
    gpa_index = data_ctx.get("gpa_index", {}) or {}

    filt = (
        filters
        if isinstance(filters, DashboardFilters)
        else normalize_filters(filters, available_semesters=semesters, available_depts=departments)
    )
    dept_selection = filt.selected_depts or departments
    active_semester = filt.semester or (semesters[-1] if semesters else "")

    filtered_ids = filter_student_ids(
        data_ctx.get("students", []) or [],
        result_rows,
        student_depts=filt.student_depts,
        gpa_buckets=filt.gpa_buckets,
        year_prefixes=filt.year_prefixes,
        gpa_index=gpa_index,
    )
    shown_ids = search_student_ids(filtered_ids, filt.student_query)
    target_ids = filt.selected_students or filtered_ids

    return {
        "filters": filt,
        "result_rows": result_rows,
        "grade_rows": data_ctx.get("grade_rows", []) or [],
        "po_cols": data_ctx.get("po_cols", []) or [],
        "tpo_cols": data_ctx.get("tpo_cols", []) or [],
        "semesters": semesters,
        "departments": departments,
        "dept_selection": dept_selection,
        "active_semester": active_semester,
        "gpa_index": gpa_index,
        "filtered_ids": filtered_ids,
        "shown_ids": shown_ids,
        "target_ids": target_ids,
        "result_files": data_ctx.get("result_files", []) or [],
    }


def unrecognized_columns(rows: Iterable[Record]) -> List[str]:
    known = set(CANONICAL_FIELDS) | {UNKNOWN_MAJOR_FLAG}
    return [c for c in column_union(rows) if c not in known and not (is_po(c) or is_tpo(c))]


def rows_to_frame(rows: Sequence[Record]) -> pd.DataFrame:
    return pd.DataFrame.from_records(list(rows), columns=column_union(rows))


# ---------------- Upload bookkeeping ----------------
def sync_uploads(files: Dict[str, Any], removed: set, uploads: Sequence[Any], loader) -> List[str]:
    """Load newly uploaded files into ``files`` (name -> loaded table).

    ``removed`` holds names the user deleted; they stay skipped while the
    uploader still lists them and can be uploaded again once they leave it.
    Returns one message per file that could not be read.
    """
    removed.intersection_update(up.name for up in uploads)
    errors: List[str] = []
    for up in uploads:
        if up.name in files or up.name in removed:
            continue
        try:
            files[up.name] = loader(up.name, up.getvalue())
        except UnsupportedFormatError as exc:
            logger.warning("rejected upload %s: %s", up.name, exc)
            errors.append(f"{up.name}: {exc}")
    return errors


def remove_upload(files: Dict[str, Any], removed: set, name: str) -> None:
    files.pop(name, None)
    removed.add(name)
