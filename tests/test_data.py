import json

import pandas as pd
import pytest

from competency import data as cd
from competency.departments import DEPT_COMPUTER, DEPT_POWER_SYSTEMS, UNKNOWN_MAJOR_FLAG
from competency.filters import DashboardFilters


def _csv(text: str, encoding: str = "utf-8") -> bytes:
    return text.encode(encoding)


def test_parse_csv_drops_blank_rows():
    rows = cd.parse_table("r.csv", _csv("학번,학과,PO1\n2020,CE,90\n,,\n2021,EE,\n"))
    assert rows == [{"학번": "2020", "학과": "CE", "PO1": "90"}, {"학번": "2021", "학과": "EE", "PO1": ""}]


def test_parse_csv_cp949_fallback():
    rows = cd.parse_table("r.csv", _csv("학번,전공\n2020,컴퓨터\n", "cp949"))
    assert rows == [{"학번": "2020", "전공": "컴퓨터"}]


def test_parse_xlsx(tmp_path):
    path = tmp_path / "ee.xlsx"
    pd.DataFrame({"학번": ["2020"], "PO 1": [88], "비고": [None]}).to_excel(path, index=False)
    rows = cd.parse_table(path.name, path.read_bytes())
    assert rows == [{"학번": "2020", "PO 1": "88", "비고": ""}]


def test_parse_json():
    payload = json.dumps([{"studentId": "1", "PO_1": 50}]).encode("utf-8")
    assert cd.parse_table("x.JSON", payload) == [{"studentId": "1", "PO_1": 50}]


@pytest.mark.parametrize("name, data", [("x.txt", b"a"), ("x.json", b"{\"a\": 1}"), ("x.json", b"not json"), ("noext", b"")])
def test_parse_rejects_unsupported_input(name, data):
    with pytest.raises(cd.UnsupportedFormatError):
        cd.parse_table(name, data)


def test_canonicalize_result_rows_long_shape_with_filename_dept():
    raw = [
        {"학번": "2020", "학기": "2023-1", "metric": "PO1", "value": "90점"},
        {"학번": "2020", "학기": "2023-1", "metric": "TPO1", "value": "N/A"},
    ]
    rows = cd.canonicalize_result_rows(raw, "2023_EE_results.csv")
    assert rows == [
        {"studentId": "2020", "semester": "2023-1", "PO_1": 90.0, "TPO_1": None, "dept": DEPT_POWER_SYSTEMS, UNKNOWN_MAJOR_FLAG: False}
    ]


def test_canonicalize_result_rows_coerces_metrics_and_fallbacks():
    raw = [{"ID": "7", "TERM": "2023-2", "PO_2": " 3.50 ", "GPA": "4.1", "학과": "??"}]
    rows = cd.canonicalize_result_rows(raw, "x.csv")
    rec = rows[0]
    assert rec["studentId"] == "7"
    assert rec["semester"] == "2023-2"
    assert rec["PO_2"] == 3.5
    assert rec["gpa"] == 4.1
    assert rec["dept"] == ""
    assert rec[UNKNOWN_MAJOR_FLAG] is True


def test_load_result_table_from_bytes():
    table = cd.load_result_table("ce_2023.csv", _csv("SID,Semester,PO1,PO10,PO2\n1,2023-1,90,80,70\n"))
    assert table["name"] == "ce_2023.csv"
    assert table["rows"][0]["dept"] == DEPT_COMPUTER


def test_build_data_context():
    results = [cd.load_result_table("ce.csv", _csv("학번,학기,PO10,PO2,TPO1\n2020111,2023-2,90,80,70\n2019222,2022-1,60,,50\n"))]
    grades = [cd.load_grade_table("g.csv", _csv("학번,평점\n2020111,3.5\n"))]
    ctx = cd.build_data_context(results, grades)
    assert ctx["po_cols"] == ["PO_2", "PO_10"]
    assert ctx["tpo_cols"] == ["TPO_1"]
    assert ctx["semesters"] == ["2022-1", "2023-2"]
    assert ctx["departments"] == [DEPT_COMPUTER]
    assert ctx["students"] == ["2020111", "2019222"]
    assert ctx["year_options"] == ["2020", "2019"]
    assert ctx["gpa_index"] == {"2020111": 3.5}
    assert ctx["files"] == ["ce.csv"]


def test_all_departments_skips_single_major_marker():
    rows = [{"dept": "단일전공"}, {"dept": "A"}, {"dept": ""}, {"dept": "A"}]
    assert cd.all_departments(rows) == ["A"]


def test_load_dashboard_data_from_directory(tmp_path, monkeypatch):
    (tmp_path / "results").mkdir()
    (tmp_path / "grades").mkdir()
    (tmp_path / "results" / "2023_CE.csv").write_bytes(_csv("학번,학기,PO1\n2020,2023-1,90\n"))
    (tmp_path / "results" / "notes.txt").write_text("ignored")
    (tmp_path / "grades" / "gpa.csv").write_bytes(_csv("학번,GPA\n2020,3.2\n"))
    monkeypatch.setattr(cd, "DATA_DIR", tmp_path)

    ctx = cd.load_dashboard_data()
    assert ctx["files"] == ["2023_CE.csv"]
    assert ctx["departments"] == [DEPT_COMPUTER]
    assert ctx["gpa_index"] == {"2020": 3.2}


def test_load_dashboard_data_without_files(tmp_path, monkeypatch):
    monkeypatch.setattr(cd, "DATA_DIR", tmp_path)
    ctx = cd.load_dashboard_data()
    assert ctx["result_rows"] == []
    assert ctx["po_cols"] == []


def test_prepare_context_defaults(result_rows, grade_rows):
    data_ctx = cd.build_data_context([{"name": "r", "rows": result_rows}], [{"name": "g", "rows": grade_rows}])
    ctx = cd.prepare_context({}, data_ctx)
    assert ctx["filters"].semester == ""
    assert ctx["active_semester"] == "2023-2"
    assert ctx["dept_selection"] == data_ctx["departments"][:3]
    assert ctx["target_ids"] == ctx["filtered_ids"] == data_ctx["students"]


def test_prepare_context_with_student_filters(result_rows, grade_rows):
    data_ctx = cd.build_data_context([{"name": "r", "rows": result_rows}], [{"name": "g", "rows": grade_rows}])
    filters = DashboardFilters(semester="2023-1", year_prefixes=["2020", "2019"], student_query="555", selected_students=["20201234"])
    ctx = cd.prepare_context(filters, data_ctx)
    assert ctx["active_semester"] == "2023-1"
    assert ctx["filtered_ids"] == ["20201234", "20195555"]
    assert ctx["shown_ids"] == ["20195555"]
    assert ctx["target_ids"] == ["20201234"]


def test_unrecognized_columns():
    rows = [{"studentId": "1", "PO_1": 1, "메모": "x", UNKNOWN_MAJOR_FLAG: False}]
    assert cd.unrecognized_columns(rows) == ["메모"]


@pytest.mark.parametrize("name", ["r.xlsx", "r.xls"])
def test_parse_corrupt_workbook_is_unsupported(name):
    with pytest.raises(cd.UnsupportedFormatError):
        cd.parse_table(name, b"not a workbook")


def test_parse_xls_uses_xlrd(monkeypatch):
    seen = {}

    def fake_read_excel(buf, **kwargs):
        seen.update(kwargs)
        return pd.DataFrame({"학번": ["2020"], "PO1": [None]})

    monkeypatch.setattr(cd.pd, "read_excel", fake_read_excel)
    assert cd.parse_table("old.XLS", b"\xd0\xcf") == [{"학번": "2020", "PO1": ""}]
    assert seen["engine"] == "xlrd"


def test_parse_ragged_csv_is_unsupported():
    with pytest.raises(cd.UnsupportedFormatError, match="Malformed CSV"):
        cd.parse_table("r.csv", _csv("학번,PO1\n1,2\n3,4,5,6\n"))


def test_parse_csv_extra_fields_never_shift_student_id():
    try:
        rows = cd.parse_table("r.csv", _csv("학번,PO1\n1,2,3,4\n"))
    except cd.UnsupportedFormatError:
        return
    assert [r["학번"] for r in rows] == ["1"]


def test_load_dashboard_data_skips_unreadable_files(tmp_path, monkeypatch):
    (tmp_path / "results").mkdir()
    (tmp_path / "results" / "2023_CE.csv").write_bytes(_csv("학번,학기,PO1\n2020,2023-1,90\n"))
    (tmp_path / "results" / "broken.xlsx").write_bytes(b"not a workbook")
    monkeypatch.setattr(cd, "DATA_DIR", tmp_path)

    ctx = cd.load_dashboard_data()
    assert ctx["files"] == ["2023_CE.csv"]
    assert len(ctx["result_rows"]) == 1


class _Upload:
    def __init__(self, name: str, text: str):
        self.name = name
        self._data = _csv(text)

    def getvalue(self) -> bytes:
        return self._data


def test_sync_uploads_collects_errors_and_keeps_good_files():
    files, removed = {}, set()
    uploads = [_Upload("a.csv", "학번,PO1\n1,90\n"), _Upload("b.txt", "x")]
    errors = cd.sync_uploads(files, removed, uploads, cd.load_result_table)
    assert list(files) == ["a.csv"]
    assert len(errors) == 1 and errors[0].startswith("b.txt: ")


def test_removed_upload_stays_removed_until_reuploaded():
    files, removed = {}, set()
    uploads = [_Upload("a.csv", "학번,PO1\n1,90\n")]
    cd.sync_uploads(files, removed, uploads, cd.load_result_table)
    cd.remove_upload(files, removed, "a.csv")

    cd.sync_uploads(files, removed, uploads, cd.load_result_table)
    assert files == {}

    cd.sync_uploads(files, removed, [], cd.load_result_table)
    assert removed == set()
    cd.sync_uploads(files, removed, uploads, cd.load_result_table)
    assert list(files) == ["a.csv"]
