from competency.rows import explode_to_long, is_long_shape, normalize_rows, student_id_of


def test_empty_input():
    assert normalize_rows([]) == []
    assert not is_long_shape([])


def test_wide_rows_get_canonical_keys_and_raw_values():
    rows = [{"학번": "20201234", "전공": "CE", "학기": "2023-1", "PO1": "90", "TPO 2": "80%", "메모": "x"}]
    out = normalize_rows(rows)
    assert out == [{"studentId": "20201234", "dept": "CE", "semester": "2023-1", "PO_1": "90", "TPO_2": "80%", "메모": "x"}]


def test_detection_uses_first_record_only():
    rows = [{"학번": "1", "PO1": "90"}, {"학번": "2", "Metric": "PO1", "Value": "80"}]
    assert not is_long_shape(rows)
    assert normalize_rows(rows)[1] == {"studentId": "2", "Metric": "PO1", "Value": "80"}


def test_long_rows_are_pivoted_per_meta_combination():
    rows = [
        {"학번": "1", "학기": "2023-1", "metric": "PO1", "value": "90"},
        {"학번": "1", "학기": "2023-1", "metric": "po_2", "value": "85.5"},
        {"학번": "1", "학기": "2023-1", "metric": "TPO 1", "value": "70"},
        {"학번": "1", "학기": "2023-2", "metric": "PO1", "value": "95"},
        {"학번": "2", "학기": "2023-1", "metric": "PO1", "value": "N/A"},
    ]
    assert is_long_shape(rows)
    out = normalize_rows(rows)
    assert out == [
        {"studentId": "1", "semester": "2023-1", "PO_1": 90.0, "PO_2": 85.5, "TPO_1": 70.0},
        {"studentId": "1", "semester": "2023-2", "PO_1": 95.0},
        {"studentId": "2", "semester": "2023-1", "PO_1": None},
    ]


def test_long_rows_last_write_wins():
    rows = [
        {"SID": "1", "METRIC": "PO1", "VALUE": "50"},
        {"SID": "1", "METRIC": "PO1", "VALUE": "60"},
    ]
    assert normalize_rows(rows) == [{"studentId": "1", "PO_1": 60.0}]


def test_long_rows_ignore_unknown_metric_names():
    rows = [{"SID": "1", "metric": "GPA", "value": "3.5"}, {"SID": "1", "metric": "PO3", "value": "70"}]
    assert normalize_rows(rows) == [{"studentId": "1", "PO_3": 70.0}]


def test_pivot_reconstructs_exploded_wide_rows():
    wide = [
        {"studentId": "1", "semester": "2023-1", "PO_1": 90.0, "PO_2": 80.0, "TPO_1": 70.0},
        {"studentId": "2", "semester": "2023-1", "PO_1": 60.0, "PO_2": None, "TPO_1": 75.5},
        {"studentId": "1", "semester": "2023-2", "PO_1": 91.0, "PO_2": 82.0, "TPO_1": 72.0},
    ]
    long_rows = explode_to_long(wide)
    assert len(long_rows) == 9
    assert normalize_rows(long_rows) == wide


def test_student_id_of_fallbacks():
    assert student_id_of({"studentId": " 2020 "}) == "2020"
    assert student_id_of({"학번": 2021}) == "2021"
    assert student_id_of({"ID": "x"}) == "x"
    assert student_id_of({}) == ""
