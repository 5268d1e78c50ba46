import pytest

from competency.departments import DEPT_COMPUTER, DEPT_MEDIA_DESIGN, DEPT_POWER_SYSTEMS


@pytest.fixture
def result_rows():
    return [
        {"studentId": "20201234", "dept": DEPT_COMPUTER, "semester": "2023-1", "PO_1": 90.0, "PO_2": 80.0, "TPO_1": 70.0},
        {"studentId": "20201234", "dept": DEPT_COMPUTER, "semester": "2023-2", "PO_1": 95.0, "PO_2": None, "TPO_1": 75.0},
        {"studentId": "20195555", "dept": DEPT_COMPUTER, "semester": "2023-1", "PO_1": 70.0, "PO_2": 60.0, "TPO_1": None},
        {"studentId": "20211111", "dept": DEPT_MEDIA_DESIGN, "semester": "2023-1", "PO_1": 85.0, "PO_2": "N/A", "TPO_1": 65.0},
        {"studentId": "20211111", "dept": DEPT_MEDIA_DESIGN, "semester": "2022-2", "PO_1": None, "PO_2": None, "TPO_1": None},
        {"studentId": "20180001", "dept": DEPT_POWER_SYSTEMS, "semester": "2023-2", "PO_1": 60.0, "PO_2": 62.0, "TPO_1": 64.0},
        {"studentId": "20189999", "dept": "", "__unknown_major__": True, "semester": "2023-1", "PO_1": 10.0, "PO_2": 10.0, "TPO_1": 10.0},
    ]


@pytest.fixture
def grade_rows():
    return [
        {"학번": "20201234", "평점": "3.5"},
        {"학번": "20201234", "평점": "4.5"},
        {"학번": "20195555", "평점": "2.95"},
        {"학번": "20211111", "평점": ""},
        {"학번": "20180001", "평점": "4.3"},
        {"학번": "", "평점": "4.0"},
    ]
