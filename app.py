import streamlit as st
from contextlib import contextmanager
from typing import Dict, List, Optional

from competency import data as cd
from competency.aggregate import GPA_BUCKET_LABELS, GPA_BUCKETS
from competency.charts import ColorAssigner, grouped_bar_chart, profile_chart, trend_line_chart
from competency.data import build_data_context, prepare_context
from competency.filters import DashboardFilters
from competency.metrics_department import compute_department
from competency.metrics_student import compute_student, student_label

EMPTY_STUDENT_MSG = "현재 해당 학생의 전공역량 데이터가 충분하지 않아 출력되지 않습니다"


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: DashboardFilters, depts: List[str]) -> str:
    chips = [
        f"학기: {filters.semester or '전체'}",
        f"전공: {', '.join(depts) if depts else '전체'}",
        f"선택 학생: {len(filters.selected_students)}",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def colors() -> ColorAssigner:
    if "_colors" not in st.session_state:
        st.session_state["_colors"] = ColorAssigner()
    return st.session_state["_colors"]


def ingest_uploads(uploads, loader, store_key: str) -> List[str]:
    files: Dict[str, dict] = st.session_state.setdefault(store_key, {})
    removed: set = st.session_state.setdefault(f"{store_key}_removed", set())
    return cd.sync_uploads(files, removed, uploads or [], loader)


def file_list(store_key: str, empty_msg: str) -> None:
    files: Dict[str, dict] = st.session_state.get(store_key, {})
    if not files:
        st.caption(empty_msg)
        return
    for name in list(files):
        c1, c2 = st.columns([5, 1])
        c1.write(f"{name} ({len(files[name]['rows'])} rows)")
        if c2.button("삭제", key=f"rm-{store_key}-{name}"):
            cd.remove_upload(files, st.session_state.setdefault(f"{store_key}_removed", set()), name)
            st.rerun()


def render_family_charts(payload: dict, series: List[str], family: str, label: str, active: Optional[str] = None):
    snap = payload["snapshot"].get(family) or []
    if snap:
        title = f"{label} ({active})" if active else f"{label} 전공별 평균"
        st.altair_chart(grouped_bar_chart(snap, series, colors(), title=title), use_container_width=True)


# ---------- UI setup ----------
st.set_page_config(page_title="전공역량 대시보드", layout="wide")
inject_base_styles()
st.title("TPO / PO 전공역량 대시보드")

with st.sidebar:
    st.markdown("### 데이터 업로드")
    res_up = st.file_uploader("역량 결과 (CSV/XLSX/XLS/JSON)", accept_multiple_files=True, key="res_up")
    grd_up = st.file_uploader("성적 (CSV/XLSX/XLS/JSON)", accept_multiple_files=True, key="grd_up")
    upload_errors = ingest_uploads(res_up, cd.load_result_table, "_result_files")
    upload_errors += ingest_uploads(grd_up, cd.load_grade_table, "_grade_files")
    st.markdown("**결과 파일**")
    file_list("_result_files", "업로드된 결과 파일 없음")
    st.markdown("**성적 파일**")
    file_list("_grade_files", "업로드된 성적 파일 없음")

if upload_errors:
    st.error("파일을 읽지 못했습니다.\n\n" + "\n\n".join(upload_errors))

uploaded_results = list(st.session_state.get("_result_files", {}).values())
uploaded_grades = list(st.session_state.get("_grade_files", {}).values())
if uploaded_results or uploaded_grades:
    data_ctx = build_data_context(uploaded_results, uploaded_grades)
else:
    data_ctx = cd.load_dashboard_data()

st.caption(
    f"결과 행 {len(data_ctx['result_rows'])} · 성적 행 {len(data_ctx['grade_rows'])} · "
    f"PO {len(data_ctx['po_cols'])}개 · TPO {len(data_ctx['tpo_cols'])}개"
)
if not data_ctx["result_rows"] or not (data_ctx["po_cols"] or data_ctx["tpo_cols"]):
    st.info("역량 결과 파일을 업로드하세요.")
    st.stop()

semesters = data_ctx["semesters"]
semester = st.radio("학기", options=["전체"] + semesters, horizontal=True)
semester = "" if semester == "전체" else semester

tab_dept, tab_student = st.tabs(["전공별", "학생별"])

with tab_dept:
    depts = data_ctx["departments"]
    selected_depts = st.multiselect("전공 선택", options=depts, default=depts[: min(3, len(depts))])
    filters = DashboardFilters(semester=semester, selected_depts=selected_depts)
    ctx = prepare_context(filters, data_ctx)
    st.markdown(f"<div class='chip-row'>{format_filter_summary(filters, ctx['dept_selection'])}</div>", unsafe_allow_html=True)
    payload = compute_department(filters, ctx, colors=colors())
    series = ctx["dept_selection"]
    bar_cols = st.columns(2)
    for col, (family, label) in zip(bar_cols, [("tpo", "TPO"), ("po", "PO")]):
        with col:
            with card(f"{label} 막대 비교"):
                render_family_charts(payload, series, family, label)
    prof_cols = st.columns(2)
    for col, (family, label) in zip(prof_cols, [("tpo", "TPO"), ("po", "PO")]):
        with col:
            with card(f"{label} 프로파일"):
                if payload["profile"].get(family):
                    st.altair_chart(profile_chart(payload["profile"][family], series, colors()), use_container_width=True)
    growth_cols = st.columns(2)
    for col, (family, label) in zip(growth_cols, [("tpo", "TPO"), ("po", "PO")]):
        with col:
            with card(f"{label} 시점별 성장"):
                if payload["growth"].get(family):
                    st.altair_chart(trend_line_chart(payload["growth"][family], series, colors()), use_container_width=True)

with tab_student:
    f1, f2, f3 = st.columns(3)
    student_depts = f1.multiselect("전공 필터", options=data_ctx["departments"])
    gpa_buckets = f2.multiselect("성적 구간", options=list(GPA_BUCKETS), format_func=lambda b: GPA_BUCKET_LABELS[b])
    year_prefixes = f3.multiselect("입학 연도", options=data_ctx["year_options"])
    student_query = st.text_input("학번 검색 (예: 20183)", "")
    base_filters = DashboardFilters(
        semester=semester,
        student_depts=student_depts,
        gpa_buckets=gpa_buckets,
        year_prefixes=year_prefixes,
        student_query=student_query,
    )
    base_ctx = prepare_context(base_filters, data_ctx)
    gpa_index = base_ctx["gpa_index"]
    selected_students = st.multiselect(
        "학생 선택",
        options=base_ctx["shown_ids"],
        format_func=lambda sid: student_label(sid, gpa_index),
    )
    st.caption("Tip: 전공·성적·연도 필터를 조합한 뒤 학번을 선택하세요.")
    filters = DashboardFilters(**{**base_filters.__dict__, "selected_students": selected_students})
    ctx = prepare_context(filters, data_ctx)
    payload = compute_student(filters, ctx, colors=colors())
    bar_cols = st.columns(2)
    for col, (family, label) in zip(bar_cols, [("tpo", "TPO"), ("po", "PO")]):
        with col:
            with card(f"{label} 학생 비교"):
                if payload["snapshot"].get(family):
                    render_family_charts(payload, ctx["target_ids"], family, label, active=ctx["active_semester"])
                else:
                    st.info(EMPTY_STUDENT_MSG)
    if selected_students:
        growth_cols = st.columns(2)
        for col, (family, label) in zip(growth_cols, [("tpo", "TPO"), ("po", "PO")]):
            with col:
                with card(f"{label} 학생 성장"):
                    if payload["growth"].get(family):
                        st.altair_chart(
                            trend_line_chart(payload["growth"][family], selected_students, colors()),
                            use_container_width=True,
                        )
