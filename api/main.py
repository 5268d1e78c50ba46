from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaListResponse
from competency.charts import ColorAssigner
from competency.data import load_dashboard_data, prepare_context, rows_to_frame
from competency.filters import DashboardFilters, normalize_filters, search_student_ids
from competency.metrics_debug import compute_debug
from competency.metrics_department import compute_department
from competency.metrics_student import compute_student
from competency.rows import explode_to_long


app = FastAPI(title="Competency Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: DashboardFiltersModel, data_ctx: dict) -> DashboardFilters:
    raw = model.model_dump()
    return normalize_filters(
        raw,
        available_semesters=data_ctx.get("semesters", []),
        available_depts=data_ctx.get("departments", []),
    )


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/semesters")
def meta_semesters():
    try:
        data_ctx = load_dashboard_data()
        return _json(MetaListResponse(values=data_ctx.get("semesters", [])).model_dump())
    except Exception as exc:
        logger.exception("meta_semesters failed")
        return _error(exc)


@app.get("/meta/departments")
def meta_departments():
    try:
        data_ctx = load_dashboard_data()
        return _json(MetaListResponse(values=data_ctx.get("departments", [])).model_dump())
    except Exception as exc:
        logger.exception("meta_departments failed")
        return _error(exc)


@app.get("/meta/students")
def meta_students(q: str = Query(default="")):
    try:
        data_ctx = load_dashboard_data()
        ids = search_student_ids(data_ctx.get("students", []), q)
        return _json(MetaListResponse(values=ids[:500]).model_dump())
    except Exception as exc:
        logger.exception("meta_students failed")
        return _error(exc)


@app.post("/department")
def department(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_department(f, ctx, colors=ColorAssigner()))
    except Exception as exc:
        logger.exception("department failed")
        return _error(exc)


@app.post("/student")
def student(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_student(f, ctx, colors=ColorAssigner()))
    except Exception as exc:
        logger.exception("student failed")
        return _error(exc)


@app.post("/debug")
def debug(filters: DashboardFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_debug(f, ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: DashboardFiltersModel):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters, data_ctx)
    ctx = prepare_context(f, data_ctx)

    rows = ctx.get("result_rows", [])
    filename = f"{page}.csv"
    if page == "department":
        depts = set(ctx.get("dept_selection", []))
        rows = [r for r in rows if r.get("dept") in depts]
        if f.semester:
            rows = [r for r in rows if str(r.get("semester")) == f.semester]
    elif page == "student":
        ids = set(ctx.get("target_ids", []))
        rows = [r for r in rows if str(r.get("studentId")) in ids]
    elif page == "results_long":
        rows = explode_to_long(rows, ctx.get("po_cols", []) + ctx.get("tpo_cols", []))
    elif page != "results":
        rows = []

    export_df = rows_to_frame(rows)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8-sig")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
