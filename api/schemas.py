from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    semester: str = ""
    selected_depts: List[str] = Field(default_factory=list)
    selected_students: List[str] = Field(default_factory=list)
    student_depts: List[str] = Field(default_factory=list)
    gpa_buckets: List[str] = Field(default_factory=list)
    year_prefixes: List[str] = Field(default_factory=list)
    student_query: str = ""


class MetaListResponse(BaseModel):
    values: List[str]
