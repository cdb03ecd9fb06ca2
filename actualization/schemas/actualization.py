"""
actualization/schemas/actualization.py

Request and response schemas for the actualization endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RegionOptionResponse(BaseModel):
    label: str
    value: str


class RegionListResponse(BaseModel):
    regions: list[RegionOptionResponse] = Field(default_factory=list)


class ColumnResponse(BaseModel):
    label: str
    field_name: str
    type: str | None = None
    wrap_text: bool = False
    link_label_field: str | None = None


class NoticeResponse(BaseModel):
    level: str
    title: str
    message: str
    created_at: datetime


class ProgressResponse(BaseModel):
    processed: int = Field(..., ge=0)
    to_process: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0, le=100)
    indicator: int = Field(..., ge=0, le=100)


class TemplateResponse(BaseModel):
    id: str
    title: str | None = None
    url: str | None = None
    label: str


class SessionResponse(BaseModel):
    """
    Full view of one user's actualization session.
    """

    user_id: str
    region: str
    region_selection_required: bool = False
    process_state: str
    job_id: str | None = None
    job_status: str | None = None
    status_detail: str = ""
    schedule_date: str | None = None
    records_to_process: int = Field(0, ge=0)
    succeeded_records: int = Field(0, ge=0)
    failed_records: int = Field(0, ge=0)
    progress: ProgressResponse
    failed: bool = False
    notify_on_complete: bool = False
    can_start: bool = False
    can_upload: bool = True
    show_results: bool = False
    table_title: str | None = None
    template_label: str
    default_template: TemplateResponse | None = None
    result_file_id: str | None = None
    columns: list[ColumnResponse] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    notices: list[NoticeResponse] = Field(default_factory=list)


class SessionOpenRequest(BaseModel):
    user_region: str | None = None
    region: str | None = None


class FileUploadedRequest(BaseModel):
    file_ref: str = Field(..., min_length=1)
    file_data: str
    record_count: int = Field(0, ge=0)


class UploadSummaryResponse(BaseModel):
    region: str
    file_ref: str | None = None
    record_count: int = Field(..., ge=0)
    skipped_rows: int = Field(0, ge=0)
    schedule_date: str | None = None
    sheets_read: list[str] = Field(default_factory=list)


class JobAcceptedResponse(BaseModel):
    job_id: str
    process_state: str
    status_detail: str = ""


class ResultEntryResponse(BaseModel):
    is_success: bool
    error_message: str | None = None
    sell_line_link: str | None = None
    schedule_link: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)


class ResultListResponse(BaseModel):
    job_id: str | None = None
    total: int = Field(..., ge=0)
    succeeded_records: int = Field(0, ge=0)
    failed_records: int = Field(0, ge=0)
    entries: list[ResultEntryResponse] = Field(default_factory=list)


class ResultFileResponse(BaseModel):
    file_id: str
