"""
actualization/schemas package marker.
"""

from actualization.schemas.actualization import (
    ColumnResponse,
    FileUploadedRequest,
    JobAcceptedResponse,
    NoticeResponse,
    ProgressResponse,
    RegionListResponse,
    RegionOptionResponse,
    ResultEntryResponse,
    ResultFileResponse,
    ResultListResponse,
    SessionOpenRequest,
    SessionResponse,
    TemplateResponse,
    UploadSummaryResponse,
)

__all__ = [
    "ColumnResponse",
    "FileUploadedRequest",
    "JobAcceptedResponse",
    "NoticeResponse",
    "ProgressResponse",
    "RegionListResponse",
    "RegionOptionResponse",
    "ResultEntryResponse",
    "ResultFileResponse",
    "ResultListResponse",
    "SessionOpenRequest",
    "SessionResponse",
    "TemplateResponse",
    "UploadSummaryResponse",
]
