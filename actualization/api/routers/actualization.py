"""
actualization/api/routers/actualization.py

Actualization session HTTP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status

from actualization.api.dependencies import (
    get_session,
    get_session_registry,
    get_user_id,
    get_workbook_upload,
)
from actualization.domain.jobs import FileUploadedEvent
from actualization.domain.regions import region_options
from actualization.domain.results import ResultEntry
from actualization.errors import (
    ActualizationError,
    ExecutorRequestError,
    ParseError,
    ProcessStateError,
    SubmissionError,
)
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
from actualization.services.lifecycle_controller import ActualizationController
from actualization.services.session_registry import SessionRegistry

router = APIRouter(prefix="/actualization", tags=["actualization"])


def _http_error(exc: ActualizationError) -> HTTPException:
    if isinstance(exc, ParseError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ProcessStateError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (SubmissionError, ExecutorRequestError)):
        status_code = status.HTTP_502_BAD_GATEWAY
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(exc))


def _session_response(controller: ActualizationController) -> SessionResponse:
    state = controller.state
    template = controller.default_template
    return SessionResponse(
        user_id=controller.user_id,
        region=controller.region,
        region_selection_required=controller.region_selection_required,
        process_state=state.process_state,
        job_id=state.job_id,
        job_status=state.job.status if state.job is not None else None,
        status_detail=state.status_detail,
        schedule_date=state.schedule_date,
        records_to_process=state.records_to_process,
        succeeded_records=controller.succeeded_count,
        failed_records=controller.failed_count,
        progress=ProgressResponse(
            processed=state.progress.processed,
            to_process=state.progress.to_process,
            percentage=state.progress.percentage,
            indicator=state.progress.indicator,
        ),
        failed=state.failed,
        notify_on_complete=controller.notify_on_complete,
        can_start=controller.can_start,
        can_upload=controller.can_upload,
        show_results=controller.show_results,
        table_title=state.table_title,
        template_label=controller.template_label,
        default_template=(
            TemplateResponse(id=template.id, title=template.title, url=template.url, label=controller.template_label)
            if template is not None
            else None
        ),
        result_file_id=state.result_file_id,
        columns=[
            ColumnResponse(
                label=column.label,
                field_name=column.field_name,
                type=column.type,
                wrap_text=column.wrap_text,
                link_label_field=column.link_label_field,
            )
            for column in controller.columns()
        ],
        rows=[entry.to_dict() for entry in state.filtered_results],
        notices=[
            NoticeResponse(
                level=notice.level,
                title=notice.title,
                message=notice.message,
                created_at=notice.created_at,
            )
            for notice in controller.notices
        ],
    )


def _entry_response(entry: ResultEntry) -> ResultEntryResponse:
    return ResultEntryResponse(
        is_success=entry.is_success,
        error_message=entry.error_message,
        sell_line_link=entry.sell_line_link,
        schedule_link=entry.schedule_link,
        fields=entry.fields,
    )


@router.get("/regions", response_model=RegionListResponse)
def list_regions() -> RegionListResponse:
    return RegionListResponse(regions=[RegionOptionResponse(**option) for option in region_options()])


@router.post("/session", response_model=SessionResponse)
async def open_session(
    request: SessionOpenRequest,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """
    Open (or re-open) the caller's session and resume any running job.
    """

    controller = registry.get_or_create(user_id)
    try:
        await controller.open(user_region=request.user_region, region=request.region)
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return _session_response(controller)


@router.get("/session", response_model=SessionResponse)
def get_session_view(controller: ActualizationController = Depends(get_session)) -> SessionResponse:
    return _session_response(controller)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
def close_session(
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    registry.close(user_id)


@router.post("/upload", response_model=UploadSummaryResponse)
async def upload_workbook(
    file: UploadFile = Depends(get_workbook_upload),
    controller: ActualizationController = Depends(get_session),
) -> UploadSummaryResponse:
    """
    Normalize one workbook for the session's region and enter Preview.
    """

    try:
        content = await file.read()
        result = await controller.upload(file_name=file.filename or "", content=content)
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    finally:
        await file.close()

    return UploadSummaryResponse(
        region=result.region,
        file_ref=controller.state.file_ref,
        record_count=result.record_count,
        skipped_rows=result.skipped_rows,
        schedule_date=result.schedule_date,
        sheets_read=result.sheets_read,
    )


@router.post("/file-uploaded", response_model=SessionResponse)
def file_uploaded(
    request: FileUploadedRequest,
    controller: ActualizationController = Depends(get_session),
) -> SessionResponse:
    event = FileUploadedEvent(
        file_ref=request.file_ref,
        file_data=request.file_data,
        record_count=request.record_count,
    )
    try:
        controller.accept_uploaded_file(event)
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return _session_response(controller)


@router.post("/start", status_code=status.HTTP_202_ACCEPTED, response_model=JobAcceptedResponse)
async def start_job(controller: ActualizationController = Depends(get_session)) -> JobAcceptedResponse:
    try:
        job_id = await controller.submit()
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return JobAcceptedResponse(
        job_id=job_id,
        process_state=controller.process_state,
        status_detail=controller.state.status_detail,
    )


@router.post("/reset", response_model=SessionResponse)
def reset_session(controller: ActualizationController = Depends(get_session)) -> SessionResponse:
    controller.reset()
    return _session_response(controller)


@router.post("/notify", response_model=SessionResponse)
async def notify_on_complete(controller: ActualizationController = Depends(get_session)) -> SessionResponse:
    try:
        await controller.request_notify_on_complete()
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return _session_response(controller)


@router.get("/results", response_model=ResultListResponse)
def list_results(
    error: str | None = Query(default=None, description="Case-insensitive error message substring"),
    key: str | None = Query(default=None, description="Case-insensitive key substring"),
    success: str | None = Query(default=None, description="'true', 'false', or 'all'"),
    controller: ActualizationController = Depends(get_session),
) -> ResultListResponse:
    entries = controller.reset_filters()
    if success is not None:
        entries = controller.set_success_filter(success)
    if key is not None:
        entries = controller.set_key_filter(key)
    if error is not None:
        entries = controller.set_error_filter(error)
    return ResultListResponse(
        job_id=controller.job_id,
        total=len(entries),
        succeeded_records=controller.succeeded_count,
        failed_records=controller.failed_count,
        entries=[_entry_response(entry) for entry in entries],
    )


@router.post("/results/refresh", response_model=ResultListResponse)
async def refresh_results(controller: ActualizationController = Depends(get_session)) -> ResultListResponse:
    try:
        entries = await controller.fetch_results()
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return ResultListResponse(
        job_id=controller.job_id,
        total=len(entries),
        succeeded_records=controller.succeeded_count,
        failed_records=controller.failed_count,
        entries=[_entry_response(entry) for entry in entries],
    )


@router.get("/results/file", response_model=ResultFileResponse)
def result_file(controller: ActualizationController = Depends(get_session)) -> ResultFileResponse:
    try:
        return ResultFileResponse(file_id=controller.result_file_reference())
    except ActualizationError as exc:
        raise _http_error(exc) from exc


@router.get("/template", response_model=TemplateResponse)
def default_template(controller: ActualizationController = Depends(get_session)) -> TemplateResponse:
    try:
        template = controller.template_reference()
    except ActualizationError as exc:
        raise _http_error(exc) from exc
    return TemplateResponse(
        id=template.id,
        title=template.title,
        url=template.url,
        label=controller.template_label,
    )
