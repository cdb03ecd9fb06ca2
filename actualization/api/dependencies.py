"""
actualization/api/dependencies.py

Shared FastAPI dependencies for request validation and session lookup.
"""

from __future__ import annotations

from fastapi import Depends, File, Header, HTTPException, Request, UploadFile, status

from actualization.domain.regions import Region, schema_for
from actualization.services.lifecycle_controller import ActualizationController
from actualization.services.session_registry import SessionRegistry

WORKBOOK_EXTENSIONS: tuple[str, ...] = tuple(
    sorted({ext for region in Region.ALL for ext in schema_for(region).accepted_extensions})
)


def get_workbook_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is an Excel workbook by extension.
    """

    filename = (file.filename or "").strip().lower()
    if not filename.endswith(WORKBOOK_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only Excel files are allowed ({', '.join(WORKBOOK_EXTENSIONS)}).",
        )
    return file


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header must not be empty.",
        )
    return user_id


def get_session_registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "session_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Actualization sessions are not available.",
        )
    return registry


def get_session(
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ActualizationController:
    controller = registry.get(user_id)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No actualization session for this user. Open one first.",
        )
    return controller
