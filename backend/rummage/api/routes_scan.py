"""Scan lifecycle routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from rummage.api.dependencies import get_command_service
from rummage.models.dto import (
    CancelRequest,
    CancelResponse,
    ScanHistoryResponse,
    ScanRequest,
    ScanResponse,
    SelectDirectoryResponse,
)
from rummage.services.commands import CommandService

router = APIRouter()


@router.post("/select-directory", response_model=SelectDirectoryResponse, summary="Validate a directory choice")
def select_directory(
    request: ScanRequest,
    service: CommandService = Depends(get_command_service),
) -> SelectDirectoryResponse:
    return SelectDirectoryResponse(path=service.select_directory(lambda: request.path))


@router.post("/scan", response_model=ScanResponse, summary="Scan a directory and index its files")
async def scan_directory(
    request: ScanRequest,
    service: CommandService = Depends(get_command_service),
) -> ScanResponse:
    result = await service.scan_directory(request.path)
    return ScanResponse(
        success=result.success,
        scan_id=result.scan_id,
        files_found=result.files_found,
        duration=result.duration,
        error=result.error,
    )


@router.post("/scan/cancel", response_model=CancelResponse, summary="Cancel one or all active scans")
async def cancel_scan(
    request: CancelRequest,
    service: CommandService = Depends(get_command_service),
) -> CancelResponse:
    return CancelResponse(cancelled=service.cancel_scan(request.scan_id))


@router.get("/scan/active", response_model=list[int], summary="List in-flight scan ids")
async def active_scans(service: CommandService = Depends(get_command_service)) -> list[int]:
    return service.active_scans()


@router.get("/history", response_model=list[ScanHistoryResponse], summary="Recent scan history")
def scan_history(
    limit: int | None = Query(default=None, ge=1, le=1000),
    directory: str | None = None,
    service: CommandService = Depends(get_command_service),
) -> list[ScanHistoryResponse]:
    entries = service.get_scan_history(limit=limit, directory=directory)
    return [ScanHistoryResponse.from_entry(entry) for entry in entries]


__all__ = ["router"]
