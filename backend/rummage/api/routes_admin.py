"""Administrative routes for Rummage."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from rummage.api.dependencies import get_command_service
from rummage.core.metrics import metrics_response
from rummage.models.dto import MetaRequest
from rummage.services.commands import CommandService

router = APIRouter()


@router.get("/version", summary="Application version")
def get_version(service: CommandService = Depends(get_command_service)) -> dict[str, str]:
    return {"version": service.get_app_version()}


@router.get("/ping", summary="Round-trip check through the command layer")
async def ping(service: CommandService = Depends(get_command_service)) -> dict[str, str]:
    return {"message": service.ping()}


@router.get("/meta/schema-version", summary="Applied schema version")
def schema_version(service: CommandService = Depends(get_command_service)) -> dict[str, str | None]:
    return {"schema_version": service.get_schema_version()}


@router.put("/meta/{key}", summary="Store an application metadata value")
def set_meta(
    key: str,
    request: MetaRequest,
    service: CommandService = Depends(get_command_service),
) -> dict[str, str]:
    service.set_meta(key, request.value)
    return {"status": "ok"}


@router.get("/vector-support", summary="Whether similarity search is available")
def vector_support(service: CommandService = Depends(get_command_service)) -> dict[str, Any]:
    return {
        "available": service.has_vector_support(),
        "counts": service.vectors.embedding_counts(),
    }


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
