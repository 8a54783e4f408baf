"""File search, metadata and similarity routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from rummage.api.dependencies import get_command_service
from rummage.models.dto import (
    DeleteResponse,
    EmbeddingRequest,
    FileMetadataResponse,
    FileResponse,
    SearchRequest,
    SimilarityRequest,
    SimilarityResponse,
)
from rummage.services.commands import CommandService

router = APIRouter()


@router.post("/files/search", response_model=list[FileResponse], summary="Filter indexed files")
def search_files(
    request: SearchRequest,
    service: CommandService = Depends(get_command_service),
) -> list[FileResponse]:
    return [FileResponse.from_record(record) for record in service.search_files(request.to_criteria())]


@router.get("/files/{file_id}", response_model=FileMetadataResponse, summary="File record with live stat details")
def get_file_metadata(
    file_id: int,
    service: CommandService = Depends(get_command_service),
) -> FileMetadataResponse:
    found = service.get_file_metadata(file_id)
    if found is None:
        raise HTTPException(status_code=404, detail="File not found")
    base = FileResponse.from_record(found.file)
    return FileMetadataResponse(**base.model_dump(), detailed_stats=found.detailed_stats)


@router.delete("/files/{file_id}", response_model=DeleteResponse, summary="Remove a file record and its embeddings")
def delete_file(file_id: int, service: CommandService = Depends(get_command_service)) -> DeleteResponse:
    deleted = service.delete_file(file_id)
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))


@router.post("/similar/images", response_model=list[SimilarityResponse], summary="Nearest files to an image vector")
def search_similar_images(
    request: SimilarityRequest,
    service: CommandService = Depends(get_command_service),
) -> list[SimilarityResponse]:
    hits = service.search_similar_images(request.vector, limit=request.limit)
    return [SimilarityResponse.from_hit(hit) for hit in hits]


@router.post("/similar/text", response_model=list[SimilarityResponse], summary="Nearest files to a text vector")
def search_similar_text(
    request: SimilarityRequest,
    service: CommandService = Depends(get_command_service),
) -> list[SimilarityResponse]:
    hits = service.search_similar_text(request.vector, limit=request.limit)
    return [SimilarityResponse.from_hit(hit) for hit in hits]


@router.post("/embeddings/text", summary="Store a text embedding for a file")
def add_text_embedding(
    request: EmbeddingRequest,
    service: CommandService = Depends(get_command_service),
) -> dict[str, str]:
    service.add_text_embedding(request.file_id, request.vector)
    return {"status": "ok"}


@router.post("/embeddings/image", summary="Store an image embedding for a file")
def add_image_embedding(
    request: EmbeddingRequest,
    service: CommandService = Depends(get_command_service),
) -> dict[str, str]:
    service.add_image_embedding(request.file_id, request.vector)
    return {"status": "ok"}


__all__ = ["router"]
