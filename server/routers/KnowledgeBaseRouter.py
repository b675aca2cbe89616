from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from server.dependencies.auth import verify_api_key
from server.models.responses import DeleteDocumentResponse, DocumentListResponse
from shared.exceptions.errors import InvalidInput
from shared.models.document import KnowledgeBaseStats, KnowledgeDocument

router = APIRouter(prefix="/knowledge-base", tags=["knowledge-base"], dependencies=[Depends(verify_api_key)])


@router.post("/documents", status_code=202)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    category: str = Form(...),
) -> KnowledgeDocument:
    """Accept a document for ingestion.

    The document is returned with status processing; extraction, chunking and
    embedding continue in the background.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        file (UploadFile): The uploaded file.
        category (str): One of the fixed document categories.

    Returns:
        KnowledgeDocument: The accepted document.
    """
    ingestion_service = request.app.state.ingestion_service
    limit = ingestion_service.get_max_upload_bytes()
    if file.size is not None and file.size > limit:
        raise InvalidInput(f"Uploaded file '{file.filename}' has {file.size} bytes, the limit is {limit}.")
    # one byte past the limit marks an oversized body
    raw_bytes = await file.read(limit + 1)
    if len(raw_bytes) > limit:
        raise InvalidInput(f"Uploaded file '{file.filename}' exceeds the limit of {limit} bytes.")
    return await ingestion_service.upload(
        filename=file.filename or "",
        raw_bytes=raw_bytes,
        category=category,
        mime_type=file.content_type,
    )


@router.get("/documents")
async def list_documents(request: Request) -> DocumentListResponse:
    """List all documents, newest upload first."""
    documents = request.app.state.ingestion_service.list_documents()
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get("/documents/{document_id}")
async def get_document(request: Request, document_id: str) -> KnowledgeDocument:
    return request.app.state.ingestion_service.get_document(document_id)


@router.delete("/documents/{document_id}")
async def delete_document(request: Request, document_id: str) -> DeleteDocumentResponse:
    """Delete a document together with all of its chunks and vectors."""
    removed = await request.app.state.ingestion_service.delete_document(document_id)
    return DeleteDocumentResponse(id=removed.id, filename=removed.filename)


@router.get("/stats")
async def get_stats(request: Request) -> KnowledgeBaseStats:
    return await request.app.state.ingestion_service.get_stats()
