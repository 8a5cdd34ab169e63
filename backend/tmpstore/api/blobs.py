"""API routes for uploading, downloading and deleting blobs."""

import asyncio
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import FileResponse, PlainTextResponse

from tmpstore.storage import (
    AlreadyExists,
    BlobStore,
    BlobStoreError,
    InvalidName,
    NotFound,
    PayloadTooLarge,
    StoreStats,
)

logger = logging.getLogger(__name__)

router = APIRouter()

HTTP_413_CONTENT_TOO_LARGE = 413


def get_blob_store(request: Request) -> BlobStore:
    """Get the store owned by the running application."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Blob store not initialized. Start the app lifespan first.")
    return store


def _to_http_exception(error: BlobStoreError) -> HTTPException:
    """Translate a store error into the matching HTTP error."""
    if isinstance(error, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, AlreadyExists):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, PayloadTooLarge):
        return HTTPException(status_code=HTTP_413_CONTENT_TOO_LARGE, detail=str(error))
    if isinstance(error, InvalidName):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    logger.error(f"Blob store failure: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal storage error",
    )


@router.put(
    "/",
    status_code=status.HTTP_201_CREATED,
    response_class=PlainTextResponse,
)
async def upload_blob(
    request: Request,
    store: Annotated[BlobStore, Depends(get_blob_store)],
) -> str:
    """Store the request body as a new blob.

    Returns the generated blob name as plain text. The blob is removed after
    it has gone unused for the configured lifetime.
    """
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > store.max_entry_size:
        raise HTTPException(
            status_code=HTTP_413_CONTENT_TOO_LARGE,
            detail=(
                f"Blob is too large ({content_length} bytes, "
                f"limit {store.max_entry_size})"
            ),
        )

    body = await request.body()
    name = str(uuid.uuid4())

    try:
        await asyncio.to_thread(store.create, name, body)
    except BlobStoreError as e:
        raise _to_http_exception(e) from e

    return name


@router.get("/")
async def download_blob(
    name: Annotated[str, Query(description="Name returned by the upload")],
    store: Annotated[BlobStore, Depends(get_blob_store)],
) -> FileResponse:
    """Return a blob's content and keep it alive for another lifetime."""
    try:
        await asyncio.to_thread(store.touch, name)
        path = store.path_for(name)
    except BlobStoreError as e:
        raise _to_http_exception(e) from e

    if not path.is_file():
        logger.error(f"Blob {name} is indexed but its file {path} is missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal storage error",
        )

    return FileResponse(path, media_type="application/octet-stream")


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blob(
    name: Annotated[str, Query(description="Name returned by the upload")],
    store: Annotated[BlobStore, Depends(get_blob_store)],
) -> Response:
    """Delete a blob before it expires."""
    try:
        await asyncio.to_thread(store.delete, name)
    except BlobStoreError as e:
        raise _to_http_exception(e) from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=StoreStats)
async def get_stats(
    store: Annotated[BlobStore, Depends(get_blob_store)],
) -> StoreStats:
    """Summarize what the store currently holds."""
    return await asyncio.to_thread(store.stats)


@router.get("/test", response_class=PlainTextResponse)
async def test_endpoint() -> str:
    """Plain-text liveness probe."""
    return "test"
