"""
FastAPI endpoints for chunked recording upload, finalize and playback
"""
import asyncio
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ..core.exceptions import RangeNotSatisfiableError, ValidationError
from ..schemas import (
    ErrorResponse,
    FinalizeRequest,
    FinalizeResponse,
    RecordingItem,
    SessionStatusResponse,
    UploadChunkResponse,
)
from ..services import RecordingService, parse_range

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recordings"])


def get_recording_service(request: Request) -> RecordingService:
    """Dependency returning the service owned by the running application"""
    return request.app.state.recording_service


RecordingServiceDep = Annotated[RecordingService, Depends(get_recording_service)]

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


@router.post(
    "/upload-chunk",
    response_model=UploadChunkResponse,
    responses={**ERROR_RESPONSES, 413: {"model": ErrorResponse, "description": "Chunk too large"}},
)
async def upload_chunk(
    service: RecordingServiceDep,
    chunk: Annotated[Optional[UploadFile], File(description="Binary chunk")] = None,
    session_id: Annotated[Optional[str], Form(alias="sessionId")] = None,
    chunk_index: Annotated[Optional[str], Form(alias="chunkIndex")] = None,
):
    """
    Store one chunk of a recording.

    Chunks may arrive in any order; re-sending an index replaces the earlier
    copy.
    """
    if not session_id or chunk_index is None or chunk_index == "":
        raise ValidationError("Missing sessionId or chunkIndex")
    if chunk is None:
        raise ValidationError("No file uploaded")

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None, service.upload_chunk, session_id, chunk_index, chunk.file
    )

    return UploadChunkResponse(
        message=f"Chunk {result.chunk_index} received",
        total_chunks=result.received_count,
    )


@router.post(
    "/finalize-recording",
    response_model=FinalizeResponse,
    responses={
        **ERROR_RESPONSES,
        404: {"model": ErrorResponse, "description": "No chunks found"},
        409: {"model": ErrorResponse, "description": "Chunks missing"},
    },
)
async def finalize_recording(body: FinalizeRequest, service: RecordingServiceDep):
    """Reassemble the session's chunks, in index order, into one video"""
    if not body.session_id:
        raise ValidationError("Missing sessionId")
    if body.total_chunks is None:
        raise ValidationError("Missing totalChunks")

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None, service.finalize_recording, body.session_id, body.total_chunks
    )

    return FinalizeResponse(
        message="Recording already finalized" if result.already_finalized else "Recording finalized",
        video_id=result.session_id,
        session_id=result.session_id,
        video_path=f"/video/{result.artifact_path.name}",
        chunk_count=result.chunk_count,
        size=result.size_bytes,
        missing_chunks=result.missing,
        already_finalized=result.already_finalized,
    )


@router.get(
    "/video/{artifact_id}",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Full video"},
        206: {"description": "Requested byte range"},
        400: {"model": ErrorResponse, "description": "Invalid video id"},
        404: {"model": ErrorResponse, "description": "Video not found"},
        416: {"model": ErrorResponse, "description": "Invalid range request"},
    },
)
async def stream_video(
    artifact_id: str,
    service: RecordingServiceDep,
    range_header: Annotated[Optional[str], Header(alias="Range")] = None,
):
    """
    Serve a finalized recording, honouring a single ``Range: bytes=`` request.

    Without a Range header the whole file is returned with status 200.
    """
    loop = asyncio.get_running_loop()
    handle = await loop.run_in_executor(None, service.media.open_artifact, artifact_id)

    try:
        if range_header is None:
            start, end = 0, handle.size - 1
            status_code = status.HTTP_200_OK
        else:
            start, end = parse_range(range_header, handle.size)
            status_code = status.HTTP_206_PARTIAL_CONTENT
    except RangeNotSatisfiableError:
        handle.close()
        raise

    headers = {
        "Accept-Ranges": "bytes",
        "Content-Length": str(end - start + 1),
    }
    if status_code == status.HTTP_206_PARTIAL_CONTENT:
        headers["Content-Range"] = f"bytes {start}-{end}/{handle.size}"
        logger.debug(f"Streaming bytes {start}-{end}/{handle.size} of {handle.path.name}")

    return StreamingResponse(
        handle.stream(start, end),
        status_code=status_code,
        media_type=service.media.media_type,
        headers=headers,
        background=BackgroundTask(handle.close),
    )


@router.get("/recordings", response_model=list[RecordingItem])
async def list_recordings(service: RecordingServiceDep):
    """List finalized recordings"""
    loop = asyncio.get_running_loop()
    artifacts = await loop.run_in_executor(None, service.media.list_artifacts)
    return [
        RecordingItem(
            session_id=a.session_id,
            filename=a.filename,
            size=a.size,
            created=a.created,
            url=a.url,
        )
        for a in artifacts
    ]


@router.get(
    "/sessions/{session_id}",
    response_model=SessionStatusResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_session_status(session_id: str, service: RecordingServiceDep):
    """Chunks received so far for an unfinalized session"""
    loop = asyncio.get_running_loop()
    progress = await loop.run_in_executor(None, service.session_progress, session_id)
    return SessionStatusResponse(**progress)
