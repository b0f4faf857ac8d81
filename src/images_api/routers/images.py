import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from database.base import ImageStore
from images_api.dependencies import get_image_store, get_upload_intake
from images_api.intake import CandidateFile, UploadIntake
from images_api.schemas import FilePathsResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": MessageResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": MessageResponse},
}


async def _read_candidate(upload: UploadFile, max_file_size: int) -> CandidateFile:
    # one byte past the limit is enough to reject an oversized file
    payload = await upload.read(max_file_size + 1)
    await upload.close()
    return CandidateFile(
        original_filename=upload.filename or "",
        content_type=upload.content_type or "",
        payload=payload,
    )


@router.post("/upload", response_model=FilePathsResponse, responses=ERROR_RESPONSES)
async def upload_images(
    images: Optional[List[UploadFile]] = File(None, description="Up to 10 JPG, PNG or GIF images"),
    intake: UploadIntake = Depends(get_upload_intake),
    image_store: ImageStore = Depends(get_image_store),
) -> FilePathsResponse:
    """
    Upload a batch of images.

    Every file is validated before anything is written; a single bad file
    rejects the whole request.

    Returns:
        FilePathsResponse: Public paths of the stored images, in upload order
    """
    # browsers send an empty part when no file was picked
    uploads = [upload for upload in images or [] if upload.filename]
    logger.info(f"Upload request received with {len(uploads)} file(s)")

    intake.check_count(len(uploads))
    candidates = [await _read_candidate(upload, intake.max_file_size) for upload in uploads]

    descriptors = await run_in_threadpool(intake.ingest, candidates)
    records = await run_in_threadpool(image_store.insert_batch, descriptors)

    logger.info(f"Saved {len(records)} image(s)")
    return FilePathsResponse(file_paths=[record.path for record in records])


@router.get("/images", response_model=FilePathsResponse, responses=ERROR_RESPONSES)
async def list_images(image_store: ImageStore = Depends(get_image_store)) -> FilePathsResponse:
    """List the public paths of all stored images, newest first."""
    records = await run_in_threadpool(image_store.list_all)
    return FilePathsResponse(file_paths=[record.path for record in records])
