from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel

from apps.api_gateway.deps import get_pipeline, user_dep
from video_frame_pipeline.domain.models import UserRef, Video
from video_frame_pipeline.services.container import Pipeline
from video_frame_pipeline.services.upload_service import UploadedFile

router = APIRouter()
USER_DEP = Depends(user_dep)
PIPELINE_DEP = Depends(get_pipeline)


class VideoResponse(BaseModel):
    video_id: uuid.UUID
    filename: str
    status: str
    file_size: int
    frame_count: int | None = None
    error_message: str | None = None
    download_ready: bool = False
    uploaded_at: datetime
    updated_at: datetime | None = None


class VideoListResponse(BaseModel):
    items: list[VideoResponse]


class VideoStatusResponse(BaseModel):
    video_id: uuid.UUID
    status: str


def _to_response(v: Video) -> VideoResponse:
    return VideoResponse(
        video_id=v.id,
        filename=v.original_filename,
        status=v.status.value,
        file_size=v.file_size,
        frame_count=v.frame_count,
        error_message=v.error_message,
        download_ready=v.zip_path is not None,
        uploaded_at=v.uploaded_at,
        updated_at=v.updated_at,
    )


@router.post("/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
def upload_video(
    file: UploadFile = File(...),
    user: UserRef = USER_DEP,
    pipeline: Pipeline = PIPELINE_DEP,
) -> VideoResponse:
    video = pipeline.uploads.execute(
        UploadedFile(filename=file.filename or "", stream=file.file, size=file.size),
        user,
    )
    return _to_response(video)


@router.get("/videos", response_model=VideoListResponse)
def list_videos(user: UserRef = USER_DEP, pipeline: Pipeline = PIPELINE_DEP) -> VideoListResponse:
    return VideoListResponse(items=[_to_response(v) for v in pipeline.queries.list_for_user(user.id)])


@router.get("/videos/{video_id}", response_model=VideoResponse)
def get_video(
    video_id: uuid.UUID, user: UserRef = USER_DEP, pipeline: Pipeline = PIPELINE_DEP
) -> VideoResponse:
    return _to_response(pipeline.queries.get(video_id, user.id))


@router.get("/videos/{video_id}/status", response_model=VideoStatusResponse)
def get_video_status(
    video_id: uuid.UUID, user: UserRef = USER_DEP, pipeline: Pipeline = PIPELINE_DEP
) -> VideoStatusResponse:
    return VideoStatusResponse(
        video_id=video_id, status=pipeline.queries.status(video_id, user.id).value
    )


@router.get("/videos/{video_id}/download")
def download_frames(
    video_id: uuid.UUID, user: UserRef = USER_DEP, pipeline: Pipeline = PIPELINE_DEP
) -> FileResponse:
    path = pipeline.queries.bundle_path(video_id, user.id)
    return FileResponse(path, media_type="application/zip", filename=path.name)
