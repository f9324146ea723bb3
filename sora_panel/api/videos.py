"""Video routes: list, create, inspect, delete and download Sora videos."""

import json
from typing import Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile

from sora_panel.core.logging import get_logger
from sora_panel.dependencies import AppSettings, Videos
from sora_panel.video.client import to_jsonable
from sora_panel.video.download import iter_payload

logger = get_logger(__name__)

router = APIRouter()

# Multipart field names accepted for the reference file
REFERENCE_FIELDS = ("input_reference", "file")

# Reference keys only the upload itself may set; never taken from request fields
CLIENT_REFERENCE_KEYS = frozenset(
    {
        "input_reference",
        "input_reference_path",
        "input_reference_filename",
        "input_reference_mime_type",
    }
)


class InvalidJSONPayload(Exception):
    """The request body could not be parsed as a JSON object."""


async def _read_json(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise InvalidJSONPayload(str(e)) from e
    if not isinstance(data, dict):
        return {}
    return {key: value for key, value in data.items() if key not in CLIENT_REFERENCE_KEYS}


async def _read_form(request: Request) -> dict[str, Any]:
    """Collect form fields, turning the uploaded file into input_reference bytes."""
    payload: dict[str, Any] = {}
    form = await request.form()

    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key not in REFERENCE_FIELDS or not value.filename:
                continue
            data = await value.read()
            if data:
                payload["input_reference"] = data
                payload["input_reference_filename"] = value.filename
                payload["input_reference_mime_type"] = value.content_type
        elif value != "" and key not in CLIENT_REFERENCE_KEYS:
            payload[key] = value

    return payload


@router.get("/videos")
async def list_videos(request: Request, client: Videos) -> Any:
    """List videos. Query parameters are forwarded to the API."""
    videos = await client.list_videos(dict(request.query_params))
    return to_jsonable(videos)


@router.post("/videos", status_code=status.HTTP_201_CREATED)
async def create_video(request: Request, client: Videos, settings: AppSettings) -> Any:
    """
    Create a video.

    Accepts a JSON body or a multipart form with an optional reference file
    (field "input_reference" or "file").
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        payload = await _read_form(request)
    else:
        payload = await _read_json(request)

    prompt = payload.get("prompt")
    if not prompt or not str(prompt).strip():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Prompt is required."},
        )

    payload["model"] = payload.get("model") or settings.sora_default_model
    payload["size"] = payload.get("size") or settings.sora_default_size

    video = await client.create_video(payload)
    return to_jsonable(video)


@router.get("/videos/{video_id}")
async def get_video(video_id: str, client: Videos) -> Any:
    video = await client.get_video(video_id)
    return to_jsonable(video)


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(video_id: str, client: Videos) -> Response:
    await client.delete_video(video_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/videos/{video_id}/download")
async def download_video(video_id: str, client: Videos) -> StreamingResponse:
    """Stream the video content as an attachment."""
    content = await client.download_video_content(video_id)

    disposition = content.content_disposition or f'attachment; filename="{video_id}.mp4"'
    logger.bind(video_id=video_id, content_type=content.content_type).info("video_download_stream")

    return StreamingResponse(
        iter_payload(content.payload),
        media_type=content.content_type or "application/octet-stream",
        headers={"Content-Disposition": disposition},
    )
