"""Thin async client over the OpenAI videos API."""

import asyncio
from collections.abc import Awaitable, Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from openai import APIStatusError, AsyncOpenAI
from pydantic import BaseModel

from sora_panel.config import Settings
from sora_panel.core.exceptions import (
    InvalidArgumentError,
    RequestCancelledError,
    UpstreamAPIError,
)
from sora_panel.core.logging import get_logger
from sora_panel.video.download import VideoContent, classify_download, read_payload, response_headers
from sora_panel.video.reference import (
    ReferenceMeta,
    build_reference,
    create_reference_from_bytes,
    create_reference_from_path,
)
from sora_panel.video.sizes import SizeRuleSet, coerce_size_to_supported, get_size_rules

T = TypeVar("T")

logger = get_logger(__name__)

# Keyword arguments accepted by videos.create; anything else goes through extra_body
CREATE_FIELDS = frozenset({"prompt", "model", "seconds", "size", "input_reference"})
LIST_FIELDS = frozenset({"after", "limit", "order"})


@dataclass
class RequestOptions:
    """Per-call transport controls passed through to the SDK."""

    headers: dict[str, str] | None = None
    timeout: float | None = None
    cancel_event: asyncio.Event | None = field(default=None, repr=False)

    def as_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.headers:
            kwargs["extra_headers"] = dict(self.headers)
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


def _transport(options: RequestOptions | None) -> dict[str, Any]:
    return options.as_kwargs() if options else {}


def _require_id(video_id: str | None, operation: str) -> str:
    if not video_id or not str(video_id).strip():
        raise InvalidArgumentError(f"{operation} requires a video_id.")
    return str(video_id).strip()


async def _race_cancellation(request: Awaitable[T], cancel_event: asyncio.Event) -> T:
    """Await request unless cancel_event is set first."""
    task = asyncio.ensure_future(request)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            return task.result()
        raise RequestCancelledError("Request cancelled by caller.")
    finally:
        for pending in (task, waiter):
            if not pending.done():
                pending.cancel()
                with suppress(asyncio.CancelledError):
                    await pending


class VideoClient:
    """
    Client for Sora video generation.

    Wraps AsyncOpenAI().videos and adds size negotiation and input reference
    handling to create calls. The other operations are plain forwarders.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        """
        Initialize the video client.

        Args:
            settings: Application settings (credentials, base URL, defaults)
            client: Optional preconfigured OpenAI client (used by tests)
        """
        self.settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_api_base_url,
            default_headers=settings.default_headers or None,
        )

    @property
    def videos(self) -> Any:
        return self._client.videos

    async def _send(
        self,
        operation: str,
        request: Awaitable[T],
        options: RequestOptions | None,
    ) -> T:
        try:
            if options and options.cancel_event is not None:
                return await _race_cancellation(request, options.cancel_event)
            return await request
        except APIStatusError as e:
            logger.bind(operation=operation, status=e.status_code).warning("openai_request_failed")
            raise UpstreamAPIError(e.message, status_code=e.status_code, details=e.body) from e
        except RequestCancelledError:
            logger.bind(operation=operation).info("openai_request_cancelled")
            raise

    async def _fit_reference(self, reference: ReferenceMeta, rules: SizeRuleSet) -> ReferenceMeta:
        """Rebuild a prebuilt reference whose size label the model does not support."""
        if reference.size_label is None or any(
            rule.label == reference.size_label for rule in rules
        ):
            return reference

        logger.bind(
            reference=reference.filename, size=reference.size_label
        ).info("input_reference_refit")
        return await build_reference(
            reference.data, reference.filename, reference.mime_type, rules
        )

    async def _resolve_reference(
        self, body: dict[str, Any], rules: SizeRuleSet
    ) -> ReferenceMeta | None:
        """Pop reference-related fields from body and build the reference."""
        path = body.pop("input_reference_path", None)
        filename = body.pop("input_reference_filename", None)
        mime_type = body.pop("input_reference_mime_type", None)
        raw = body.pop("input_reference", None)

        if path:
            return await create_reference_from_path(path, rules)
        if isinstance(raw, ReferenceMeta):
            return await self._fit_reference(raw, rules)
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return await create_reference_from_bytes(bytes(raw), filename, mime_type, rules)
        if raw is not None:
            raise InvalidArgumentError(
                "input_reference must be a ReferenceMeta or raw bytes; "
                "use input_reference_path for files on disk."
            )
        return None

    async def create_video(
        self,
        payload: Mapping[str, Any],
        options: RequestOptions | None = None,
    ) -> Any:
        """
        Create a video generation job.

        Size precedence: the size of an attached image reference, then the
        caller's size coerced to a supported one, then the model default.

        Args:
            payload: Request fields (prompt, model, size, seconds, ...). The
                reference may be given as input_reference_path or as
                input_reference (ReferenceMeta or bytes, with optional
                input_reference_filename / input_reference_mime_type).
            options: Optional transport controls

        Returns:
            The created video resource
        """
        if not isinstance(payload, Mapping):
            raise InvalidArgumentError("create_video expects a payload mapping.")

        body = dict(payload)
        model = body.get("model") or self.settings.sora_default_model
        body["model"] = model
        rules = get_size_rules(model)

        reference = await self._resolve_reference(body, rules)
        if reference is not None:
            body["input_reference"] = reference.file

        if reference is not None and reference.size_label:
            body["size"] = reference.size_label
        elif body.get("size"):
            body["size"] = coerce_size_to_supported(body["size"], rules)
        else:
            body["size"] = rules[0].label

        kwargs = {key: value for key, value in body.items() if key in CREATE_FIELDS}
        extra_body = {key: value for key, value in body.items() if key not in CREATE_FIELDS}
        if extra_body:
            kwargs["extra_body"] = extra_body

        logger.bind(
            model=model,
            size=body["size"],
            reference=reference.filename if reference else None,
            reference_mime_type=reference.mime_type if reference else None,
        ).info("video_create_request")

        return await self._send(
            "create", self.videos.create(**kwargs, **_transport(options)), options
        )

    async def list_videos(
        self,
        query: Mapping[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """List videos. after/limit/order are typed params, the rest is sent as query string."""
        query = dict(query or {})
        kwargs = {key: value for key, value in query.items() if key in LIST_FIELDS}
        if "limit" in kwargs and kwargs["limit"] is not None:
            try:
                kwargs["limit"] = int(kwargs["limit"])
            except (TypeError, ValueError) as e:
                raise InvalidArgumentError(
                    f"limit must be an integer, got {kwargs['limit']!r}."
                ) from e
        extra_query = {key: value for key, value in query.items() if key not in LIST_FIELDS}
        if extra_query:
            kwargs["extra_query"] = extra_query

        return await self._send("list", self.videos.list(**kwargs, **_transport(options)), options)

    async def get_video(self, video_id: str, options: RequestOptions | None = None) -> Any:
        video_id = _require_id(video_id, "get_video")
        return await self._send(
            "retrieve", self.videos.retrieve(video_id, **_transport(options)), options
        )

    async def delete_video(self, video_id: str, options: RequestOptions | None = None) -> Any:
        video_id = _require_id(video_id, "delete_video")
        result = await self._send(
            "delete", self.videos.delete(video_id, **_transport(options)), options
        )
        logger.bind(video_id=video_id).info("video_deleted")
        return result

    async def download_video_content(
        self, video_id: str, options: RequestOptions | None = None
    ) -> VideoContent:
        """Fetch video content, normalized to a DownloadPayload plus forwarded headers."""
        video_id = _require_id(video_id, "download_video_content")
        resource = await self._send(
            "download", self.videos.download_content(video_id, **_transport(options)), options
        )

        payload = classify_download(resource)
        headers = response_headers(resource)
        return VideoContent(
            payload=payload,
            content_type=headers.get("content-type") if headers else None,
            content_disposition=headers.get("content-disposition") if headers else None,
        )

    async def download_video_bytes(
        self, video_id: str, options: RequestOptions | None = None
    ) -> bytes:
        content = await self.download_video_content(video_id, options)
        return await read_payload(content.payload)

    async def download_video(
        self,
        video_id: str,
        destination: str | Path,
        options: RequestOptions | None = None,
    ) -> Path:
        """
        Download a finished video to a file.

        Returns:
            Absolute path of the written file
        """
        video_id = _require_id(video_id, "download_video")
        if not destination or not str(destination).strip():
            raise InvalidArgumentError("download_video requires a destination file path.")

        absolute_destination = Path(destination).expanduser().resolve()
        data = await self.download_video_bytes(video_id, options)

        def _write() -> None:
            absolute_destination.parent.mkdir(parents=True, exist_ok=True)
            absolute_destination.write_bytes(data)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)

        logger.bind(
            video_id=video_id, path=str(absolute_destination), bytes=len(data)
        ).info("video_downloaded")
        return absolute_destination


def to_jsonable(value: Any) -> Any:
    """Convert SDK models (videos, pages, delete results) to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value
