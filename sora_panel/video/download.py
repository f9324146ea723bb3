"""Normalization of video download payloads returned by the OpenAI SDK."""

import base64
import binascii
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, assert_never

import httpx

from sora_panel.core.exceptions import EmptyResponseError, UnsupportedResponseError


@dataclass(frozen=True)
class BufferPayload:
    """Content already held in memory."""

    data: bytes


@dataclass(frozen=True)
class StreamPayload:
    """Content that is drained chunk by chunk."""

    chunks: AsyncIterator[bytes]


@dataclass(frozen=True)
class Base64Payload:
    """Content delivered as a base64 string."""

    data: str


@dataclass(frozen=True)
class WrappedPayload:
    """A response object wrapping one of the other shapes."""

    inner: "DownloadPayload"


DownloadPayload = BufferPayload | StreamPayload | Base64Payload | WrappedPayload


@dataclass(frozen=True)
class VideoContent:
    """Downloaded video content plus the headers worth forwarding."""

    payload: DownloadPayload
    content_type: str | None = None
    content_disposition: str | None = None


def classify_download(resource: Any) -> DownloadPayload:
    """
    Map whatever the SDK returned onto a DownloadPayload variant.

    Raises:
        EmptyResponseError: If nothing usable was returned
        UnsupportedResponseError: If the shape is not recognized
    """
    if resource is None or (
        isinstance(resource, (bytes, bytearray, memoryview, str)) and not resource
    ):
        raise EmptyResponseError("No data returned from OpenAI when downloading video.")

    if isinstance(resource, (bytes, bytearray, memoryview)):
        return BufferPayload(data=bytes(resource))

    if isinstance(resource, str):
        return Base64Payload(data=resource)

    if isinstance(resource, httpx.Response):
        return StreamPayload(chunks=resource.aiter_bytes())

    # HttpxBinaryResponseContent exposes .response, ad hoc wrappers expose .data
    for attribute in ("response", "data"):
        inner = getattr(resource, attribute, None)
        if inner is not None:
            return WrappedPayload(inner=classify_download(inner))

    raise UnsupportedResponseError("Unsupported download response from OpenAI client.")


def response_headers(resource: Any) -> httpx.Headers | None:
    """Find the HTTP headers behind a download resource, if any."""
    if isinstance(resource, httpx.Response):
        return resource.headers
    response = getattr(resource, "response", None)
    if isinstance(response, httpx.Response):
        return response.headers
    return None


def _decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UnsupportedResponseError("Download payload is not valid base64.") from e


async def read_payload(payload: DownloadPayload) -> bytes:
    """Drain a payload of any shape into bytes."""
    if isinstance(payload, BufferPayload):
        return payload.data
    if isinstance(payload, Base64Payload):
        return _decode_base64(payload.data)
    if isinstance(payload, StreamPayload):
        return b"".join([chunk async for chunk in payload.chunks])
    if isinstance(payload, WrappedPayload):
        return await read_payload(payload.inner)
    assert_never(payload)


async def iter_payload(payload: DownloadPayload) -> AsyncIterator[bytes]:
    """Yield the payload as byte chunks, suitable for streaming responses."""
    if isinstance(payload, BufferPayload):
        yield payload.data
    elif isinstance(payload, Base64Payload):
        yield _decode_base64(payload.data)
    elif isinstance(payload, StreamPayload):
        async for chunk in payload.chunks:
            yield chunk
    elif isinstance(payload, WrappedPayload):
        async for chunk in iter_payload(payload.inner):
            yield chunk
    else:
        assert_never(payload)
