"""
Pytest configuration and fixtures for sora-panel tests.

Provides:
- Test settings that never read the developer's .env
- A fake OpenAI client with AsyncMock video endpoints
- Test client for API testing
- Image factory producing encoded test images
"""

import os
from collections.abc import AsyncGenerator, Callable
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

os.environ.setdefault("OPENAI_API_KEY", "test-key")

from sora_panel.config import Settings, get_settings  # noqa: E402
from sora_panel.dependencies import get_video_client  # noqa: E402
from sora_panel.main import app  # noqa: E402
from sora_panel.video.client import VideoClient  # noqa: E402

SAMPLE_VIDEO = {
    "id": "video_123",
    "object": "video",
    "status": "queued",
    "model": "sora-2",
    "size": "1280x720",
    "seconds": "4",
    "progress": 0,
    "created_at": 1760000000,
}


@pytest.fixture
def settings() -> Settings:
    """Settings with a fake API key and default Sora options."""
    return Settings(
        _env_file=None,
        openai_api_key="test-key",
        sora_default_model="sora-2",
        sora_default_size="1280x720",
        sora_input_reference=None,
        debug=False,
    )


@pytest.fixture
def openai_client() -> MagicMock:
    """Fake AsyncOpenAI client exposing the videos resource."""
    client = MagicMock()
    client.videos.create = AsyncMock(return_value=dict(SAMPLE_VIDEO))
    client.videos.list = AsyncMock(return_value={"object": "list", "data": [SAMPLE_VIDEO], "has_more": False})
    client.videos.retrieve = AsyncMock(return_value=dict(SAMPLE_VIDEO, status="completed"))
    client.videos.delete = AsyncMock(return_value={"id": "video_123", "object": "video.deleted", "deleted": True})
    client.videos.download_content = AsyncMock(
        return_value=httpx.Response(
            200,
            content=b"fake-mp4-bytes",
            headers={"content-type": "video/mp4"},
        )
    )
    return client


@pytest.fixture
def video_client(settings: Settings, openai_client: MagicMock) -> VideoClient:
    """VideoClient wired to the fake OpenAI client."""
    return VideoClient(settings, client=openai_client)


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory for encoded images of a given size and format."""

    def _make_image(width: int, height: int, fmt: str = "PNG", mode: str = "RGB") -> bytes:
        color = (200, 40, 90, 255) if mode == "RGBA" else (200, 40, 90)
        image = Image.new(mode, (width, height), color[: len(mode)])
        buffer = BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make_image


@pytest_asyncio.fixture
async def client(
    settings: Settings, video_client: VideoClient
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with settings and video client overrides."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_video_client] = lambda: video_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
