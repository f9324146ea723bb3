from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from sora_panel.config import Settings, get_settings
from sora_panel.video.client import VideoClient


@lru_cache
def get_video_client() -> VideoClient:
    """Get the shared video client, built from the cached settings."""
    return VideoClient(get_settings())


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Videos = Annotated[VideoClient, Depends(get_video_client)]
