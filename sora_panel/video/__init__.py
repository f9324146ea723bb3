"""Video generation: size negotiation, input references and the API client."""

from sora_panel.video.client import RequestOptions, VideoClient
from sora_panel.video.reference import ReferenceMeta, build_reference
from sora_panel.video.sizes import SizeRule, choose_size, coerce_size_to_supported, get_size_rules

__all__ = [
    "ReferenceMeta",
    "RequestOptions",
    "SizeRule",
    "VideoClient",
    "build_reference",
    "choose_size",
    "coerce_size_to_supported",
    "get_size_rules",
]
