"""sora-panel: CLI and web control panel for the OpenAI Sora video API."""

__version__ = "0.1.0"
