"""Mine Tunnel Studio: themed image generation with a GitHub-backed reference library."""

__version__ = "0.1.0"
