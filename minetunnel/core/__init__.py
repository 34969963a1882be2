"""Image generation core."""

from minetunnel.core.generator import (
    GeneratedImage,
    ImageGenerationError,
    ImageGenerator,
    ReferenceImage,
    enhance_prompt,
)

__all__ = [
    "GeneratedImage",
    "ImageGenerationError",
    "ImageGenerator",
    "ReferenceImage",
    "enhance_prompt",
]
