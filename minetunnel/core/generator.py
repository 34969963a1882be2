"""Image generation via the Google Gen AI SDK.

Text-only prompts go to an Imagen model through generate_images(). When a
reference image is supplied, a Gemini image model is called through
generate_content() with the reference as an inline part.

Examples:
    >>> from minetunnel.core.generator import ImageGenerator, ReferenceImage
    >>> generator = ImageGenerator(api_key="AIza...")
    >>> image = await generator.generate("A flooded mine tunnel with rails")
    >>> ref = ReferenceImage.from_file("cart.jpg")
    >>> edited = await generator.generate("Same cart, rusted", reference=ref)

Tests:
    - tests/unit/test_generator.py
"""

from __future__ import annotations

import base64
import logging
import mimetypes
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

QUALITY_SUFFIX = (
    "ACES (cinema-grade color science), 8K HDR, ultra-detailed, high-fidelity, "
    "professional-grade, photorealistic"
)
NEGATIVE_PROMPT = (
    "Negative prompt: poorly drawn face, mutation, mutated, extra limb, ugly, disgusting, "
    "poorly drawn hands, missing limb, floating limbs, disconnected limbs, malformed hands, "
    "blurry, mutated hands and fingers, watermarked, oversaturated, distorted, deformed, "
    "childish, cartoonish, low-resolution, artifacts, noise, bad anatomy, jpeg artifacts, signature."
)


class ImageGenerationError(Exception):
    """Image generation failed; the message is meant for the user.

    Attributes:
        retryable: Whether trying again may succeed
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


@dataclass(frozen=True)
class ReferenceImage:
    """Image bytes used to condition generation."""

    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_file(cls, path: str | Path) -> "ReferenceImage":
        p = Path(path)
        mime_type, _ = mimetypes.guess_type(p.name)
        return cls(data=p.read_bytes(), mime_type=mime_type or "image/jpeg")

    @classmethod
    def from_library_path(cls, path: str, data: bytes) -> "ReferenceImage":
        mime_type, _ = mimetypes.guess_type(path)
        return cls(data=data, mime_type=mime_type or "image/jpeg")


@dataclass
class GeneratedImage:
    """A generated image.

    Attributes:
        data: Image bytes
        mime_type: Image MIME type
        prompt: The prompt as entered by the user
        id: Unique identifier
        created_at: Generation time (UTC)
        model: Model that produced the image
        latency_ms: Generation latency in milliseconds
    """

    data: bytes
    mime_type: str
    prompt: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    model: str | None = None
    latency_ms: int = 0

    @property
    def extension(self) -> str:
        return (mimetypes.guess_extension(self.mime_type) or ".img").lstrip(".")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


def enhance_prompt(prompt: str) -> str:
    """Append the fixed quality suffix and negative prompt."""
    return f"{prompt}, {QUALITY_SUFFIX}. {NEGATIVE_PROMPT}"


class ImageGenerator:
    """Generates mine-tunnel imagery with Google models.

    Attributes:
        api_key: Google AI API key
        image_model: Model for text-to-image
        edit_model: Model for reference-conditioned generation
    """

    def __init__(
        self,
        api_key: str,
        image_model: str = "imagen-4.0-generate-001",
        edit_model: str = "gemini-2.5-flash-image",
    ) -> None:
        self.api_key = api_key
        self.image_model = image_model
        self.edit_model = edit_model
        self._client: Any = None

    @property
    def client(self) -> Any:
        """Get Gen AI client (lazy initialization)."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _handle_error(self, error: Exception) -> None:
        """Convert SDK errors to user-facing generation errors.

        Raises:
            ImageGenerationError: Always.
        """
        if isinstance(error, ImageGenerationError):
            raise error

        error_str = str(error).lower()
        if "deadline" in error_str or "timeout" in error_str or "timed out" in error_str:
            raise ImageGenerationError("The request timed out. Please try again.", retryable=True) from error
        if "api key" in error_str or "api_key" in error_str:
            raise ImageGenerationError("Invalid API Key. Please check your configuration.") from error
        raise ImageGenerationError(
            "Failed to connect to the AI service. The model may be overloaded or down.",
            retryable=True,
        ) from error

    async def generate(self, prompt: str, reference: ReferenceImage | None = None) -> GeneratedImage:
        """Generate an image from a prompt, optionally conditioned on a reference.

        Args:
            prompt: User prompt (the quality suffix is appended here).
            reference: Optional reference image.

        Returns:
            GeneratedImage with the raw image bytes.

        Raises:
            ImageGenerationError: If the prompt is empty or generation fails.
        """
        if not prompt.strip():
            raise ImageGenerationError("Prompt cannot be empty.")

        final_prompt = enhance_prompt(prompt)
        start_time = time.perf_counter()
        try:
            if reference is not None:
                data, mime_type = await self._generate_with_reference(final_prompt, reference)
                model = self.edit_model
            else:
                data, mime_type = await self._generate_from_text(final_prompt)
                model = self.image_model
        except Exception as e:
            logger.error(f"Image generation error: {e}")
            self._handle_error(e)
            raise

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(f"Generated image with {model} in {latency_ms}ms")
        return GeneratedImage(
            data=data,
            mime_type=mime_type,
            prompt=prompt,
            model=model,
            latency_ms=latency_ms,
        )

    async def _generate_with_reference(self, prompt: str, reference: ReferenceImage) -> tuple[bytes, str]:
        from google.genai import types

        response = await self.client.aio.models.generate_content(
            model=self.edit_model,
            contents=[
                types.Part.from_bytes(data=reference.data, mime_type=reference.mime_type),
                prompt,
            ],
            config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
        )

        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if getattr(part, "inline_data", None) and part.inline_data.data:
                    return part.inline_data.data, part.inline_data.mime_type or "image/png"
        raise ImageGenerationError("Image editing did not return an image.")

    async def _generate_from_text(self, prompt: str) -> tuple[bytes, str]:
        from google.genai import types

        response = await self.client.aio.models.generate_images(
            model=self.image_model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio="1:1",
            ),
        )

        if response.generated_images:
            return response.generated_images[0].image.image_bytes, "image/jpeg"
        raise ImageGenerationError("No image was generated.")
