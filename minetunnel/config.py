"""Application configuration with Pydantic Settings.

Settings are loaded from environment variables and .env files.

Examples:
    >>> from minetunnel.config import Settings
    >>> settings = Settings()
    >>> settings.STORAGE_BACKEND
    <BackendType.GITHUB: 'github'>

    >>> settings.storage_config()
    StorageConfig(backend=<BackendType.GITHUB: 'github'>, ...)

Tests:
    - tests/unit/test_config.py::TestSettings
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from minetunnel.storage.config import BackendType, StorageConfig


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        STORAGE_BACKEND: Blob store backend (github or local)
        GITHUB_TOKEN: Token for the GitHub contents API
        GITHUB_OWNER: Owner of the library repository
        GITHUB_REPO: Name of the library repository
        GITHUB_BRANCH: Branch that holds the library
        LOCAL_STORAGE_ROOT: Root directory for the local backend
        MANIFEST_PATH: Manifest path inside the repository
        MANIFEST_STRICT: Refuse to reset a corrupt manifest (set false to allow)
        GOOGLE_API_KEY: Google AI API key for image generation
        IMAGE_MODEL: Text-to-image model
        EDIT_MODEL: Image-conditioned generation model
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Storage
    STORAGE_BACKEND: BackendType = Field(
        default=BackendType.GITHUB,
        description="Blob store backend",
    )
    GITHUB_TOKEN: str | None = Field(
        default=None,
        description="GitHub API token",
    )
    GITHUB_OWNER: str | None = Field(
        default=None,
        description="Library repository owner",
    )
    GITHUB_REPO: str | None = Field(
        default=None,
        description="Library repository name",
    )
    GITHUB_BRANCH: str = Field(
        default="main",
        description="Library branch",
    )
    GITHUB_API_BASE: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    GITHUB_RAW_BASE: str = Field(
        default="https://raw.githubusercontent.com",
        description="GitHub raw content base URL",
    )
    LOCAL_STORAGE_ROOT: str = Field(
        default="./output/library",
        description="Local store root directory",
    )
    MANIFEST_PATH: str = Field(
        default="manifest.json",
        description="Manifest path inside the repository",
    )
    MANIFEST_STRICT: bool = Field(
        default=True,
        description="Raise on a corrupt manifest; false resets it to an empty library",
    )
    HTTP_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout in seconds",
    )

    # Image generation
    GOOGLE_API_KEY: str | None = Field(
        default=None,
        description="Google AI API key",
    )
    IMAGE_MODEL: str = Field(
        default="imagen-4.0-generate-001",
        description="Model for text-to-image generation",
    )
    EDIT_MODEL: str = Field(
        default="gemini-2.5-flash-image",
        description="Model for reference-conditioned generation",
    )

    # Application
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("MANIFEST_PATH")
    @classmethod
    def validate_manifest_path(cls, v: str) -> str:
        """Manifest path is repository-relative."""
        v = v.strip().lstrip("/")
        if not v:
            raise ValueError("MANIFEST_PATH must not be empty")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the logging level name."""
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return v

    @model_validator(mode="after")
    def validate_github(self) -> "Settings":
        """The GitHub backend needs a token and a repository."""
        if self.STORAGE_BACKEND == BackendType.GITHUB:
            missing = [
                name
                for name in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"GitHub backend requires: {', '.join(missing)}")
        return self

    @property
    def has_image_generation(self) -> bool:
        """Check if an image generation key is configured."""
        return bool(self.GOOGLE_API_KEY)

    def storage_config(self) -> StorageConfig:
        """Build the storage configuration.

        Returns:
            StorageConfig for minetunnel.storage.
        """
        return StorageConfig(
            backend=self.STORAGE_BACKEND,
            github_token=self.GITHUB_TOKEN,
            github_owner=self.GITHUB_OWNER,
            github_repo=self.GITHUB_REPO,
            github_branch=self.GITHUB_BRANCH,
            github_api_base=self.GITHUB_API_BASE,
            github_raw_base=self.GITHUB_RAW_BASE,
            local_root=self.LOCAL_STORAGE_ROOT,
            manifest_path=self.MANIFEST_PATH,
            strict_manifest=self.MANIFEST_STRICT,
            timeout=self.HTTP_TIMEOUT,
        )

