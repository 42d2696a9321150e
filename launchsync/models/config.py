"""
Pydantic model for launcher configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from launchsync.models.manifest import MANIFEST_FILENAME, Manifest, OSTag


def resolve_manifest_url(manifest_uri: str) -> str:
    """
    Returns the URL of the manifest document for a configured URI.

    A URI that already names an `.xml` document is used as-is; anything else is
    treated as a release base and gets `/app.xml` appended.
    """
    uri = manifest_uri.strip()
    if uri.lower().endswith(".xml"):
        return uri
    return f"{uri.rstrip('/')}/{MANIFEST_FILENAME}"


class LauncherConfig(BaseModel):
    """A validated configuration model for the launcher."""

    # Release source
    manifest_uri: str
    cache_directory: str | None = None
    target_os: OSTag | None = None

    # Policy flags; None defers to the value declared by the manifest
    ignore_ssl_validation: bool = False
    ignore_update_errors: bool | None = None
    lingering_update_screen: bool | None = None
    accept_downgrade: bool | None = None

    # Synchronization
    max_workers: int = 4
    max_attempts: int = 3
    retry_base_delay: float = 1.5
    verify_files: bool = True

    # Error dialog customization
    error_title: str | None = None
    error_header: str | None = None
    error_body: str | None = None

    # Diagnostics
    event_log: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("manifest_uri")
    @classmethod
    def validate_manifest_uri(cls, v: str) -> str:
        """Ensures the manifest is fetched over HTTP(S)."""
        if not v:
            raise ValueError("A manifest URI is required.")
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"Manifest URI must start with http:// or https://, got: {v}"
            )
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a small, bounded worker pool."""
        if v < 1 or v > 16:
            raise ValueError("Max workers must be between 1 and 16.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("retry_base_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Retry base delay cannot be negative.")
        return v

    @field_validator("target_os", mode="before")
    @classmethod
    def validate_target_os(cls, v):
        if v is None or v == "":
            return None
        return OSTag.parse(v)

    @property
    def manifest_url(self) -> str:
        return resolve_manifest_url(self.manifest_uri)

    def effective_ignore_update_errors(self, manifest: Manifest | None) -> bool:
        """The configured value wins; otherwise the manifest's, otherwise False."""
        if self.ignore_update_errors is not None:
            return self.ignore_update_errors
        return bool(manifest and manifest.ignore_update_errors)

    def effective_lingering_update_screen(self, manifest: Manifest | None) -> bool:
        if self.lingering_update_screen is not None:
            return self.lingering_update_screen
        return bool(manifest and manifest.lingering_update_screen)

    def effective_accept_downgrade(self, manifest: Manifest | None) -> bool:
        if self.accept_downgrade is not None:
            return self.accept_downgrade
        return bool(manifest and manifest.accept_downgrade)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
