"""
Pydantic models describing a release manifest and the files it ships.
Also provides the codec for the `app.xml` manifest document.
"""

import re
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any

from pathvalidate import ValidationError as PathValidationError
from pathvalidate import validate_filepath
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Name of the manifest document, both remotely and inside the cache directory
MANIFEST_FILENAME = "app.xml"

_SHA256_PATTERN = re.compile(r"^[0-9a-f]{64}$")

# Maps manifest attribute names to model field names
_ATTRIBUTE_FIELDS = {
    "uri": "uri",
    "launch": "launch_class",
    "name": "name",
    "title": "title",
    "version": "version",
    "ts": "ts",
    "acceptDowngrade": "accept_downgrade",
    "lingeringUpdateScreen": "lingering_update_screen",
    "whatsNewPage": "whats_new_page",
    "ignoreUpdateErrors": "ignore_update_errors",
}
_TEXT_FIELDS = {
    "updateText": "update_text",
    "parameters": "parameters",
}


class OSTag(str, Enum):
    """Platforms a file entry can be restricted to."""

    ANY = "any"
    WINDOWS = "windows"
    MAC = "mac"
    LINUX = "linux"

    @classmethod
    def parse(cls, value: Any) -> "OSTag":
        """Parses an OS tag, accepting the common aliases used in manifests."""
        if isinstance(value, OSTag):
            return value
        normalized = str(value or "").strip().lower()
        aliases = {
            "": cls.ANY,
            "all": cls.ANY,
            "win": cls.WINDOWS,
            "win32": cls.WINDOWS,
            "osx": cls.MAC,
            "macos": cls.MAC,
            "darwin": cls.MAC,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown OS tag: '{value}'") from None


class FileEntry(BaseModel):
    """One artifact of a release, identified by its path relative to the cache."""

    model_config = ConfigDict(frozen=True)

    path: str
    checksum: str
    size: int = Field(default=0, ge=0)
    os: OSTag = OSTag.ANY

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Normalizes separators and rejects paths that escape the cache directory."""
        normalized = v.strip().replace("\\", "/")
        while normalized.startswith("./"):
            normalized = normalized[2:]
        if not normalized:
            raise ValueError("File path cannot be empty.")
        if normalized.startswith("/") or re.match(r"^[A-Za-z]:", normalized):
            raise ValueError(f"File path must be relative: '{v}'")
        if ".." in normalized.split("/"):
            raise ValueError(f"File path cannot contain '..': '{v}'")
        if normalized == MANIFEST_FILENAME:
            raise ValueError(
                f"'{MANIFEST_FILENAME}' is reserved for the cached manifest."
            )
        try:
            validate_filepath(normalized, platform="universal")
        except PathValidationError as e:
            raise ValueError(f"Invalid file path '{v}': {e}") from e
        return normalized

    @field_validator("checksum", mode="before")
    @classmethod
    def validate_checksum(cls, v: Any) -> str:
        """Accepts a SHA-256 hex digest, optionally prefixed with 'sha256:'."""
        digest = str(v or "").strip().lower()
        if digest.startswith("sha256:"):
            digest = digest[len("sha256:") :]
        if not _SHA256_PATTERN.match(digest):
            raise ValueError(f"Checksum must be a SHA-256 hex digest, got: '{v}'")
        return digest

    @field_validator("os", mode="before")
    @classmethod
    def validate_os(cls, v: Any) -> OSTag:
        return OSTag.parse(v)

    def applies_to(self, target_os: OSTag) -> bool:
        """True if this entry is part of the file set for `target_os`."""
        return self.os is OSTag.ANY or self.os is target_os


class Manifest(BaseModel):
    """
    An immutable description of a release.

    Two manifests are equal iff every field and every entry (in order) is equal;
    that equality is the only signal used to decide whether an update exists.
    """

    model_config = ConfigDict(frozen=True)

    uri: str
    launch_class: str
    entries: tuple[FileEntry, ...] = ()

    name: str | None = None
    title: str | None = None
    version: str | None = None
    ts: int | None = None
    update_text: str | None = None
    parameters: str | None = None

    # Update policy flags
    accept_downgrade: bool = False
    lingering_update_screen: bool = False
    whats_new_page: str | None = None
    ignore_update_errors: bool | None = None

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("Manifest URI cannot be empty.")
        return v

    @field_validator("launch_class")
    @classmethod
    def validate_launch_class(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Manifest must declare a launch class.")
        return v

    @model_validator(mode="after")
    def validate_unique_paths(self) -> "Manifest":
        """Ensures every entry path appears only once."""
        seen: set[str] = set()
        for entry in self.entries:
            if entry.path in seen:
                raise ValueError(f"Duplicate file entry: '{entry.path}'")
            seen.add(entry.path)
        return self

    @property
    def manifest_uri(self) -> str:
        """The canonical location of this manifest's document."""
        return f"{self.uri}/{MANIFEST_FILENAME}"

    @property
    def display_name(self) -> str:
        return self.title or self.name or self.launch_class

    def entries_for(self, target_os: OSTag) -> tuple[FileEntry, ...]:
        """Returns the entries that belong to the file set of `target_os`."""
        return tuple(e for e in self.entries if e.applies_to(target_os))

    def is_newer_than(self, other: "Manifest") -> bool:
        """True if both manifests carry a timestamp and this one is later."""
        if self.ts is None or other.ts is None:
            return False
        return self.ts > other.ts

    @classmethod
    def from_xml(cls, document: str | bytes) -> "Manifest":
        """
        Parses an `app.xml` document.

        Raises:
            ValueError: If the document is not well-formed or fails validation.
        """
        try:
            root = ET.fromstring(document)
        except ET.ParseError as e:
            raise ValueError(f"Manifest is not well-formed XML: {e}") from e

        if root.tag != "Application":
            raise ValueError(
                f"Expected <Application> root element, found <{root.tag}>."
            )

        data: dict[str, Any] = {
            field: root.attrib[attr]
            for attr, field in _ATTRIBUTE_FIELDS.items()
            if attr in root.attrib
        }
        for tag, field in _TEXT_FIELDS.items():
            element = root.find(tag)
            if element is not None and element.text:
                data[field] = element.text.strip()

        data["entries"] = [
            {
                "path": lib.get("file", ""),
                "checksum": lib.get("checksum", ""),
                "size": lib.get("size", 0),
                "os": lib.get("os", "any"),
            }
            for lib in root.iter("lib")
        ]
        return cls.model_validate(data)

    def to_xml(self) -> str:
        """Serializes this manifest into an `app.xml` document."""
        root = ET.Element("Application")
        for attr, field in _ATTRIBUTE_FIELDS.items():
            value = getattr(self, field)
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            root.set(attr, str(value))

        for entry in self.entries:
            ET.SubElement(
                root,
                "lib",
                file=entry.path,
                checksum=entry.checksum,
                size=str(entry.size),
                os=entry.os.value,
            )
        for tag, field in _TEXT_FIELDS.items():
            value = getattr(self, field)
            if value:
                ET.SubElement(root, tag).text = value

        ET.indent(root)
        return ET.tostring(root, encoding="unicode", xml_declaration=True)
