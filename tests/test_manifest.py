from __future__ import annotations

import hashlib

import pytest
from pydantic import ValidationError

from launchsync.models.manifest import FileEntry, Manifest, OSTag

CHECKSUM = hashlib.sha256(b"payload").hexdigest()


def test_file_entry_normalizes_path_and_checksum() -> None:
    entry = FileEntry(path=".\\lib\\core.zip", checksum="SHA256:" + CHECKSUM.upper())

    assert entry.path == "lib/core.zip"
    assert entry.checksum == CHECKSUM
    assert entry.os is OSTag.ANY


@pytest.mark.parametrize(
    "path",
    ["/etc/passwd", "C:/Windows/app.dll", "lib/../../escape.bin", "", "app.xml"],
)
def test_file_entry_rejects_unsafe_paths(path: str) -> None:
    with pytest.raises(ValidationError):
        FileEntry(path=path, checksum=CHECKSUM)


def test_file_entry_rejects_non_sha256_checksum() -> None:
    with pytest.raises(ValidationError, match="SHA-256"):
        FileEntry(path="a.bin", checksum="abc123")


def test_os_tag_aliases() -> None:
    assert OSTag.parse("win") is OSTag.WINDOWS
    assert OSTag.parse("OSX") is OSTag.MAC
    assert OSTag.parse("") is OSTag.ANY
    with pytest.raises(ValueError, match="Unknown OS tag"):
        OSTag.parse("beos")


def test_entries_for_filters_by_os(make_manifest) -> None:
    manifest = make_manifest(
        {
            "common.zip": b"common",
            "native.dll": (b"dll", "windows"),
            "native.so": (b"so", "linux"),
        }
    )

    paths = [entry.path for entry in manifest.entries_for(OSTag.LINUX)]

    assert paths == ["common.zip", "native.so"]


def test_manifest_rejects_duplicate_paths() -> None:
    entry = FileEntry(path="a.bin", checksum=CHECKSUM)
    with pytest.raises(ValidationError, match="Duplicate file entry"):
        Manifest(uri="http://example.org/app", launch_class="app:Main", entries=(entry, entry))


def test_manifest_equality_is_structural(make_manifest) -> None:
    first = make_manifest({"a.bin": b"a", "b.bin": b"b"}, version="1.0")
    same = make_manifest({"a.bin": b"a", "b.bin": b"b"}, version="1.0")
    reordered = make_manifest({"b.bin": b"b", "a.bin": b"a"}, version="1.0")
    flagged = make_manifest({"a.bin": b"a", "b.bin": b"b"}, version="1.0", accept_downgrade=True)

    assert first == same
    assert first != reordered
    assert first != flagged


def test_xml_document_round_trip(make_manifest) -> None:
    manifest = make_manifest(
        {"lib/app.zip": b"app", "lib/native.dll": (b"dll", "windows")},
        uri="https://releases.example.org/app/",
        name="demo",
        title="Demo App",
        version="2.1.0",
        ts=1700000000000,
        update_text="Installing Demo 2.1",
        parameters="--mode fast",
        lingering_update_screen=True,
        whats_new_page="https://releases.example.org/app/whatsnew.html",
        ignore_update_errors=True,
    )

    parsed = Manifest.from_xml(manifest.to_xml())

    assert parsed == manifest
    assert parsed.uri == "https://releases.example.org/app"
    assert parsed.manifest_uri == "https://releases.example.org/app/app.xml"


def test_from_xml_reads_attributes() -> None:
    document = f"""<?xml version="1.0" encoding="UTF-8"?>
<Application uri="http://example.org/demo" launch="demo.main:App"
             version="3" ts="42" acceptDowngrade="true">
    <lib file="demo.zip" checksum="{CHECKSUM}" size="7" os="all"/>
    <updateText>Updating demo</updateText>
</Application>"""

    manifest = Manifest.from_xml(document)

    assert manifest.launch_class == "demo.main:App"
    assert manifest.ts == 42
    assert manifest.accept_downgrade is True
    assert manifest.ignore_update_errors is None
    assert manifest.update_text == "Updating demo"
    assert manifest.entries[0].size == 7
    assert manifest.display_name == "demo.main:App"


@pytest.mark.parametrize(
    "document",
    [
        "<Application uri='http://x' launch='a:b'><lib",
        "<Launcher uri='http://x' launch='a:b'/>",
        "<Application uri='http://x'/>",
    ],
)
def test_from_xml_rejects_malformed_documents(document: str) -> None:
    with pytest.raises(ValueError):
        Manifest.from_xml(document)


def test_is_newer_than_requires_both_timestamps(make_manifest) -> None:
    old = make_manifest({}, ts=1)
    new = make_manifest({}, ts=2)
    undated = make_manifest({})

    assert new.is_newer_than(old)
    assert not old.is_newer_than(new)
    assert not new.is_newer_than(undated)
