from __future__ import annotations

from pathlib import Path

import pytest

from launchsync.core.diff import build_plan, current_os
from launchsync.models.manifest import OSTag


def _partition_holds(plan, *manifests) -> bool:
    downloads = {entry.path for entry in plan.to_download}
    deletes = set(plan.to_delete)
    unchanged = set(plan.unchanged)
    applicable = set()
    for manifest in manifests:
        if manifest is not None:
            applicable.update(e.path for e in manifest.entries_for(OSTag.LINUX))
    return (
        not downloads & deletes
        and not downloads & unchanged
        and not deletes & unchanged
        and downloads | deletes | unchanged == applicable
    )


def test_first_run_downloads_everything(make_manifest) -> None:
    remote = make_manifest({"a.zip": b"a", "b.zip": b"b", "c.zip": b"c"})

    plan = build_plan(None, remote, OSTag.LINUX)

    assert [entry.path for entry in plan.to_download] == ["a.zip", "b.zip", "c.zip"]
    assert plan.to_delete == ()
    assert plan.unchanged == ()
    assert plan.total_bytes == 3
    assert plan.base_uri == remote.uri


def test_added_removed_and_unchanged_files(make_manifest) -> None:
    cached = make_manifest({"a.jar": b"a", "b.jar": b"b"})
    remote = make_manifest({"a.jar": b"a", "c.jar": b"c"})

    plan = build_plan(cached, remote, OSTag.LINUX)

    assert [entry.path for entry in plan.to_download] == ["c.jar"]
    assert plan.to_delete == ("b.jar",)
    assert plan.unchanged == ("a.jar",)
    assert _partition_holds(plan, cached, remote)


def test_changed_checksum_is_a_replacement(make_manifest) -> None:
    cached = make_manifest({"a.jar": b"old"})
    remote = make_manifest({"a.jar": b"new"})

    plan = build_plan(cached, remote, OSTag.LINUX)

    assert [entry.path for entry in plan.to_download] == ["a.jar"]
    assert plan.to_delete == ()


def test_entries_for_other_os_are_ignored(make_manifest) -> None:
    cached = make_manifest({"old.dll": (b"old", "windows")})
    remote = make_manifest({"app.zip": b"app", "native.dll": (b"dll", "windows")})

    plan = build_plan(cached, remote, OSTag.LINUX)

    assert [entry.path for entry in plan.to_download] == ["app.zip"]
    assert plan.to_delete == ()
    assert "native.dll" not in plan.unchanged


def test_empty_remote_deletes_cached_files(make_manifest) -> None:
    cached = make_manifest({"a.jar": b"a", "b.jar": b"b"})
    remote = make_manifest({})

    plan = build_plan(cached, remote, OSTag.LINUX)

    assert plan.to_download == ()
    assert set(plan.to_delete) == {"a.jar", "b.jar"}


def test_identical_manifests_produce_empty_plan(make_manifest) -> None:
    manifest = make_manifest({"a.jar": b"a"})

    plan = build_plan(manifest, manifest, OSTag.LINUX)

    assert plan.is_empty
    assert plan.unchanged == ("a.jar",)


def test_verification_repairs_missing_and_corrupt_files(make_manifest, tmp_path: Path) -> None:
    manifest = make_manifest({"ok.bin": b"ok", "gone.bin": b"gone", "bad.bin": b"bad"})
    (tmp_path / "ok.bin").write_bytes(b"ok")
    (tmp_path / "bad.bin").write_bytes(b"tampered")

    plan = build_plan(manifest, manifest, OSTag.LINUX, tmp_path, verify_files=True)

    assert {entry.path for entry in plan.to_download} == {"gone.bin", "bad.bin"}
    assert set(plan.repaired) == {"gone.bin", "bad.bin"}
    assert plan.unchanged == ("ok.bin",)
    assert _partition_holds(plan, manifest)


def test_file_urls_are_quoted(make_manifest) -> None:
    remote = make_manifest({"lib/my app.zip": b"x"}, uri="http://example.org/rel")

    plan = build_plan(None, remote, OSTag.LINUX)

    assert plan.file_url(plan.to_download[0]) == "http://example.org/rel/lib/my%20app.zip"


@pytest.mark.parametrize(
    ("platform", "expected"),
    [("win32", OSTag.WINDOWS), ("darwin", OSTag.MAC), ("linux", OSTag.LINUX)],
)
def test_current_os(monkeypatch, platform: str, expected: OSTag) -> None:
    monkeypatch.setattr("launchsync.core.diff.sys.platform", platform)
    assert current_os() is expected
