from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from launchsync.core.manifest_source import ManifestSource
from launchsync.exceptions import FetchError
from launchsync.storage.manifest_store import ManifestStore


def _source(cache_dir: Path) -> ManifestSource:
    return ManifestSource(ManifestStore(cache_dir), timeout=5)


def test_load_remote_parses_published_manifest(release_server, cache_dir) -> None:
    published = release_server.publish({"a.zip": b"a"}, version="1.0")

    remote = asyncio.run(_source(cache_dir).load_remote(published.manifest_uri))

    assert remote == published


def test_load_remote_reports_http_errors(release_server, cache_dir) -> None:
    release_server.publish({"a.zip": b"a"})
    release_server.fail("app.xml", 503)

    with pytest.raises(FetchError, match="HTTP 503") as excinfo:
        asyncio.run(_source(cache_dir).load_remote(f"{release_server.base_url}/app.xml"))

    assert excinfo.value.uri.endswith("/app.xml")
    # No internal retry
    assert release_server.request_count("app.xml") == 1


def test_load_remote_reports_malformed_documents(release_server, cache_dir) -> None:
    release_server.serve("app.xml", b"<Application uri='x'")

    with pytest.raises(FetchError, match="malformed"):
        asyncio.run(_source(cache_dir).load_remote(f"{release_server.base_url}/app.xml"))


def test_load_remote_reports_unreachable_server(cache_dir) -> None:
    with pytest.raises(FetchError, match="Could not reach"):
        asyncio.run(_source(cache_dir).load_remote("http://127.0.0.1:9/app.xml"))


def test_cached_manifest_round_trip(make_manifest, cache_dir) -> None:
    source = _source(cache_dir)
    manifest = make_manifest({"a.zip": b"a"}, version="1.0")

    assert source.load_cached() is None
    source.persist(manifest)

    assert source.load_cached() == manifest
    assert not list(cache_dir.glob("*.tmp"))


def test_corrupt_cached_manifest_is_treated_as_absent(cache_dir) -> None:
    cache_dir.mkdir(parents=True)
    (cache_dir / "app.xml").write_text("<Application", encoding="utf-8")

    assert _source(cache_dir).load_cached() is None


def test_has_update_uses_structural_equality(make_manifest) -> None:
    current = make_manifest({"a.zip": b"a"})

    assert ManifestSource.has_update(None, current)
    assert not ManifestSource.has_update(current, make_manifest({"a.zip": b"a"}))
    assert ManifestSource.has_update(current, make_manifest({"a.zip": b"b"}))


def test_check_for_update(release_server, make_manifest, cache_dir) -> None:
    installed = release_server.publish({"a.zip": b"a"}, ts=1)
    source = _source(cache_dir)

    assert asyncio.run(source.check_for_update(installed)) is None

    newer = release_server.publish({"a.zip": b"a2"}, ts=2)
    assert asyncio.run(source.check_for_update(installed)) == newer


def test_check_for_update_ignores_older_release(release_server, cache_dir) -> None:
    installed = release_server.publish({"a.zip": b"a2"}, ts=5)
    release_server.publish({"a.zip": b"a1"}, ts=3)

    assert asyncio.run(_source(cache_dir).check_for_update(installed)) is None
