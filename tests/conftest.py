from __future__ import annotations

import hashlib
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from socketserver import ThreadingMixIn
from typing import Any, Callable
from urllib.parse import unquote

import pytest

from launchsync.models.config import LauncherConfig
from launchsync.models.manifest import FileEntry, Manifest


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _build_manifest(
    files: dict[str, Any],
    uri: str = "http://127.0.0.1:9/release",
    launch_class: str = "demo_app:DemoApp",
    **fields: Any,
) -> Manifest:
    entries = []
    for path, spec in files.items():
        content, os_tag = spec if isinstance(spec, tuple) else (spec, "any")
        entries.append(
            FileEntry(
                path=path,
                checksum=sha256_hex(content),
                size=len(content),
                os=os_tag,
            )
        )
    return Manifest(uri=uri, launch_class=launch_class, entries=tuple(entries), **fields)


@pytest.fixture
def make_manifest() -> Callable[..., Manifest]:
    """Builds a manifest whose checksums and sizes match the given file contents."""
    return _build_manifest


class _ThreadedServer(ThreadingMixIn, HTTPServer):
    daemon_threads = True


class _ReleaseHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        server = self.server
        path = unquote(self.path.split("?", 1)[0]).lstrip("/")
        with server.lock:
            server.requests.append(path)
            queued = server.failures.get(path)
            status = queued.pop(0) if queued else None
            body = server.files.get(path)

        if status is not None:
            self.send_error(status)
            return
        if body is None:
            self.send_error(404)
            return

        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:
        return


class ReleaseServer:
    """Serves a release (app.xml plus its files) from memory."""

    def __init__(self) -> None:
        self._server = _ThreadedServer(("127.0.0.1", 0), _ReleaseHandler)
        self._server.lock = threading.Lock()
        self._server.files = {}
        self._server.failures = {}
        self._server.requests = []
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        self.base_url = f"http://127.0.0.1:{self._server.server_port}/release"

    @property
    def files(self) -> dict[str, bytes]:
        return self._server.files

    @property
    def requests(self) -> list[str]:
        return self._server.requests

    def publish(self, files: dict[str, Any], **fields: Any) -> Manifest:
        """Publishes `files` and a matching manifest, replacing the previous release."""
        manifest = _build_manifest(files, uri=self.base_url, **fields)
        with self._server.lock:
            self._server.files.clear()
            for path, spec in files.items():
                content = spec[0] if isinstance(spec, tuple) else spec
                self._server.files[f"release/{path}"] = content
            self._server.files["release/app.xml"] = manifest.to_xml().encode("utf-8")
        return manifest

    def serve(self, path: str, content: bytes) -> None:
        """Overrides what is served for one release file."""
        with self._server.lock:
            self._server.files[f"release/{path}"] = content

    def fail(self, path: str, *statuses: int) -> None:
        """Answers the next requests for `path` with the given error statuses."""
        with self._server.lock:
            self._server.failures.setdefault(f"release/{path}", []).extend(statuses)

    def request_count(self, path: str) -> int:
        with self._server.lock:
            return self._server.requests.count(f"release/{path}")

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture
def release_server() -> Iterator[ReleaseServer]:
    server = ReleaseServer()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def launcher_config(release_server: ReleaseServer, cache_dir: Path) -> LauncherConfig:
    return LauncherConfig(
        manifest_uri=release_server.base_url,
        cache_directory=str(cache_dir),
        target_os="linux",
        max_attempts=2,
        retry_base_delay=0,
    )
