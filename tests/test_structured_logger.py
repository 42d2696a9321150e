from __future__ import annotations

import json
from pathlib import Path

from launchsync.utils.structured_logger import create_structured_logger


def test_events_are_written_as_json_lines(tmp_path: Path) -> None:
    base, sync_events, bootstrap_events = create_structured_logger(
        log_dir=tmp_path, enable_json=True
    )
    base.set_session_context(manifest="demo")
    with base:
        bootstrap_events.phase_entered("File Sync")
        sync_events.file_synced("lib/app.zip", 2048, 0.25)

    (log_file,) = tmp_path.glob("launchsync_*.jsonl")
    events = [json.loads(line) for line in log_file.read_text().splitlines()]

    assert [event["event"] for event in events] == ["phase_entered", "file_synced"]
    assert events[1]["path"] == "lib/app.zip"
    assert all(event["manifest"] == "demo" for event in events)


def test_json_output_is_optional(tmp_path: Path) -> None:
    base, sync_events, _ = create_structured_logger(log_dir=tmp_path, enable_json=False)

    sync_events.file_deleted("old.zip")
    base.close()

    assert list(tmp_path.iterdir()) == []
