from __future__ import annotations

import threading

from launchsync.core.channel import ChannelUIProvider, UIChannel
from launchsync.core.phases import Phase


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __getattr__(self, name: str):
        def record(*args):
            self.calls.append((name, *args))

        return record


def test_consecutive_progress_is_coalesced() -> None:
    channel = UIChannel()
    ui = ChannelUIProvider(channel)
    ui.phase_changed(Phase.FILE_SYNC)
    ui.update_progress(0.1)
    ui.update_progress(0.5)
    ui.update_progress(1.0)
    ui.close_updater(False)

    messages = channel.drain()

    assert [(m.method, *m.args) for m in messages] == [
        ("phase_changed", Phase.FILE_SYNC),
        ("update_progress", 1.0),
        ("close_updater", False),
    ]


def test_final_message_is_delivered_once_and_last() -> None:
    channel = UIChannel()
    channel.post("show_loader")

    assert channel.finish("done")
    assert not channel.finish("again")
    channel.post("show_whats_new", "late")

    messages = channel.drain()
    assert [m.method for m in messages] == ["show_loader", "finished"]
    assert messages[-1].final
    assert channel.drain() == []


def test_pump_delivers_in_order_across_threads() -> None:
    channel = UIChannel()
    producer_ui = ChannelUIProvider(channel)
    recorder = _Recorder()

    def produce() -> None:
        producer_ui.show_loader()
        for step in range(1, 101):
            producer_ui.update_progress(step / 100)
        producer_ui.update_available(True)
        channel.finish("outcome")

    thread = threading.Thread(target=produce)
    thread.start()
    result = channel.pump(recorder, poll_interval=0.01)
    thread.join()

    assert result == "outcome"
    names = [call[0] for call in recorder.calls]
    assert names[0] == "show_loader"
    assert names[-1] == "update_available"
    progress = [call[1] for call in recorder.calls if call[0] == "update_progress"]
    assert progress == sorted(progress)
    assert progress[-1] == 1.0
