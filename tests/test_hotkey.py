from __future__ import annotations

import pytest

import hotkey
from hotkey import HoldHotkey


def test_repeat_while_held_begins_once() -> None:
    events: list[str] = []
    key = HoldHotkey("Key.alt_r")

    key.key_down("Key.alt_r", lambda: events.append("begin"))
    key.key_down("Key.alt_r", lambda: events.append("begin"))
    key.key_up("Key.alt_r", lambda: events.append("end"))
    key.key_up("Key.alt_r", lambda: events.append("end"))

    assert events == ["begin", "end"]


def test_other_keys_are_ignored() -> None:
    events: list[str] = []
    key = HoldHotkey("Key.alt_r")

    key.key_down("Key.shift", lambda: events.append("begin"))
    key.key_up("Key.shift", lambda: events.append("end"))

    assert events == []
    assert key.held is False


def test_stop_while_held_fires_end(monkeypatch) -> None:  # noqa: ANN001
    class FakeListener:
        def __init__(self, on_press, on_release) -> None:  # noqa: ANN001
            self.on_press = on_press
            self.on_release = on_release
            self.stopped = False

        def start(self) -> None:
            pass

        def stop(self) -> None:
            self.stopped = True

    class FakeKeyboard:
        Listener = FakeListener

    monkeypatch.setattr(hotkey, "keyboard", FakeKeyboard)
    events: list[str] = []
    key = HoldHotkey("Key.alt_r")
    key.start(on_begin=lambda: events.append("begin"), on_end=lambda: events.append("end"))

    listener = key._listener
    listener.on_press("Key.alt_r")
    key.stop()

    assert events == ["begin", "end"]
    assert listener.stopped is True


def test_start_without_pynput(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(hotkey, "keyboard", None)
    with pytest.raises(RuntimeError, match="pynput is not installed"):
        HoldHotkey().start(on_begin=lambda: None, on_end=lambda: None)
