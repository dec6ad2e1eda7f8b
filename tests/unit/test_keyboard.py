from squeeze.domain.events import PauseToggleRequested, StopRequested
from squeeze.infrastructure.event_bus import EventBus
from squeeze.ui import keyboard as keyboard_module
from squeeze.ui.keyboard import KeyboardListener


def _collect(bus):
    received = []
    bus.subscribe(PauseToggleRequested, received.append)
    bus.subscribe(StopRequested, received.append)
    return received


def test_keyboard_listener_initialization():
    """Test that KeyboardListener can be initialized with EventBus."""
    bus = EventBus()
    listener = KeyboardListener(bus)
    assert listener.event_bus is bus
    assert not listener._stop_event.is_set()


def test_keyboard_listener_stop_event():
    """Calling stop() without start() just sets the event."""
    listener = KeyboardListener(EventBus())
    listener.stop()
    assert listener._stop_event.is_set()


def test_pause_key_toggles_pause():
    bus = EventBus()
    received = _collect(bus)
    listener = KeyboardListener(bus)

    assert listener.handle_key("p") is True
    assert listener.handle_key("P") is True
    assert [type(e) for e in received] == [PauseToggleRequested, PauseToggleRequested]


def test_stop_keys_request_stop():
    for key in ("s", "S", "\x03"):
        bus = EventBus()
        received = _collect(bus)
        assert KeyboardListener(bus).handle_key(key) is False
        assert [type(e) for e in received] == [StopRequested]


def test_other_keys_ignored():
    bus = EventBus()
    received = _collect(bus)
    assert KeyboardListener(bus).handle_key("x") is True
    assert received == []


def test_run_is_noop_without_tty(monkeypatch):
    class FakeStdin:
        def isatty(self):
            return False

    monkeypatch.setattr(keyboard_module.sys, "stdin", FakeStdin())
    listener = KeyboardListener(EventBus())
    listener.start()
    listener.stop()
    assert not listener._thread.is_alive()


def test_run_reads_keys_until_stop(monkeypatch):
    """_run dispatches keys read in cbreak mode and stops on S."""
    keys = [b"p", b"z", b"s", b"p"]

    class FakeStdin:
        def isatty(self):
            return True

        def fileno(self):
            return 0

    class FakeTermios:
        TCSADRAIN = 1

        def __init__(self):
            self.restored = False

        def tcgetattr(self, fd):
            return ["settings"]

        def tcsetattr(self, fd, when, settings):
            self.restored = True

    fake_termios = FakeTermios()
    monkeypatch.setattr(keyboard_module.sys, "stdin", FakeStdin())
    monkeypatch.setattr(keyboard_module, "termios", fake_termios)
    monkeypatch.setattr(keyboard_module, "tty", type("FakeTty", (), {"setcbreak": staticmethod(lambda fd: None)}))
    monkeypatch.setattr(keyboard_module.select, "select", lambda r, w, x, t: (r, [], []))
    monkeypatch.setattr(keyboard_module.os, "read", lambda fd, n: keys.pop(0))

    bus = EventBus()
    received = _collect(bus)
    KeyboardListener(bus)._run()

    assert [type(e) for e in received] == [PauseToggleRequested, StopRequested]
    assert keys == [b"p"]
    assert fake_termios.restored is True
