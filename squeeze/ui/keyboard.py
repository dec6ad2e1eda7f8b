import os
import select
import sys
import threading
from typing import Optional
from squeeze.domain.events import PauseToggleRequested, StopRequested
from squeeze.infrastructure.event_bus import EventBus

try:
    import termios
    import tty
except ImportError:  # Windows: no raw terminal, keyboard control disabled
    termios = None
    tty = None


class KeyboardListener:
    """Listens for run-control keys in a background thread.

    P toggles pause, S (or Ctrl+C while the terminal is in cbreak mode)
    requests a stop. Does nothing when stdin is not a terminal.
    """

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def handle_key(self, key: str) -> bool:
        """Publishes the control event bound to ``key``. Returns False on stop."""
        if key in ('P', 'p'):
            self.event_bus.publish(PauseToggleRequested())
        elif key in ('S', 's', '\x03'):
            self.event_bus.publish(StopRequested())
            return False
        return True

    def _run(self):
        """Main loop for the listener thread."""
        if termios is None or not sys.stdin.isatty():
            return

        fd = sys.stdin.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setcbreak(fd)

            while not self._stop_event.is_set():
                if fd not in select.select([fd], [], [], 0.1)[0]:
                    continue
                try:
                    raw = os.read(fd, 1)
                except OSError:
                    continue
                if not raw:
                    continue
                if not self.handle_key(raw.decode('utf-8', errors='replace')):
                    break
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)

    def start(self):
        """Starts the listener thread."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self):
        """Stops the listener thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
