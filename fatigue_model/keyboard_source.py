"""System-wide keystroke capture via pynput."""

import logging
import threading
import time
from typing import Callable, Optional

from pynput import keyboard

from .errors import SensorUnavailableError

logger = logging.getLogger("fatigue_model.keyboard")

KeystrokeCallback = Callable[[str, float, str], None]

SPECIAL_NAMES = {
    keyboard.Key.enter: "Enter",
    keyboard.Key.space: "Space",
    keyboard.Key.backspace: "Backspace",
    keyboard.Key.delete: "Delete",
    keyboard.Key.tab: "Tab",
}

WHITESPACE = {
    keyboard.Key.space: " ",
    keyboard.Key.enter: "\n",
    keyboard.Key.tab: "\t",
}


class KeyboardSource:
    """
    Global keyboard listener that keeps its own text buffer.

    The callback runs on the pynput listener thread with
    (buffer, timestamp, key_label); callers that own state on another thread
    must hand the event over themselves.
    """

    def __init__(self, on_keystroke: KeystrokeCallback, max_buffer: int = 10_000):
        self.on_keystroke = on_keystroke
        self.max_buffer = max_buffer
        self._buffer = ""
        self._lock = threading.Lock()
        self._listener: Optional[keyboard.Listener] = None

    @property
    def running(self) -> bool:
        return self._listener is not None

    def open(self) -> None:
        if self._listener:
            return
        try:
            self._listener = keyboard.Listener(on_press=self._on_press)
            self._listener.start()
        except Exception as e:
            self._listener = None
            raise SensorUnavailableError("keyboard", f"Keyboard capture unavailable: {e}") from e
        logger.info("Keyboard capture started")

    def close(self) -> None:
        if self._listener:
            self._listener.stop()
            self._listener = None
            logger.info("Keyboard capture stopped")

    def clear(self) -> None:
        with self._lock:
            self._buffer = ""

    def _on_press(self, key) -> None:
        now = time.time()
        label = self._key_label(key)
        with self._lock:
            if key in (keyboard.Key.backspace, keyboard.Key.delete):
                self._buffer = self._buffer[:-1]
            elif key in WHITESPACE:
                self._buffer += WHITESPACE[key]
            elif getattr(key, "char", None):
                self._buffer += key.char
            else:
                # Modifiers and navigation keys do not touch the buffer
                return
            self._buffer = self._buffer[-self.max_buffer:]
            buffer = self._buffer
        self.on_keystroke(buffer, now, label)

    @staticmethod
    def _key_label(key) -> str:
        if key in SPECIAL_NAMES:
            return SPECIAL_NAMES[key]
        if getattr(key, "char", None):
            return key.char
        return str(key)
